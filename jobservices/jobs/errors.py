"""
Analysis-specific error types.

All errors inherit from JobServiceError so routers can catch them in one place.
"""


class JobServiceError(Exception):
    """Base exception for all job service failures."""
    pass


class JobNotFoundError(JobServiceError):
    """Raised when no job exists with the requested ID."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"job {job_id} not found")


class InvalidStatusError(JobServiceError):
    """Raised for a status outside the known set of job statuses."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"unknown status {status}")


class EmptyPatchError(JobServiceError):
    """Raised when a patch carries none of the updatable fields."""

    def __init__(self):
        super().__init__("nothing in patch")
