"""Analyses (jobs) module.

Read and patch access to the Discovery Environment ``jobs`` table:
- expiry listings by status
- lookup and partial update by ID
- propagation status updates per job
"""

from jobservices.jobs.errors import (
    EmptyPatchError,
    InvalidStatusError,
    JobNotFoundError,
    JobServiceError,
)
from jobservices.jobs.models import (
    Job,
    JobList,
    JobPatch,
    StatusUpdate,
    StatusUpdates,
)

__all__ = [
    # Errors
    "EmptyPatchError",
    "InvalidStatusError",
    "JobNotFoundError",
    "JobServiceError",
    # Models
    "Job",
    "JobList",
    "JobPatch",
    "StatusUpdate",
    "StatusUpdates",
]
