"""Service layer for the analyses API.

Runs the statements from ``queries`` on a pooled async connection and turns
rows into response models.
"""

from sqlalchemy.ext.asyncio import AsyncConnection

from jobservices.jobs import queries
from jobservices.jobs.errors import EmptyPatchError, JobNotFoundError
from jobservices.jobs.models import Job, JobList, JobPatch, StatusUpdate, StatusUpdates
from jobservices.logging_config import get_logger

logger = get_logger(name=__name__)


async def _job_list(conn: AsyncConnection, stmt) -> JobList:
    result = await conn.execute(stmt)
    rows = result.mappings().all()
    return JobList(jobs=[Job.model_validate(dict(row)) for row in rows])


async def list_expired_jobs(conn: AsyncConnection, status: str) -> JobList:
    """Jobs with the given status that are past their planned end date."""
    job_list = await _job_list(conn, queries.expired_jobs_query(status))
    logger.debug("Found {} expired {} jobs", len(job_list.jobs), status)
    return job_list


async def list_jobs_expiring_in(conn: AsyncConnection, status: str, minutes: int) -> JobList:
    """Jobs with the given status that expire within ``minutes`` from now."""
    job_list = await _job_list(conn, queries.expiring_jobs_query(status, minutes))
    logger.debug(
        "Found {} {} jobs expiring within {} minutes", len(job_list.jobs), status, minutes,
    )
    return job_list


async def get_job(conn: AsyncConnection, job_id: str) -> Job:
    result = await conn.execute(queries.job_by_id_query(job_id))
    row = result.mappings().first()
    if row is None:
        raise JobNotFoundError(job_id)
    return Job.model_validate(dict(row))


async def update_job(conn: AsyncConnection, job_id: str, patch: JobPatch) -> Job:
    """Apply the patch, commit, and return the job as it now reads."""
    columns = patch.to_columns()
    if not columns:
        raise EmptyPatchError()

    result = await conn.execute(queries.update_job_query(job_id, columns))
    if result.rowcount == 0:
        await conn.rollback()
        raise JobNotFoundError(job_id)
    await conn.commit()

    logger.info("Updated job {}: {}", job_id, sorted(columns))
    return await get_job(conn, job_id)


async def list_status_updates(conn: AsyncConnection, job_id: str) -> StatusUpdates:
    result = await conn.execute(queries.status_updates_query(job_id))
    rows = result.mappings().all()
    return StatusUpdates(
        status_updates=[StatusUpdate.model_validate(dict(row)) for row in rows]
    )
