"""API endpoints for analyses: expiry listings, lookup, patching and status updates."""

import json
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncConnection
from starlette.convertors import Convertor, register_url_convertor

from jobservices.config.postgres import get_db_connection
from jobservices.jobs import service
from jobservices.jobs.errors import EmptyPatchError, InvalidStatusError, JobNotFoundError
from jobservices.jobs.models import Job, JobList, JobPatch, StatusUpdates, normalize_status
from jobservices.logging_config import get_logger

logger = get_logger(name=__name__)

# int32 minutes; wider windows overflow now() + interval in PostgreSQL
MAX_MINUTES = 2**31 - 1


class JobIdConvertor(Convertor):
    """Lower-case hex UUIDs only; anything else falls through to a 404."""

    regex = "[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


register_url_convertor("job_id", JobIdConvertor())

router = APIRouter(tags=["Analyses"])


def valid_status(status: str) -> str:
    """Dependency that normalizes the ``{status}`` path segment."""
    try:
        return normalize_status(status)
    except InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))


def valid_minutes(minutes: str) -> int:
    """Dependency that parses the ``{minutes}`` path segment."""
    if not re.fullmatch(r"[0-9]+", minutes) or int(minutes) > MAX_MINUTES:
        raise HTTPException(status_code=400, detail=f"can't parse {minutes} as an integer")
    return int(minutes)


@router.get("/expired/{status}", response_model=JobList)
async def expired_by_status(
    status: str = Depends(valid_status),
    conn: AsyncConnection = Depends(get_db_connection),
):
    """List jobs with the given status that have passed their planned end date."""
    return await service.list_expired_jobs(conn, status)


@router.get("/expires-in/{minutes}/{status}", response_model=JobList)
async def expires_in_by_status(
    status: str = Depends(valid_status),
    minutes: int = Depends(valid_minutes),
    conn: AsyncConnection = Depends(get_db_connection),
):
    """List jobs with the given status that expire within the given minutes."""
    return await service.list_jobs_expiring_in(conn, status, minutes)


@router.get("/id/{job_id:job_id}", response_model=Job)
async def get_by_id(job_id: str, conn: AsyncConnection = Depends(get_db_connection)):
    """Get a single analysis."""
    try:
        return await service.get_job(conn, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/id/{job_id:job_id}", response_model=Job)
async def update_by_id(
    job_id: str,
    request: Request,
    conn: AsyncConnection = Depends(get_db_connection),
):
    """Update an analysis. Only status, planned_end_date, description and name
    can be changed; other keys in the body are ignored.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"invalid JSON body: {e}")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="patch must be a JSON object")

    try:
        patch = JobPatch.model_validate(body)
    except ValidationError as e:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise HTTPException(status_code=400, detail=detail)

    try:
        return await service.update_job(conn, job_id, patch)
    except EmptyPatchError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/id/{job_id:job_id}/status-updates", response_model=StatusUpdates)
async def status_updates(job_id: str, conn: AsyncConnection = Depends(get_db_connection)):
    """List the status updates recorded for an analysis, oldest first."""
    return await service.list_status_updates(conn, job_id)
