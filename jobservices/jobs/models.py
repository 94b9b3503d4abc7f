"""Request and response models for the analyses API.

Timestamps cross the wire as integer milliseconds since the Unix epoch, or
``null`` when the column is NULL. Naive database timestamps are treated as UTC.
"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_serializer, field_validator

from jobservices.jobs.errors import InvalidStatusError

VALID_STATUSES = frozenset({
    "Completed",
    "Failed",
    "Submitted",
    "Queued",
    "Running",
    "Canceled",
})

_EPOCH = datetime(1970, 1, 1)

# Millisecond range a naive datetime can hold
MIN_EPOCH_MILLIS = (datetime.min - _EPOCH) // timedelta(milliseconds=1)
MAX_EPOCH_MILLIS = (datetime.max - _EPOCH) // timedelta(milliseconds=1)

EpochMillis = Annotated[int, Field(strict=True, ge=MIN_EPOCH_MILLIS, le=MAX_EPOCH_MILLIS)]


def normalize_status(status: str) -> str:
    """Case-normalize a status (``RUNNING`` -> ``Running``) and validate it."""
    normalized = status.lower().title()
    if normalized not in VALID_STATUSES:
        raise InvalidStatusError(normalized)
    return normalized


def to_epoch_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return calendar.timegm(value.timetuple()) * 1000 + value.microsecond // 1000


def from_epoch_millis(value: Optional[int]) -> Optional[datetime]:
    """Convert epoch milliseconds to a naive UTC datetime."""
    if value is None:
        return None
    return _EPOCH + timedelta(milliseconds=value)


class Job(BaseModel):
    """An entry from the jobs table with the submitting user's name."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    app_id: Optional[str] = None
    user_id: str
    username: str
    status: str
    description: Optional[str] = None
    name: Optional[str] = None
    result_folder: Optional[str] = None
    start_date: Optional[datetime] = None
    planned_end_date: Optional[datetime] = None

    @field_serializer("start_date", "planned_end_date", when_used="json")
    def serialize_timestamp(self, value: Optional[datetime]) -> Optional[int]:
        return to_epoch_millis(value)


class JobList(BaseModel):
    jobs: List[Job] = []


class StatusUpdate(BaseModel):
    """A status update sent for one of the job's steps."""

    id: str  # the analysis ID
    external_id: str  # also referred to as the invocation ID
    status: str
    sent_from: str
    sent_on: int
    propagated: bool
    propagation_attempts: int
    last_propagation_attempt: Optional[int] = None
    created_date: Optional[datetime] = None

    @field_serializer("created_date", when_used="json")
    def serialize_created_date(self, value: Optional[datetime]) -> Optional[int]:
        return to_epoch_millis(value)


class StatusUpdates(BaseModel):
    status_updates: List[StatusUpdate] = []


class JobPatch(BaseModel):
    """Body of a PATCH request. Only the keys present are applied."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[StrictStr] = None
    planned_end_date: Optional[EpochMillis] = None
    description: Optional[StrictStr] = None
    name: Optional[StrictStr] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("status cannot be null")
        try:
            return normalize_status(v)
        except InvalidStatusError as e:
            raise ValueError(str(e)) from e

    def to_columns(self) -> Dict[str, Any]:
        """Map the fields that were sent onto ``jobs`` column values."""
        sent = self.model_fields_set
        columns: Dict[str, Any] = {}
        if "status" in sent:
            columns["status"] = self.status
        if "planned_end_date" in sent:
            columns["planned_end_date"] = from_epoch_millis(self.planned_end_date)
        if "description" in sent:
            columns["job_description"] = self.description
        if "name" in sent:
            columns["job_name"] = self.name
        return columns
