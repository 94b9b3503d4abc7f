"""SQLAlchemy Core statements for the analyses API.

Every value reaches PostgreSQL as a bound parameter; the statements are
built here and executed by ``jobservices.jobs.service``.
"""

from datetime import timedelta
from typing import Any, Dict

from sqlalchemy import Interval, Select, Update, func, literal, select, update

from jobservices.jobs.schema import job_status_updates, job_steps, jobs, users


def _job_select() -> Select:
    """Jobs joined with their submitting user, labelled for the Job model."""
    return select(
        jobs.c.id,
        jobs.c.app_id,
        jobs.c.user_id,
        users.c.username,
        jobs.c.status,
        jobs.c.job_description.label("description"),
        jobs.c.job_name.label("name"),
        jobs.c.result_folder_path.label("result_folder"),
        jobs.c.start_date,
        jobs.c.planned_end_date,
    ).select_from(jobs.join(users, jobs.c.user_id == users.c.id))


def expired_jobs_query(status: str) -> Select:
    """Jobs in ``status`` whose planned end date has already passed."""
    return _job_select().where(
        jobs.c.status == status,
        jobs.c.planned_end_date <= func.now(),
    )


def expiring_jobs_query(status: str, minutes: int) -> Select:
    """Jobs in ``status`` whose planned end date falls in the next ``minutes``."""
    window = literal(timedelta(minutes=minutes), Interval())
    return _job_select().where(
        jobs.c.status == status,
        func.now() < jobs.c.planned_end_date,
        jobs.c.planned_end_date <= func.now() + window,
    )


def job_by_id_query(job_id: str) -> Select:
    return _job_select().where(jobs.c.id == job_id)


def update_job_query(job_id: str, columns: Dict[str, Any]) -> Update:
    """``UPDATE ONLY jobs SET ... WHERE id = :id`` for the given columns."""
    unknown = set(columns) - set(jobs.c.keys())
    if unknown:
        raise ValueError(f"not columns of jobs: {sorted(unknown)}")
    return (
        update(jobs)
        .where(jobs.c.id == job_id)
        .values(**columns)
        .with_hint("ONLY", dialect_name="postgresql")
    )


def status_updates_query(job_id: str) -> Select:
    """Status updates for every step of a job, oldest first."""
    return (
        select(
            jobs.c.id,
            job_status_updates.c.external_id,
            job_status_updates.c.status,
            job_status_updates.c.sent_from,
            job_status_updates.c.sent_on,
            job_status_updates.c.propagated,
            job_status_updates.c.propagation_attempts,
            job_status_updates.c.last_propagation_attempt,
            job_status_updates.c.created_date,
        )
        .select_from(
            jobs.join(job_steps, jobs.c.id == job_steps.c.job_id).join(
                job_status_updates,
                job_steps.c.external_id == job_status_updates.c.external_id,
            )
        )
        .where(jobs.c.id == job_id)
        .order_by(job_status_updates.c.sent_on.asc())
    )
