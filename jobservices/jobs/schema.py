"""PostgreSQL schema for the analyses tables (SQLAlchemy Table objects).

4 tables: jobs, users, job_steps, job_status_updates.

The tables are owned by the Discovery Environment database migrations; they
are declared here only for query construction and are never created by this
service. Only the columns the service reads or writes are listed.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

# ── 1. users ────────────────────────────────────────────────────────────────

users = Table(
    "users",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("username", Text, nullable=False),
)

# ── 2. jobs ─────────────────────────────────────────────────────────────────

jobs = Table(
    "jobs",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("app_id", Text),
    Column("user_id", UUID(as_uuid=False), ForeignKey("users.id"), nullable=False),
    Column("status", Text, nullable=False),
    Column("job_description", Text),
    Column("job_name", Text),
    Column("result_folder_path", Text),
    Column("start_date", DateTime()),
    Column("planned_end_date", DateTime()),
)

# ── 3. job_steps ────────────────────────────────────────────────────────────

job_steps = Table(
    "job_steps",
    metadata,
    Column("job_id", UUID(as_uuid=False), ForeignKey("jobs.id"), nullable=False),
    Column("external_id", Text),
)

# ── 4. job_status_updates ───────────────────────────────────────────────────

job_status_updates = Table(
    "job_status_updates",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("external_id", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("sent_from", Text, nullable=False),
    Column("sent_on", BigInteger, nullable=False),
    Column("propagated", Boolean, nullable=False),
    Column("propagation_attempts", BigInteger, nullable=False),
    Column("last_propagation_attempt", BigInteger),
    Column("created_date", DateTime()),
)
