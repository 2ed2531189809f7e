"""Persistence models for schedules, their children and the execution ledger."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from reportflow.common.time import utcnow

from .errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


def _new_id() -> str:
    return str(uuid.uuid4())


class ExecutionStatus(enum.StrEnum):
    """Lifecycle of one execution attempt; SUCCESS and FAILED are terminal."""

    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ExecutionTrigger(enum.StrEnum):
    """What started an execution."""

    SCHEDULED = "SCHEDULED"
    MANUAL = "MANUAL"


class Base(DeclarativeBase):
    """Base declarative class for reportflow models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class ReportSchedule(Base):
    """Configured report: what to fetch, when, and who receives it."""

    __tablename__ = "report_schedules"
    __table_args__ = (
        Index("ix_report_schedules_due", "is_active", "next_run_at"),
        Index("ix_report_schedules_tenant", "tenant"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    report_type: Mapped[str] = mapped_column(String(32))
    frequency: Mapped[str] = mapped_column(String(16))
    time_of_day: Mapped[str] = mapped_column(String(5), default="09:00")
    day_of_week: Mapped[int | None] = mapped_column(Integer, default=None)
    day_of_month: Mapped[int | None] = mapped_column(Integer, default=None)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_run_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    next_run_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    recipients: Mapped[list[ScheduleRecipient]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ScheduleRecipient.position",
    )
    filters: Mapped[list[ScheduleFilter]] = relationship(
        back_populates="schedule", cascade="all, delete-orphan", lazy="selectin"
    )
    fields: Mapped[list[ScheduleField]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ScheduleField.position",
    )
    executions: Mapped[list[ExecutionRecord]] = relationship(
        back_populates="schedule", cascade="all, delete-orphan"
    )


class ScheduleRecipient(Base):
    """Email recipient attached to a schedule."""

    __tablename__ = "schedule_recipients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    schedule_id: Mapped[str] = mapped_column(
        ForeignKey("report_schedules.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320))
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    position: Mapped[int] = mapped_column(Integer, default=0)

    schedule: Mapped[ReportSchedule] = relationship(back_populates="recipients")


class ScheduleFilter(Base):
    """Typed filter value stored as its tagged JSON payload."""

    __tablename__ = "schedule_filters"
    __table_args__ = (
        UniqueConstraint("schedule_id", "key", name="uq_schedule_filters_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    schedule_id: Mapped[str] = mapped_column(
        ForeignKey("report_schedules.id", ondelete="CASCADE"), nullable=False
    )
    key: Mapped[str] = mapped_column(String(64))
    value: Mapped[typ.Any] = mapped_column(JSON)

    schedule: Mapped[ReportSchedule] = relationship(back_populates="filters")


class ScheduleField(Base):
    """Selected output column, ordered by ``position``."""

    __tablename__ = "schedule_fields"
    __table_args__ = (
        UniqueConstraint("schedule_id", "field_key", name="uq_schedule_fields_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    schedule_id: Mapped[str] = mapped_column(
        ForeignKey("report_schedules.id", ondelete="CASCADE"), nullable=False
    )
    field_key: Mapped[str] = mapped_column(String(64))
    position: Mapped[int] = mapped_column(Integer, default=0)

    schedule: Mapped[ReportSchedule] = relationship(back_populates="fields")


class ExecutionRecord(Base):
    """Audit ledger entry for one execution attempt."""

    __tablename__ = "execution_records"
    __table_args__ = (
        Index("ix_execution_records_schedule_time", "schedule_id", "started_at"),
        Index("ix_execution_records_status_time", "status", "started_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    schedule_id: Mapped[str] = mapped_column(
        ForeignKey("report_schedules.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), default=ExecutionStatus.RUNNING)
    trigger: Mapped[str] = mapped_column(
        String(16), default=ExecutionTrigger.SCHEDULED
    )
    started_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    record_count: Mapped[int] = mapped_column(Integer, default=0)
    file_size: Mapped[int | None] = mapped_column(Integer, default=None)
    file_path: Mapped[str | None] = mapped_column(String(1024), default=None)
    truncated: Mapped[bool] = mapped_column(Boolean, default=False)
    error_message: Mapped[str | None] = mapped_column(Text(), default=None)
    error_category: Mapped[str | None] = mapped_column(String(32), default=None)
    emails_sent: Mapped[int] = mapped_column(Integer, default=0)
    emails_failed: Mapped[int] = mapped_column(Integer, default=0)

    schedule: Mapped[ReportSchedule] = relationship(back_populates="executions")


class TenantSession(Base):
    """Stored API session for a tenant; offline sessions back background runs."""

    __tablename__ = "tenant_sessions"
    __table_args__ = (Index("ix_tenant_sessions_tenant", "tenant"),)

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    tenant: Mapped[str] = mapped_column(String(255))
    access_token: Mapped[str] = mapped_column(String(512))
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    scope: Mapped[str | None] = mapped_column(String(1024), default=None)
    expires_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
