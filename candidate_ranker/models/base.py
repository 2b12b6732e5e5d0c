"""
SQLModel base classes

Shared fields and mixins
"""
import uuid
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLModelBase(SQLModel):
    """
    Base for every non-table schema
    """
    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }


class TimestampMixin(SQLModel):
    """Timestamps for table models"""
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        description="Creation time"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        description="Last update time"
    )


class IDMixin(SQLModel):
    """UUID primary key for table models"""
    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36,
        description="Primary key"
    )


class TimestampResponse(SQLModelBase):
    """Response base carrying id and timestamps"""
    id: str
    created_at: datetime
    updated_at: datetime
