"""Database models for the spike alerts key-value store.

Every persisted document (settings, price history, alerts, last-alert map)
is one row holding the whole JSON value, so each write replaces a complete
snapshot and a torn partial update cannot be stored.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class KeyValueEntry(SQLModel, table=True):
    """One persisted document keyed by name."""

    __tablename__ = "kv_entry"

    key: str = Field(primary_key=True, max_length=255)
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
