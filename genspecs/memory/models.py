from datetime import datetime, timezone

from sqlmodel import Column, DateTime, Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageEntry(SQLModel, table=True):
    __tablename__ = "storage_entries"

    key: str = Field(primary_key=True, index=True)
    value: str
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow),
    )
