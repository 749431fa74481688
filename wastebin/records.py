"""
Paste records: the ORM table and the plain records passed between layers.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back without tzinfo; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class NewPaste:
    """A validated paste that has not been stored yet."""

    content: str
    language: str
    burn: bool
    expiry_timestamp: datetime


@dataclass
class Paste:
    id: uuid.UUID
    content: str
    language: str
    burn: bool
    expiry_timestamp: datetime
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expiry_timestamp

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "content": self.content,
            "language": self.language,
            "burn": self.burn,
            "expiry_timestamp": self.expiry_timestamp.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


class PasteRow(Base):
    __tablename__ = "pastes"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    content = Column(Text, nullable=False)
    language = Column(String(32), nullable=False, default="")
    burn = Column(Boolean, nullable=False, default=False)
    expiry_timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_record(self) -> Paste:
        return Paste(
            id=self.id,
            content=self.content,
            language=self.language,
            burn=self.burn,
            expiry_timestamp=as_utc(self.expiry_timestamp),
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at) if self.updated_at else None,
        )
