"""SQLAlchemy models for the SQL document store."""

import json
from datetime import date, datetime
from typing import Any, Dict

from sqlalchemy import String, Integer, DateTime, Text, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _encode_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def utcnow() -> datetime:
    return datetime.utcnow()


class Document(Base):
    """One document, addressed by its full slash-separated path."""
    __tablename__ = "documents"

    path: Mapped[str] = mapped_column(String(1024), primary_key=True)
    data_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    # Bumped on every write; compare-and-swap guard for transactions
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_documents_updated_at", "updated_at"),
    )

    @property
    def data(self) -> Dict[str, Any]:
        """Get document body as dictionary."""
        if self.data_json:
            return json.loads(self.data_json)
        return {}

    @data.setter
    def data(self, value: Dict[str, Any]) -> None:
        """Set document body; datetimes are stored as ISO-8601 strings."""
        self.data_json = encode_data(value)


def encode_data(value: Dict[str, Any]) -> str:
    return json.dumps(value, default=_encode_value)
