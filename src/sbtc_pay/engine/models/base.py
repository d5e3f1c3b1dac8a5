"""Base model with timestamps and JSON metadata."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sbtc_pay.utils.clock import utcnow


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    type_annotation_map = {  # noqa: RUF012
        dict[str, Any]: JSON,
        dict[str, str]: JSON,
        list[str]: JSON,
    }


class TimestampMixin:
    """Created / updated timestamps (rows are never deleted)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class MetadataMixin:
    """JSON metadata column (string → string map)."""

    metadata_: Mapped[dict[str, str]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    def get_metadata(self, key: str, default: str | None = None) -> str | None:
        """Get a metadata value by key."""
        metadata = self.metadata_ or {}
        return metadata.get(key, default)

    def merged_metadata(self, patch: dict[str, str]) -> dict[str, str]:
        """Return a new map with *patch* layered over the current metadata.

        Existing keys not named in *patch* are kept.
        """
        return {**(self.metadata_ or {}), **patch}
