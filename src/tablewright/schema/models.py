"""SQLAlchemy ORM models for the designer's metadata tables.

Designed tables, their fields and the relationships between them are stored
as rows; the schema source turns them back into ``TableSchema`` objects.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, JSON on SQLite
JSONType = JSONB().with_variant(JSON(), "sqlite")


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all Tablewright metadata models."""


class DataTable(Base):
    """A table designed on the canvas."""

    __tablename__ = "tw_data_tables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    project_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    searchable_fields: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    default_sort: Mapped[str] = mapped_column(String(63), default="created_at", nullable=False)
    default_order: Mapped[str] = mapped_column(String(4), default="desc", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    fields: Mapped[list[DataField]] = relationship(
        "DataField",
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="DataField.field_order",
    )


class DataField(Base):
    """A column of a designed table."""

    __tablename__ = "tw_data_fields"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    table_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tw_data_tables.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_name: Mapped[str] = mapped_column(String(63), nullable=False)
    data_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    immutable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    field_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    table: Mapped[DataTable] = relationship("DataTable", back_populates="fields")

    __table_args__ = (Index("ix_tw_field_table_name", "table_id", "field_name", unique=True),)


class TableRelationship(Base):
    """A one-to-many link between two designed tables."""

    __tablename__ = "tw_table_relationships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_table_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tw_data_tables.id", ondelete="CASCADE"), nullable=False
    )
    source_field_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tw_data_fields.id", ondelete="CASCADE"), nullable=False
    )
    target_table_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tw_data_tables.id", ondelete="CASCADE"), nullable=False
    )
    target_field_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tw_data_fields.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(
        String(20), default="one_to_many", nullable=False
    )
    cascade_config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    source_table: Mapped[DataTable] = relationship("DataTable", foreign_keys=[source_table_id])
    source_field: Mapped[DataField] = relationship("DataField", foreign_keys=[source_field_id])
    target_table: Mapped[DataTable] = relationship("DataTable", foreign_keys=[target_table_id])
    target_field: Mapped[DataField] = relationship("DataField", foreign_keys=[target_field_id])

    __table_args__ = (
        Index("ix_tw_relationship_source", "source_table_id"),
        Index("ix_tw_relationship_target", "target_table_id"),
    )
