"""
SQLAlchemy mixins for common model patterns.

These mixins provide reusable column definitions so every tenant-scoped
model gets the same primary key, organization reference and timestamps.

Timestamps are set on the Python side as well as with a server default so
the values are available right after a flush without a refresh round trip.
"""
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from utils.generators import generate_cuid


def utcnow() -> datetime:
    return datetime.now(UTC)


class CuidMixin:
    """
    Mixin for models using CUID as primary key.

    Usage:
        class MyModel(CuidMixin, Base):
            __tablename__ = "my_model"
    """

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class OrganizationMixin:
    """
    Mixin for tenant-scoped models.

    Provides:
        - organization_id: Foreign key to organization with cascade delete

    Every query against a model carrying this column must filter on it.
    """

    @declared_attr
    def organization_id(cls) -> Mapped[str]:
        return mapped_column(
            String,
            ForeignKey("organization.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class CreatedAtMixin:
    """Creation timestamp only, for append-only records"""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utcnow,
            server_default=func.now(),
            nullable=False,
            index=True,
        )


class TimestampMixin:
    """
    Mixin for timestamp tracking.

    Provides:
        - created_at: Timestamp set on creation
        - updated_at: Timestamp updated on modification
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utcnow,
            server_default=func.now(),
            onupdate=utcnow,
            nullable=False,
        )


class SoftDeleteMixin:
    """
    Soft delete support (tombstone pattern).

    Provides:
        - deleted_at: Timestamp set on soft delete (null = not deleted)

    In repositories, query active rows only: .where(Model.deleted_at.is_(None))
    """

    @declared_attr
    def deleted_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True, index=True)


class MultiTenantModel(CuidMixin, OrganizationMixin, TimestampMixin):
    """
    Complete mixin for standard tenant-scoped models.

    Combines:
        - CuidMixin: CUID primary key
        - OrganizationMixin: Organization foreign key
        - TimestampMixin: Created/updated timestamps
    """

    __abstract__ = True
