from typing import Any

from sqlalchemy import JSON, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import OrganizationStatus
from models.mixins import CuidMixin, TimestampMixin

DEFAULT_ORGANIZATION_SETTINGS: dict[str, Any] = {
    "timezone": "UTC",
    "currency": "USD",
    "date_format": "YYYY-MM-DD",
    "time_format": "24h",
    "custom_lead_statuses": [],
    "custom_lead_sources": [],
    "required_fields": [],
    "features": {},
}


def default_settings() -> dict[str, Any]:
    return {
        key: (value.copy() if isinstance(value, (list, dict)) else value)
        for key, value in DEFAULT_ORGANIZATION_SETTINGS.items()
    }


class Organization(CuidMixin, TimestampMixin, Base):
    """
    Tenant boundary.

    Organization does not carry an organization_id since it is the root of
    the hierarchy. Organizations are never hard-deleted.
    """

    __tablename__ = "organization"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=OrganizationStatus.ACTIVE.value, index=True
    )
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=default_settings)

    __table_args__ = (
        CheckConstraint(
            f"status IN {tuple(OrganizationStatus.values())}", name="organization_status_check"
        ),
    )
