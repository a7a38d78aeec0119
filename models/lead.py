from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import LeadSource, LeadStatus
from models.mixins import MultiTenantModel, SoftDeleteMixin


class Lead(MultiTenantModel, SoftDeleteMixin, Base):
    """Sales lead owned by one user of the organization"""

    __tablename__ = "lead"

    title: Mapped[str] = mapped_column(String(120), nullable=False)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, default=LeadSource.OTHER.value)
    status: Mapped[str] = mapped_column(String, nullable=False, default=LeadStatus.NEW.value)
    owner_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(f"status IN {tuple(LeadStatus.values())}", name="lead_status_check"),
        CheckConstraint(f"source IN {tuple(LeadSource.values())}", name="lead_source_check"),
        Index("ix_lead_organization_status", "organization_id", "status"),
    )
