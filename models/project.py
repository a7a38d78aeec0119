from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import ProjectStatus
from models.mixins import CuidMixin, MultiTenantModel, OrganizationMixin, SoftDeleteMixin, utcnow


class Project(MultiTenantModel, SoftDeleteMixin, Base):
    """
    Client engagement, optionally spun off from a lead.

    Membership lives in ``project_member``; the manager is not required to
    be a member.
    """

    __tablename__ = "project"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client: Mapped[str | None] = mapped_column(String(150), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=ProjectStatus.ACTIVE.value)
    lead_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("lead.id", ondelete="SET NULL"), nullable=True, index=True
    )
    budget: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    manager_user_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True
    )

    __table_args__ = (
        CheckConstraint(f"status IN {tuple(ProjectStatus.values())}", name="project_status_check"),
        CheckConstraint("budget IS NULL OR budget >= 0", name="project_budget_check"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date > start_date", name="project_dates_check"
        ),
        Index("ix_project_organization_status", "organization_id", "status"),
    )


class ProjectMember(CuidMixin, OrganizationMixin, Base):
    """User taking part in a project, with a free-form project role"""

    __tablename__ = "project_member"

    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="Member")
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)
