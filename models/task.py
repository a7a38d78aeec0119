from datetime import date

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import TaskPriority, TaskStatus
from models.mixins import MultiTenantModel, SoftDeleteMixin


class Task(MultiTenantModel, SoftDeleteMixin, Base):
    """Unit of work inside a project"""

    __tablename__ = "task"

    project_id: Mapped[str] = mapped_column(
        String, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=TaskStatus.TODO.value)
    priority: Mapped[str] = mapped_column(String, nullable=False, default=TaskPriority.MEDIUM.value)
    assignee_user_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="RESTRICT"), nullable=False
    )

    __table_args__ = (
        CheckConstraint(f"status IN {tuple(TaskStatus.values())}", name="task_status_check"),
        CheckConstraint(f"priority IN {tuple(TaskPriority.values())}", name="task_priority_check"),
        Index("ix_task_organization_status", "organization_id", "status"),
    )
