from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import NoteEntityType
from models.mixins import MultiTenantModel, SoftDeleteMixin


class Note(MultiTenantModel, SoftDeleteMixin, Base):
    """Free-text comment on a lead, project or task"""

    __tablename__ = "note"

    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    author_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint(f"entity_type IN {tuple(NoteEntityType.values())}", name="note_entity_type_check"),
        Index("ix_note_entity", "organization_id", "entity_type", "entity_id"),
    )
