from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.mixins import MultiTenantModel


class Attachment(MultiTenantModel, Base):
    """Metadata for a file stored in the storage backend"""

    __tablename__ = "attachment"

    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_ref: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    uploaded_by: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_attachment_entity", "organization_id", "entity_type", "entity_id"),
    )
