from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from core.enums import TokenType
from models.mixins import CreatedAtMixin, CuidMixin


class Token(CuidMixin, CreatedAtMixin, Base):
    """
    Single-use credential bound to a user (refresh, password reset, email verify).

    Only the SHA-256 digest of the secret is stored. A token is usable while
    ``revoked_at IS NULL AND now < expires_at``; tokens are revoked, never deleted.
    """

    __tablename__ = "token"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (CheckConstraint(f"type IN {tuple(TokenType.values())}", name="token_type_check"),)
