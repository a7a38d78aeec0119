"""
Session and one-time token lifecycle.

A refresh token is Active until it is revoked (logout, password change,
or consumption during rotation) or expires. Expiry is detected lazily at
lookup time; there is no background sweep. Rotation makes every refresh
token single-use, so replaying an already-used token fails.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import create_access_token, create_refresh_token, verify_refresh_token
from core.config import get_settings
from core.enums import TokenType
from core.exceptions import UnauthorizedError
from core.logging import get_logger
from models.token import Token
from models.user import User
from repositories.token_repo import TokenRepository
from utils.generators import generate_token_secret

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class TokenService:
    def __init__(self, db: AsyncSession) -> None:
        self.settings = get_settings()
        self.repo = TokenRepository(db)

    async def issue_token_pair(self, user_id: str, organization_id: str) -> TokenPair:
        """
        Sign a new access/refresh pair and persist the refresh token's digest.

        The plaintexts are returned to the caller exactly once.
        """
        access_token = create_access_token(user_id, organization_id)
        refresh_lifetime = timedelta(days=self.settings.refresh_token_expire_days)
        refresh_token = create_refresh_token(user_id, organization_id, refresh_lifetime)

        await self.repo.store(
            user_id,
            TokenType.REFRESH,
            refresh_token,
            datetime.now(UTC) + refresh_lifetime,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.access_token_expire_minutes * 60,
        )

    async def consume_refresh_token(self, refresh_token: str) -> Token:
        """
        Verify and revoke a refresh token.

        Raises:
            UnauthorizedError: bad signature, unknown, revoked or expired token
        """
        payload = verify_refresh_token(refresh_token)

        token = await self.repo.consume(refresh_token, TokenType.REFRESH, datetime.now(UTC))
        if token is None or token.user_id != payload["sub"]:
            logger.info("Rejected refresh token for user %s", payload.get("sub"))
            raise UnauthorizedError("Invalid or expired refresh token")
        return token

    async def revoke_refresh_token(self, user_id: str, refresh_token: str) -> bool:
        """Revoke exactly the presented refresh token; other sessions stay valid"""
        return await self.repo.revoke_for_user(
            user_id, refresh_token, TokenType.REFRESH, datetime.now(UTC)
        )

    async def revoke_all_refresh_tokens(self, user_id: str) -> int:
        return await self.repo.revoke_all_for_user(user_id, datetime.now(UTC), TokenType.REFRESH)

    async def revoke_all_tokens(self, user_id: str) -> int:
        return await self.repo.revoke_all_for_user(user_id, datetime.now(UTC))

    async def issue_one_time_token(self, user: User, token_type: TokenType, lifetime: timedelta) -> str:
        """Create a reset/verification token; returns the plaintext secret"""
        plaintext = generate_token_secret()
        await self.repo.store(user.id, token_type, plaintext, datetime.now(UTC) + lifetime)
        return plaintext

    async def consume_one_time_token(self, plaintext: str, token_type: TokenType) -> Token:
        """
        Revoke a one-time token on use.

        Raises:
            UnauthorizedError: unknown, already used or expired token
        """
        token = await self.repo.consume(plaintext, token_type, datetime.now(UTC))
        if token is None:
            raise UnauthorizedError("Invalid or expired token")
        return token
