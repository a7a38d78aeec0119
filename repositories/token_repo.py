from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from core.auth import hash_token
from core.enums import TokenType
from models.token import Token
from repositories.base import BaseRepository


class TokenRepository(BaseRepository[Token]):
    """
    Persistence for single-use tokens.

    Plaintexts never reach the database; every lookup re-hashes the
    presented value. Revocation uses a conditional UPDATE so that of two
    concurrent consumers of the same token at most one wins.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, Token)

    async def store(
        self, user_id: str, token_type: TokenType, plaintext: str, expires_at: datetime
    ) -> Token:
        token = Token(
            user_id=user_id,
            type=token_type.value,
            token_hash=hash_token(plaintext),
            expires_at=expires_at,
        )
        return await self.create(token)

    async def find_usable(self, plaintext: str, token_type: TokenType, now: datetime) -> Token | None:
        """Active token matching the plaintext: unrevoked and unexpired"""
        result = await self.db.execute(
            select(Token).where(
                Token.token_hash == hash_token(plaintext),
                Token.type == token_type.value,
                Token.revoked_at.is_(None),
                Token.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    async def consume(self, plaintext: str, token_type: TokenType, now: datetime) -> Token | None:
        """
        Revoke a usable token and return it.

        Returns None when the token is unknown, already revoked or expired,
        including when a concurrent caller revoked it first.
        """
        token = await self.find_usable(plaintext, token_type, now)
        if token is None:
            return None

        result = await self.db.execute(
            update(Token)
            .where(Token.id == token.id, Token.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        set_committed_value(token, "revoked_at", now)
        return token

    async def revoke_for_user(
        self, user_id: str, plaintext: str, token_type: TokenType, now: datetime
    ) -> bool:
        """Revoke exactly one token belonging to the user"""
        result = await self.db.execute(
            update(Token)
            .where(
                Token.user_id == user_id,
                Token.token_hash == hash_token(plaintext),
                Token.type == token_type.value,
                Token.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def revoke_all_for_user(
        self, user_id: str, now: datetime, token_type: TokenType | None = None
    ) -> int:
        """Revoke every outstanding token of the user (optionally of one type)"""
        query = update(Token).where(Token.user_id == user_id, Token.revoked_at.is_(None))
        if token_type is not None:
            query = query.where(Token.type == token_type.value)
        result = await self.db.execute(
            query.values(revoked_at=now).execution_options(synchronize_session=False)
        )
        return result.rowcount
