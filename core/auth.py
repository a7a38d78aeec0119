"""
Credential primitives: password hashing, JWT signing and token digests.

Access tokens carry identity only (user and organization). Permissions are
resolved per request, so role edits apply to tokens already in circulation.
Access tokens are verified statelessly and cannot be revoked before they
expire; refresh tokens are revocable because their digest is persisted.
"""

import hashlib
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.exceptions import UnauthorizedError
from utils.generators import generate_cuid

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _encode(claims: dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    to_encode = {**claims, "iat": now, "exp": now + expires_delta}
    encoded_jwt = jwt.encode(to_encode, secret, algorithm=settings.algorithm)
    assert isinstance(encoded_jwt, str)
    return encoded_jwt


def _decode(token: str, secret: str, expected_type: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])
    except JWTError as e:
        raise UnauthorizedError("Invalid or expired token") from e

    if not isinstance(payload, dict) or payload.get("type") != expected_type:
        raise UnauthorizedError("Invalid token type")
    if not payload.get("sub") or not payload.get("org_id"):
        raise UnauthorizedError("Invalid token claims")
    return payload


def create_access_token(
    user_id: str, organization_id: str, expires_delta: timedelta | None = None
) -> str:
    """Create a short-lived access token with user and organization claims"""
    settings = get_settings()
    return _encode(
        {"sub": user_id, "org_id": organization_id, "type": ACCESS_TOKEN_TYPE},
        settings.secret_key,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    user_id: str, organization_id: str, expires_delta: timedelta | None = None
) -> str:
    """Create a refresh token; ``jti`` keeps tokens issued in the same second distinct"""
    settings = get_settings()
    return _encode(
        {
            "sub": user_id,
            "org_id": organization_id,
            "type": REFRESH_TOKEN_TYPE,
            "jti": generate_cuid(),
        },
        settings.refresh_secret_key,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def verify_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry, returns payload. Raises UnauthorizedError."""
    return _decode(token, get_settings().secret_key, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> dict[str, Any]:
    return _decode(token, get_settings().refresh_secret_key, REFRESH_TOKEN_TYPE)


def hash_token(plaintext: str) -> str:
    """Deterministic SHA-256 hex digest used to store token secrets"""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash; malformed hashes never match"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt at the configured cost"""
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")
