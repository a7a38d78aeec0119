import re
from typing import Any

# bcrypt only reads the first 72 bytes of a password
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72

# People and organizations
NAME_MIN_LENGTH = 2

_DOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)*$")


def validate_password(v: str) -> str:
    """Passwords must be 8 characters long and fit in bcrypt's 72-byte input"""
    if len(v) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return v


def validate_domain(v: str) -> str:
    """Normalize an organization domain; labels of letters, digits and hyphens"""
    v = v.strip().lower()
    if not v or len(v) > 255 or not _DOMAIN_PATTERN.match(v):
        raise ValueError("Domain must contain only letters, digits, hyphens and dots")
    return v


def normalize_email(v: str) -> str:
    return v.strip().lower()


def validate_non_blank(v: str, min_length: int = 1) -> str:
    """Strip surrounding whitespace, then enforce ``min_length`` on what remains"""
    v = v.strip()
    if not v:
        raise ValueError("Value cannot be blank")
    if len(v) < min_length:
        raise ValueError(f"Value must be at least {min_length} characters")
    return v


def reject_null(v: Any) -> Any:
    """For partial updates: a field may be omitted but not explicitly set to null"""
    if v is None:
        raise ValueError("Field cannot be null")
    return v
