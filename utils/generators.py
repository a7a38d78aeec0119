import secrets

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier"""
    result = cuid_generator()
    assert isinstance(result, str)
    return result


def generate_token_secret(num_bytes: int = 32) -> str:
    """Random hex secret for one-time tokens (reset, email verification)"""
    return secrets.token_hex(num_bytes)


def generate_unusable_password() -> str:
    """Placeholder credential for invited users; never shown to anyone"""
    return secrets.token_urlsafe(32)
