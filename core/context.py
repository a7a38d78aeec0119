"""
Request context management using contextvars.

Holds request-scoped data the audit trail needs (client IP and user agent)
so services don't have to thread the HTTP request through every call.

Usage:
    # In middleware:
    set_request_actor(ip_address="10.0.0.1", user_agent="curl/8.0")

    # Anywhere during the request:
    ctx = get_actor_context()
"""

from contextvars import ContextVar
from dataclasses import dataclass

_current_ip_address: ContextVar[str | None] = ContextVar("current_ip_address", default=None)
_current_user_agent: ContextVar[str | None] = ContextVar("current_user_agent", default=None)


@dataclass(frozen=True)
class ActorContext:
    """Immutable snapshot of the current request's client details."""

    ip_address: str | None = None
    user_agent: str | None = None


def set_request_actor(ip_address: str | None, user_agent: str | None) -> None:
    _current_ip_address.set(ip_address)
    _current_user_agent.set(user_agent)


def clear_request_actor() -> None:
    _current_ip_address.set(None)
    _current_user_agent.set(None)


def get_actor_context() -> ActorContext:
    """Get a snapshot of the current actor context."""
    return ActorContext(
        ip_address=_current_ip_address.get(),
        user_agent=_current_user_agent.get(),
    )
