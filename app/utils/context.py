from contextvars import ContextVar
from typing import Optional

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_id_context: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_context.get()


def set_request_id(request_id: str) -> None:
    """Set the request ID in context."""
    request_id_context.set(request_id)


def get_actor_id() -> Optional[str]:
    """Get the ID of the staff member acting on the current request, if known."""
    return actor_id_context.get()


def set_actor_id(actor_id: Optional[str]) -> None:
    """Set the acting staff member ID in context (used for enrollment audit fields)."""
    actor_id_context.set(actor_id)
