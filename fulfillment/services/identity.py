"""
Caller identity for audit stamping.

Services never look the caller up themselves; the API layer resolves it once
per request and passes it down as ``actor``.
"""
from __future__ import annotations


def resolve_actor(request) -> str | None:
    """Return the created-by reference for a request, or None if anonymous."""
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    header = request.headers.get("X-User-ID", "").strip()
    return header or None
