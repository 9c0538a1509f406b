"""Shared rate limiter instance for use across route files."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from dinepos.core.config import settings


def get_terminal_or_ip(request: Request) -> str:
    """Rate limit by logged-in staff if a token is present, else by IP."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        from dinepos.core.security import decode_access_token
        payload = decode_access_token(auth.split(" ", 1)[1])
        if payload and payload.get("sub"):
            return f"staff:{payload['sub']}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_terminal_or_ip, enabled=settings.rate_limit_enabled)
