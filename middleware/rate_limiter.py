from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings


def get_user_id(request: Request):
    """
    Rate limit key: the authenticated principal when the authentication
    middleware attached one, otherwise the client address.
    """
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        return f"user:{identity.id}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.RATE_LIMIT_ENABLED,
)
