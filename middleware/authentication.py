"""
Per-request access token authentication.

The middleware never rejects a request. It only decides whether the request
carries a valid identity; routes that need one ask for it explicitly through
`utils.deps.get_current_identity`, which returns the 401.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from repositories.user_directory import UserDirectory
from services.signer import AccessClaims, Signer, TokenError
from utils.logger import get_logger

logger = get_logger(__name__)

PUBLIC_PATHS = frozenset(
    [
        "/auth/register",
        "/auth/login",
        "/auth/refresh",
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]
)

PUBLIC_PREFIXES = (
    "/docs/",
)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    """Authenticated principal attached to a request. Internal only."""
    id: int
    username: str
    role: str


def is_public_path(path: str) -> bool:
    path = path.rstrip("/") or "/"
    if path in PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, else None."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class AuthenticationMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        signer: Signer,
        directory_factory: Callable[[], AbstractContextManager[UserDirectory]],
    ):
        super().__init__(app)
        self.signer = signer
        self.directory_factory = directory_factory

    async def dispatch(self, request: Request, call_next):
        request.state.identity = None

        if request.method.upper() == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            logger.debug("No bearer token on request", extra={"path": request.url.path})
            return await call_next(request)

        result = self.signer.verify(token)
        if isinstance(result, TokenError):
            logger.debug(
                "Access token rejected",
                extra={"path": request.url.path, "token_error": result.kind.value}
            )
            return await call_next(request)

        request.state.identity = await run_in_threadpool(self._load_identity, result)
        return await call_next(request)

    def _load_identity(self, claims: AccessClaims) -> Identity | None:
        with self.directory_factory() as directory:
            user = directory.find_by_username(claims.username)

        if user is None or user.id != claims.principal_id:
            logger.warning(
                "Access token for unknown principal",
                extra={"username": claims.username, "user_id": claims.principal_id}
            )
            return None

        if not user.is_active:
            logger.warning(
                "Access token for inactive principal",
                extra={"user_id": user.id, "status": user.status}
            )
            return None

        return Identity(id=user.id, username=user.username, role=user.role)
