from contextlib import contextmanager
from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.config import settings
from core.database import SessionLocal
from core.exceptions import UnauthorizedError
from middleware.authentication import Identity
from repositories.credential_store import SqlAlchemyCredentialStore
from repositories.user_directory import SqlAlchemyUserDirectory
from services.auth_service import Authenticator
from services.refresh_token_service import RefreshTokenManager
from services.signer import Signer
from utils.hashing import PasswordVerifier, password_verifier


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


db_dependency = Annotated[Session, Depends(get_db)]


@contextmanager
def open_user_directory() -> Iterator[SqlAlchemyUserDirectory]:
    """Short-lived directory for code that runs outside a route (middleware)."""
    db = SessionLocal()
    try:
        yield SqlAlchemyUserDirectory(db)
    finally:
        db.close()


@lru_cache
def get_signer() -> Signer:
    # Built once from the frozen settings and shared by every request
    return Signer(
        secret=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        issuer=settings.JWT_ISSUER,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        leeway=timedelta(seconds=settings.TOKEN_LEEWAY_SECONDS),
    )


def get_password_verifier() -> PasswordVerifier:
    return password_verifier


def get_authenticator(
    db: db_dependency,
    signer: Annotated[Signer, Depends(get_signer)],
    passwords: Annotated[PasswordVerifier, Depends(get_password_verifier)],
) -> Authenticator:
    refresh_tokens = RefreshTokenManager(
        SqlAlchemyCredentialStore(db),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return Authenticator(
        directory=SqlAlchemyUserDirectory(db),
        refresh_tokens=refresh_tokens,
        signer=signer,
        passwords=passwords,
    )


authenticator_dependency = Annotated[Authenticator, Depends(get_authenticator)]


def get_current_identity(request: Request) -> Identity:
    """Identity attached by AuthenticationMiddleware, or 401."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise UnauthorizedError("Authentication required, please log in")
    return identity


identity_dependency = Annotated[Identity, Depends(get_current_identity)]
