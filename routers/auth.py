from fastapi import APIRouter, Request
from starlette import status

from middleware.rate_limiter import limiter
from schemas.auth_schemas import (CreateUserRequest, LoginRequest, PrincipalSummary,
                                  RefreshTokenRequest, RevokeAllResponse, TokenResponse)
from schemas.common import ApiResponse
from services.auth_service import TokenBundle
from utils.deps import authenticator_dependency, identity_dependency
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)

# Per client. Must stay above the failed attempts a user makes before
# getting the password right; there is no account lockout
LOGIN_RATE_LIMIT = "10/minute"


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _token_response(bundle: TokenBundle) -> TokenResponse:
    return TokenResponse(
        access_token=bundle.access_token,
        refresh_token=bundle.refresh_token,
        token_type=bundle.token_type,
        expires_in=bundle.expires_in,
        principal_summary=PrincipalSummary.model_validate(bundle.principal),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ApiResponse[PrincipalSummary])
@limiter.limit("3/minute")
def register(request: Request, body: CreateUserRequest, auth: authenticator_dependency):
    user = auth.register(body)

    return ApiResponse[PrincipalSummary].success(PrincipalSummary.model_validate(user))


@router.post("/login", response_model=ApiResponse[TokenResponse])
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, body: LoginRequest, auth: authenticator_dependency):
    bundle = auth.login(
        body.username,
        body.password,
        device_info=request.headers.get("X-Device-Info"),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )

    return ApiResponse[TokenResponse].success(_token_response(bundle))


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
@limiter.limit("10/minute")
def refresh_token(request: Request, body: RefreshTokenRequest, auth: authenticator_dependency):
    """
    Get a new access token using a refresh token.

    The same refresh token is returned; it stays valid until it expires or
    is revoked.
    """
    bundle = auth.refresh(body.refresh_token)

    return ApiResponse[TokenResponse].success(_token_response(bundle))


@router.post("/logout", response_model=ApiResponse[None])
@limiter.limit("10/minute")
def logout(request: Request, body: RefreshTokenRequest, auth: authenticator_dependency):
    """
    Revoke one refresh token (logout on this device).
    """
    auth.logout(body.refresh_token)

    logger.info("User logged out")

    return ApiResponse[None].success(message="Logged out successfully")


@router.post("/revoke-all", response_model=ApiResponse[RevokeAllResponse])
@limiter.limit("10/minute")
def revoke_all(request: Request, identity: identity_dependency, auth: authenticator_dependency):
    """
    Revoke every refresh token of the current user (logout on all devices).
    """
    count = auth.revoke_all_sessions(identity.id)

    logger.info(
        "User revoked all sessions",
        extra={"user_id": identity.id, "revoked_count": count}
    )

    return ApiResponse[RevokeAllResponse].success(
        RevokeAllResponse(revoked_count=count),
        message="All devices have been logged out",
    )
