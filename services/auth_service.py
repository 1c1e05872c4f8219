from dataclasses import dataclass

from core.constants import RevokeReason, TOKEN_TYPE_BEARER, UserStatus
from core.exceptions import ConflictError, ForbiddenError, UnauthorizedError
from models.users import User
from repositories.user_directory import UserDirectory
from schemas.auth_schemas import CreateUserRequest
from services.refresh_token_service import RefreshTokenManager
from services.signer import Signer, TokenError
from utils.hashing import PasswordVerifier
from utils.logger import get_logger

logger = get_logger(__name__)

# One message for unknown user and wrong password, so responses can't be
# used to enumerate usernames
INVALID_CREDENTIALS = "Invalid username or password"


@dataclass(frozen=True)
class TokenBundle:
    access_token: str
    refresh_token: str
    expires_in: int
    principal: User
    token_type: str = TOKEN_TYPE_BEARER


class Authenticator:
    """
    Orchestrates registration, login, refresh, logout and revoke-all.

    Session state per refresh record is ACTIVE -> REVOKED (explicit write)
    or ACTIVE -> EXPIRED (time driven). Account status is re-read on every
    refresh, so disabling an account cuts off new access tokens without
    touching stored refresh tokens.
    """

    def __init__(
        self,
        directory: UserDirectory,
        refresh_tokens: RefreshTokenManager,
        signer: Signer,
        passwords: PasswordVerifier,
    ):
        self.directory = directory
        self.refresh_tokens = refresh_tokens
        self.signer = signer
        self.passwords = passwords

    def register(self, request: CreateUserRequest) -> User:
        """
        Creates a new active user.

        Flow:
        1. Reject duplicate username, phone number or email
        2. Hash the password
        3. Hand the user to the directory for persistence
        """
        if self.directory.exists_by_username(request.username):
            logger.warning(
                "Registration attempt with existing username",
                extra={"username": request.username}
            )
            raise ConflictError("Username already exists")

        if self.directory.exists_by_phone(request.phone_number):
            logger.warning(
                "Registration attempt with existing phone number",
                extra={"username": request.username}
            )
            raise ConflictError("Phone number already registered")

        if request.email and self.directory.exists_by_email(request.email):
            logger.warning(
                "Registration attempt with existing email",
                extra={"username": request.username}
            )
            raise ConflictError("Email already registered")

        user = self.directory.create(
            username=request.username,
            password_hash=self.passwords.hash(request.password),
            email=request.email,
            real_name=request.real_name,
            phone_number=request.phone_number,
            role=request.role,
            status=UserStatus.ACTIVE.value,
        )

        logger.info(
            "User registered successfully",
            extra={"user_id": user.id, "username": user.username}
        )
        return user

    def login(
        self,
        username: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> TokenBundle:
        user = self.directory.find_by_username(username)

        if not user:
            self.passwords.dummy_verify()
            logger.warning(
                "Login failed - user not found",
                extra={"username": username, "ip_address": ip_address}
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not self.passwords.matches(password, user.password_hash):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "username": username, "ip_address": ip_address}
            )
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.warning(
                "Login failed - account not active",
                extra={"user_id": user.id, "username": username, "status": user.status}
            )
            raise ForbiddenError("Account is disabled or not activated")

        access_token = self.signer.issue(user.id, user.username, user.role)
        refresh_token = self.refresh_tokens.issue(
            user.id,
            device_info=device_info,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id, "username": user.username}
        )

        return TokenBundle(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.signer.expires_in,
            principal=user,
        )

    def refresh(self, raw_refresh_token: str) -> TokenBundle:
        """
        Issues a new access token for a valid refresh token.

        The refresh token itself is returned unchanged (no rotation).
        """
        record = self.refresh_tokens.redeem(raw_refresh_token)

        user = self.directory.find_by_id(record.user_id)
        if not user:
            logger.warning(
                "Refresh failed - user no longer exists",
                extra={"user_id": record.user_id, "token_id": record.id}
            )
            raise UnauthorizedError("Invalid refresh token")

        if not user.is_active:
            logger.warning(
                "Refresh failed - account not active",
                extra={"user_id": user.id, "status": user.status}
            )
            raise ForbiddenError("Account is disabled")

        access_token = self.signer.issue(user.id, user.username, user.role)

        logger.info("Access token refreshed", extra={"user_id": user.id, "token_id": record.id})

        return TokenBundle(
            access_token=access_token,
            refresh_token=raw_refresh_token,
            expires_in=self.signer.expires_in,
            principal=user,
        )

    def logout(self, raw_refresh_token: str) -> None:
        self.refresh_tokens.revoke(raw_refresh_token, RevokeReason.USER_LOGOUT.value)

    def revoke_all_sessions(self, principal_id: int, reason: RevokeReason = RevokeReason.SECURITY_EVENT) -> int:
        return self.refresh_tokens.revoke_all(principal_id, reason.value)

    def verify_access_token(self, token: str) -> bool:
        return not isinstance(self.signer.verify(token), TokenError)
