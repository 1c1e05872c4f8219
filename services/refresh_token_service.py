import hashlib
import secrets
from datetime import timedelta

from core.exceptions import NotFoundError, RefreshTokenError
from models.refresh_tokens import RefreshToken
from repositories.credential_store import CredentialStore
from utils.clock import Clock, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


class RefreshTokenManager:
    """
    Handles the stateful half of the credential lifecycle: issuing,
    redeeming and revoking refresh tokens.

    The raw token is handed to the caller once and never stored or logged;
    the store only ever sees its SHA-256 hash. Redeeming does not rotate the
    token, so a leaked token stays usable until it expires or is revoked.
    """

    def __init__(self, store: CredentialStore, refresh_ttl: timedelta, clock: Clock = utc_now):
        self.store = store
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @staticmethod
    def generate_token() -> str:
        # 256 bits of entropy
        return secrets.token_urlsafe(32)

    @staticmethod
    def hash_token(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

    def issue(
        self,
        principal_id: int,
        device_info: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> str:
        """
        Creates a refresh token record for a principal.

        Returns:
            The raw refresh token (only the hash is persisted)
        """
        raw_token = self.generate_token()
        now = self._clock()

        record = RefreshToken(
            user_id=principal_id,
            token_hash=self.hash_token(raw_token),
            expires_at=now + self.refresh_ttl,
            is_revoked=False,
            device_info=device_info,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
        )
        record = self.store.insert(record)

        logger.info(
            "Refresh token issued",
            extra={"user_id": principal_id, "token_id": record.id, "ip_address": ip_address}
        )

        return raw_token

    def redeem(self, raw_token: str) -> RefreshToken:
        """
        Looks up a refresh token and checks that it is still valid.

        Raises:
            RefreshTokenError: reason NOT_FOUND, REVOKED or EXPIRED
        """
        record = self.store.find_by_hash(self.hash_token(raw_token))

        if record is None:
            logger.warning("Refresh token not found")
            raise RefreshTokenError(RefreshTokenError.NOT_FOUND)

        if record.is_revoked:
            logger.warning(
                "Revoked refresh token presented",
                extra={"user_id": record.user_id, "token_id": record.id, "revoked_reason": record.revoked_reason}
            )
            raise RefreshTokenError(RefreshTokenError.REVOKED)

        if record.is_expired(self._clock()):
            logger.info(
                "Expired refresh token presented",
                extra={"user_id": record.user_id, "token_id": record.id}
            )
            raise RefreshTokenError(RefreshTokenError.EXPIRED)

        return record

    def revoke(self, raw_token: str, reason: str) -> RefreshToken:
        """
        Revokes one refresh token (single-device logout).

        Raises:
            NotFoundError: no record matches the token
        """
        token_hash = self.hash_token(raw_token)

        if not self.store.update_revoked(token_hash, reason, self._clock()):
            logger.warning("Revoke requested for unknown refresh token")
            raise NotFoundError("Refresh token does not exist")

        record = self.store.find_by_hash(token_hash)
        logger.info(
            "Refresh token revoked",
            extra={"user_id": record.user_id, "token_id": record.id, "reason": reason}
        )
        return record

    def revoke_all(self, principal_id: int, reason: str) -> int:
        """
        Revokes every live refresh token of a principal (logout everywhere).

        Returns:
            Number of records revoked by this call; 0 when there were none
        """
        count = self.store.update_all_revoked_for_principal(principal_id, reason, self._clock())

        logger.info(
            "All refresh tokens revoked",
            extra={"user_id": principal_id, "revoked_count": count, "reason": reason}
        )
        return count
