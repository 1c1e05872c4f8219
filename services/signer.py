import enum
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt, JWTError
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode, base64url_encode

from core.constants import TOKEN_TYPE_ACCESS
from utils.clock import Clock, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

BASE64URL_SEGMENT = re.compile(r"^[A-Za-z0-9_-]*$")


def _is_canonical_base64url(segment: str) -> bool:
    if not BASE64URL_SEGMENT.match(segment):
        return False
    try:
        decoded = base64url_decode(segment.encode("ascii"))
    except (ValueError, TypeError):
        return False
    return base64url_encode(decoded).decode("ascii") == segment


def _decodes_to_object(segment: str) -> bool:
    if not segment or not BASE64URL_SEGMENT.match(segment):
        return False
    try:
        value = json.loads(base64url_decode(segment.encode("ascii")))
    except (ValueError, TypeError):
        return False
    return isinstance(value, dict)


class TokenErrorKind(str, enum.Enum):
    MALFORMED = "MALFORMED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_CLAIMS = "INVALID_CLAIMS"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class TokenError:
    kind: TokenErrorKind
    detail: str


@dataclass(frozen=True)
class AccessClaims:
    principal_id: int
    username: str
    role: str
    issuer: str
    issued_at: datetime
    expires_at: datetime


class Signer:
    """
    Issues and verifies access tokens (HMAC-signed JWTs).

    The signer holds no mutable state: the secret, algorithm and TTL are
    fixed at construction, so one instance is shared by every request.
    Verification never raises; every failure comes back as a `TokenError`.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str,
        issuer: str,
        access_ttl: timedelta,
        leeway: timedelta = timedelta(seconds=1),
        clock: Clock = utc_now,
    ):
        if not secret or not secret.strip():
            raise RuntimeError("SECRET_KEY must be set (auth is required).")
        if not algorithm.upper().startswith("HS"):
            raise RuntimeError("Access tokens must use an HMAC algorithm (HS256/HS384/HS512).")

        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer
        self._access_ttl = access_ttl
        self._leeway = leeway
        self._clock = clock

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._access_ttl.total_seconds())

    def issue(self, principal_id: int, username: str, role: str, ttl: timedelta | None = None) -> str:
        """
        Creates a signed access token.

        Args:
            principal_id: User's ID
            username: User's username (token subject)
            role: User's role
            ttl: Token lifetime (default: configured access TTL)

        Returns:
            Compact JWT string
        """
        if ttl is None:
            ttl = self._access_ttl

        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + int(ttl.total_seconds())

        payload = {
            "sub": username,
            "uid": principal_id,
            "role": role,
            "type": TOKEN_TYPE_ACCESS,
            "iss": self._issuer,
            "iat": issued_at,
            "exp": expires_at,
        }

        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> AccessClaims | TokenError:
        """
        Checks structure, signature, issuer, token type and expiry.

        Expiry is checked here against the injected clock, with the configured
        leeway, rather than by python-jose against the wall clock.
        """
        if not isinstance(token, str) or not token:
            return TokenError(TokenErrorKind.MALFORMED, "Empty token")

        segments = token.split(".")
        if len(segments) != 3:
            return TokenError(TokenErrorKind.MALFORMED, "Token must have three segments")

        header_segment, payload_segment, signature_segment = segments
        if not (_decodes_to_object(header_segment) and _decodes_to_object(payload_segment)):
            return TokenError(TokenErrorKind.MALFORMED, "Token could not be decoded")

        # python-jose tolerates stray characters and non-zero padding bits,
        # so more than one string would otherwise verify for the same MAC
        if not _is_canonical_base64url(signature_segment):
            return TokenError(TokenErrorKind.INVALID_SIGNATURE, "Signature verification failed")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTClaimsError as e:
            return TokenError(TokenErrorKind.INVALID_CLAIMS, str(e))
        except JWTError:
            return TokenError(TokenErrorKind.INVALID_SIGNATURE, "Signature verification failed")

        return self._check_claims(payload)

    def _check_claims(self, payload: dict[str, Any]) -> AccessClaims | TokenError:
        username = payload.get("sub")
        principal_id = payload.get("uid")
        role = payload.get("role")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")

        if payload.get("type") != TOKEN_TYPE_ACCESS:
            return TokenError(TokenErrorKind.INVALID_CLAIMS, "Invalid token type. Access token required.")

        if not username or principal_id is None or not role:
            return TokenError(TokenErrorKind.INVALID_CLAIMS, "Missing identity claims")

        if not isinstance(expires_at, (int, float)) or not isinstance(issued_at, (int, float)):
            return TokenError(TokenErrorKind.INVALID_CLAIMS, "Missing timestamp claims")

        now = self._clock().timestamp()
        if now >= expires_at + self._leeway.total_seconds():
            return TokenError(TokenErrorKind.EXPIRED, "Token expired")

        return AccessClaims(
            principal_id=principal_id,
            username=username,
            role=role,
            issuer=payload["iss"],
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )

    def subject(self, token: str) -> str | None:
        """Username from a token, only if the token verifies."""
        result = self.verify(token)
        if isinstance(result, TokenError):
            logger.debug("Token subject unavailable", extra={"token_error": result.kind.value})
            return None
        return result.username
