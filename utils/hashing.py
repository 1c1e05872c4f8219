from passlib.context import CryptContext

# Bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_LENGTH = 72


class PasswordVerifier:
    """
    Salted slow hashing for passwords, backed by passlib's bcrypt handler.

    Comparison is done by passlib in constant time. `matches` never raises:
    a malformed or unknown stored hash simply doesn't match.
    """

    def __init__(self, rounds: int | None = None):
        options = {"bcrypt__rounds": rounds} if rounds else {}
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", **options)

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext[:BCRYPT_MAX_LENGTH])

    def matches(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(plaintext[:BCRYPT_MAX_LENGTH], hashed)
        except (ValueError, TypeError):
            # passlib raises ValueError (incl. UnknownHashError) for garbage hashes
            return False

    def dummy_verify(self) -> None:
        """Spend the time of one verification, for lookups that found no user."""
        self._context.dummy_verify()


password_verifier = PasswordVerifier()
