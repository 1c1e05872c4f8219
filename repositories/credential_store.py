import itertools
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from models.refresh_tokens import RefreshToken


class CredentialStore(Protocol):
    """Durable storage for refresh token records, keyed by token hash."""

    def insert(self, record: RefreshToken) -> RefreshToken: ...

    def find_by_hash(self, token_hash: str) -> RefreshToken | None: ...

    def find_by_principal(self, principal_id: int) -> list[RefreshToken]:
        """Every record of a principal, revoked ones included. Audit and test use; the auth flows look up by hash."""
        ...

    def update_revoked(self, token_hash: str, reason: str, revoked_at: datetime) -> bool: ...

    def update_all_revoked_for_principal(self, principal_id: int, reason: str, revoked_at: datetime) -> int: ...


class SqlAlchemyCredentialStore:
    """
    Credential store over the `refresh_tokens` table.

    Every mutation is a single statement followed by a commit, which is all
    the atomicity the token manager relies on.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(self, record: RefreshToken) -> RefreshToken:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def find_by_hash(self, token_hash: str) -> RefreshToken | None:
        return self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash
        ).one_or_none()

    def find_by_principal(self, principal_id: int) -> list[RefreshToken]:
        return self.db.query(RefreshToken).filter(
            RefreshToken.user_id == principal_id
        ).order_by(RefreshToken.id).all()

    def update_revoked(self, token_hash: str, reason: str, revoked_at: datetime) -> bool:
        # Already-revoked rows keep their original revocation time and reason
        matched = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash
        ).count()
        if not matched:
            return False

        self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False  # noqa: E712
        ).update(
            {"is_revoked": True, "revoked_at": revoked_at, "revoked_reason": reason},
            synchronize_session="fetch",
        )
        self.db.commit()
        return True

    def update_all_revoked_for_principal(self, principal_id: int, reason: str, revoked_at: datetime) -> int:
        count = self.db.query(RefreshToken).filter(
            RefreshToken.user_id == principal_id,
            RefreshToken.is_revoked == False  # noqa: E712
        ).update(
            {"is_revoked": True, "revoked_at": revoked_at, "revoked_reason": reason},
            synchronize_session="fetch",
        )
        self.db.commit()
        return count


class InMemoryCredentialStore:
    """Dict-backed credential store for tests and single-process tooling."""

    def __init__(self):
        self._records: dict[str, RefreshToken] = {}
        self._ids = itertools.count(1)

    def insert(self, record: RefreshToken) -> RefreshToken:
        if record.token_hash in self._records:
            raise ValueError("Duplicate refresh token hash")
        record.id = next(self._ids)
        self._records[record.token_hash] = record
        return record

    def find_by_hash(self, token_hash: str) -> RefreshToken | None:
        return self._records.get(token_hash)

    def find_by_principal(self, principal_id: int) -> list[RefreshToken]:
        return [r for r in self._records.values() if r.user_id == principal_id]

    def update_revoked(self, token_hash: str, reason: str, revoked_at: datetime) -> bool:
        record = self._records.get(token_hash)
        if record is None:
            return False
        if not record.is_revoked:
            record.revoke(reason, revoked_at)
        return True

    def update_all_revoked_for_principal(self, principal_id: int, reason: str, revoked_at: datetime) -> int:
        count = 0
        for record in self.find_by_principal(principal_id):
            if not record.is_revoked:
                record.revoke(reason, revoked_at)
                count += 1
        return count
