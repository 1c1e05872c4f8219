import itertools
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.orm import Session

from models.users import User


class UserDirectory(Protocol):
    """Lookup and registration of principals. The auth core only reads status."""

    def find_by_username(self, username: str) -> User | None: ...

    def find_by_id(self, principal_id: int) -> User | None: ...

    def exists_by_username(self, username: str) -> bool: ...

    def exists_by_phone(self, phone_number: str) -> bool: ...

    def exists_by_email(self, email: str) -> bool: ...

    def create(
        self,
        *,
        username: str,
        password_hash: str,
        real_name: str,
        phone_number: str,
        role: str,
        status: str,
        email: str | None = None,
    ) -> User: ...

    def update_status(self, principal_id: int, status: str) -> User | None:
        """Admin and test hook; the auth services only read status."""
        ...


class SqlAlchemyUserDirectory:

    def __init__(self, db: Session):
        self.db = db

    def find_by_username(self, username: str) -> User | None:
        return self.db.query(User).filter(User.username == username).one_or_none()

    def find_by_id(self, principal_id: int) -> User | None:
        return self.db.query(User).filter(User.id == principal_id).one_or_none()

    def exists_by_username(self, username: str) -> bool:
        return self.db.query(User.id).filter(User.username == username).first() is not None

    def exists_by_phone(self, phone_number: str) -> bool:
        return self.db.query(User.id).filter(User.phone_number == phone_number).first() is not None

    def exists_by_email(self, email: str) -> bool:
        return self.db.query(User.id).filter(User.email == email).first() is not None

    def create(self, *, username, password_hash, real_name, phone_number, role, status, email=None) -> User:
        model = User(
            username=username,
            password_hash=password_hash,
            email=email,
            real_name=real_name,
            phone_number=phone_number,
            role=role,
            status=status,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        return model

    def update_status(self, principal_id: int, status: str) -> User | None:
        model = self.find_by_id(principal_id)
        if model is None:
            return None
        model.status = status
        self.db.commit()
        return model


class InMemoryUserDirectory:

    def __init__(self):
        self._users: dict[int, User] = {}
        self._ids = itertools.count(1)

    def find_by_username(self, username: str) -> User | None:
        return next((u for u in self._users.values() if u.username == username), None)

    def find_by_id(self, principal_id: int) -> User | None:
        return self._users.get(principal_id)

    def exists_by_username(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def exists_by_phone(self, phone_number: str) -> bool:
        return any(u.phone_number == phone_number for u in self._users.values())

    def exists_by_email(self, email: str) -> bool:
        return any(u.email == email for u in self._users.values())

    def create(self, *, username, password_hash, real_name, phone_number, role, status, email=None) -> User:
        now = datetime.now(timezone.utc)
        model = User(
            id=next(self._ids),
            username=username,
            password_hash=password_hash,
            email=email,
            real_name=real_name,
            phone_number=phone_number,
            role=role,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self._users[model.id] = model
        return model

    def update_status(self, principal_id: int, status: str) -> User | None:
        model = self._users.get(principal_id)
        if model is not None:
            model.status = status
        return model
