from core.database import Base
from core.constants import Role, UserStatus
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    Authenticated principal.

    Owned by the user directory; the auth services only read it, apart from
    the insert performed at registration.
    """
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user")

    username = Column(String(20), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    real_name = Column(String(50), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default=Role.FARMER.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
