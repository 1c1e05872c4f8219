import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    FARMER = "FARMER"
    TECHNICIAN = "TECHNICIAN"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BANNED = "BANNED"


class RevokeReason(str, enum.Enum):
    USER_LOGOUT = "USER_LOGOUT"
    ADMIN_REVOKE = "ADMIN_REVOKE"
    SECURITY_EVENT = "SECURITY_EVENT"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_BEARER = "Bearer"
