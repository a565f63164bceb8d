from enum import Enum
from pydantic import BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


# Privilege order, lowest first
ROLE_ORDER: list["Role"] = [
    Role.MEMBER,
    Role.MODERATOR,
    Role.ADMIN,
]


def coerce_role(value: object) -> Role:
    """Map a stored role value to a Role, falling back to member."""
    try:
        return Role(value)
    except ValueError:
        return Role.MEMBER


def highest_role(*values: object) -> Role:
    """Return the most privileged of the given role values."""
    roles = [coerce_role(v) for v in values if v is not None]
    if not roles:
        return Role.MEMBER
    return max(roles, key=ROLE_ORDER.index)


class ErrorDetail(BaseModel):
    code: str
    message: str


class APIError(BaseModel):
    error: ErrorDetail

