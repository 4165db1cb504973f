from dataclasses import dataclass

from common.models.users import UserRole
from common.utils.custom_exceptions import Unauthorized


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def get_auth_context(event: dict) -> AuthContext:
    """Build the caller's context from the API Gateway authorizer output."""
    try:
        authorizer = event["requestContext"]["authorizer"]
        user_id = authorizer["user_id"]
    except (KeyError, TypeError):
        raise Unauthorized("Unauthorized")

    if not user_id:
        raise Unauthorized("Unauthorized")

    role_raw = authorizer.get("role") or UserRole.USER.value
    try:
        role = UserRole(role_raw.upper())
    except ValueError:
        raise Unauthorized(f"Unknown role '{role_raw}'")

    return AuthContext(user_id=user_id, role=role)
