from tokenlife.models.refresh_token import RefreshToken
from tokenlife.models.role import Role, user_roles
from tokenlife.models.user import User

__all__ = [
    "RefreshToken",
    "Role",
    "User",
    "user_roles",
]
