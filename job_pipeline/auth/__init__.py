from .deps import ActingUser, get_acting_user, require_roles, require_admin

__all__ = ["ActingUser", "get_acting_user", "require_roles", "require_admin"]
