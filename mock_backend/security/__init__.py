# Request identity

from .auth import get_user, optional_user, require_user, BearerIdentity

__all__ = ["get_user", "optional_user", "require_user", "BearerIdentity"]
