"""
Request identity.

Authentication happens upstream; the proxy forwards the verified user id and
role as ``X-User-Id`` and ``X-User-Role`` headers.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import g, request

from ..exceptions import AuthorizationError

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def current_identity() -> Optional[Identity]:
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        return None
    role = request.headers.get(USER_ROLE_HEADER, "user").strip().lower() or "user"
    return Identity(user_id=user_id, role=role)


def require_user(view):
    """Reject requests without an identity; the identity is put on ``g.identity``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        identity = current_identity()
        if identity is None:
            raise AuthorizationError("Authentication required")
        g.identity = identity
        return view(*args, **kwargs)

    return wrapper


def require_admin(view):
    """Reject requests that do not carry the admin role."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        identity = current_identity()
        if identity is None:
            raise AuthorizationError("Authentication required")
        if not identity.is_admin:
            raise AuthorizationError("Admin access required", forbidden=True)
        g.identity = identity
        return view(*args, **kwargs)

    return wrapper
