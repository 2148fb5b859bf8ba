"""Admin gate for moderation queue operations.

There are no roles yet: a caller is an admin iff it matches the configured
admin user id or admin email. The policy object is built once at startup and
handed to the services, which never read the environment themselves.
"""
from typing import Any, Optional, Protocol

from app.core.errors import Forbidden, Unauthorized


class AuthorizationPolicy(Protocol):
    def is_admin(self, identity: Any) -> bool:
        ...


class AllowListPolicy:
    def __init__(self, admin_user_id: Optional[str] = None, admin_email: Optional[str] = None):
        self.admin_user_id = str(admin_user_id) if admin_user_id else None
        self.admin_email = admin_email.lower() if admin_email else None

    @classmethod
    def from_settings(cls, settings) -> "AllowListPolicy":
        return cls(admin_user_id=settings.ADMIN_USER_ID, admin_email=settings.ADMIN_EMAIL)

    def is_admin(self, identity: Any) -> bool:
        if identity is None:
            return False

        id_ok = self.admin_user_id is not None and str(identity.id) == self.admin_user_id

        email = getattr(identity, "email", None)
        email_ok = self.admin_email is not None and bool(email) and email.lower() == self.admin_email

        return id_ok or email_ok


def require_authenticated(identity: Any) -> None:
    if identity is None:
        raise Unauthorized()


def require_admin(policy: AuthorizationPolicy, identity: Any) -> None:
    """
    Raise ``Unauthorized`` when there is no identity and a generic
    ``Forbidden`` when the identity is not on the allow-list.
    """
    require_authenticated(identity)
    if not policy.is_admin(identity):
        raise Forbidden()
