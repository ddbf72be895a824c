"""
Caller identity and authorization checks for LearnHub.

Establishing a session (login, tokens) happens outside this package; the
session only has to carry ``user_id``. Role checks are plain function calls
made at the top of each service operation rather than route decorators.
"""

from dataclasses import dataclass

from flask import session, has_request_context

from learnhub.errors import AuthenticationRequired, PermissionDenied
from learnhub.extensions import db
from learnhub.models import Role


@dataclass(frozen=True)
class Caller:
    """The authenticated principal a service operation runs on behalf of."""
    user_id: str
    role: Role

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


# -------------------- AUTHORIZATION --------------------

def _role_value(role):
    return role.value if isinstance(role, Role) else str(role)


def is_allowed(caller_role, required_roles):
    """Return True when ``caller_role`` is one of ``required_roles``.

    An empty ``required_roles`` allows every role.
    """
    if not required_roles:
        return True
    return _role_value(caller_role) in {_role_value(r) for r in required_roles}


def authorize(caller_role, required_roles):
    """Raise PermissionDenied unless ``caller_role`` is allowed."""
    if not is_allowed(caller_role, required_roles):
        wanted = ", ".join(sorted(_role_value(r) for r in required_roles))
        raise PermissionDenied(f"This action requires one of the roles: {wanted}")


def require_caller(caller, *required_roles):
    """Return ``caller`` if authenticated and allowed, raise otherwise."""
    if caller is None:
        raise AuthenticationRequired("Authentication required.")
    authorize(caller.role, required_roles)
    return caller


# -------------------- SESSION HELPERS --------------------

def get_current_user():
    """Return the User referenced by the session, or None."""
    if not has_request_context():
        return None
    user_id = session.get('user_id')
    if not user_id:
        return None
    from learnhub.models import User  # Imported lazily to avoid circular import
    user = db.session.get(User, user_id)
    if user is None:
        # Stale session pointing at a deleted user
        session.pop('user_id', None)
    return user


def get_current_caller():
    """Return a Caller for the logged-in user, or None for anonymous requests."""
    user = get_current_user()
    if user is None:
        return None
    return Caller(user_id=user.id, role=user.role)
