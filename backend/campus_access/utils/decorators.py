"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, jwt_required
from campus_access import db
from campus_access.models.user import User, UserRole
from campus_access.utils.helpers import error_response

def current_user() -> User:
    """User loaded by ``roles_required`` for this request."""
    return g.current_user

def roles_required(*roles: UserRole):
    """Require a valid JWT whose user is active and holds one of ``roles``.

    With no roles, any active user is accepted.
    """
    def decorator(f):
        @wraps(f)
        @jwt_required()
        def decorated_function(*args, **kwargs):
            identity = get_jwt_identity()
            user = db.session.get(User, int(identity)) if str(identity).isdigit() else None

            if not user or not user.is_active:
                return error_response("User not found", 404)

            if roles and user.role not in roles:
                allowed = ', '.join(role.value for role in roles)
                return error_response(f"Access restricted to: {allowed}", 403)

            g.current_user = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator
