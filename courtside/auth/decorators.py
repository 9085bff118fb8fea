"""Decorators for the auth blueprint."""

from functools import wraps

from flask import jsonify, session

from courtside.errors import PermissionDeniedError


def login_required(f=None, admin_required=False):
    """Reject the request unless a user is logged in.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"error": "Authentication required."}), 401
            if admin_required and not session.get("is_admin"):
                raise PermissionDeniedError(
                    "Only tournament administrators can perform this action."
                )
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
