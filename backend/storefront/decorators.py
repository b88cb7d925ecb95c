# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .errors import UnauthorizedError
from .services import session_service


def _unauthorized(message: str):
    error = UnauthorizedError(message)
    return jsonify(error.to_dict()), error.status_code


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext (its session row carries the cart)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _unauthorized("Authentication required")

        context = session_service.validate_session(token)
        if not context:
            return _unauthorized("Invalid or expired token")

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*role_names: str):
    """Allow the request when the current user holds any of the named roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return _unauthorized("Authentication required")

            if not g.current_user.has_role(*role_names):
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(role_names),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
