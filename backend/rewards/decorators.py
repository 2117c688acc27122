# Overview: Request decorators for API routes; bearer-token auth and the admin gate.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


# Endpoints an account with a pending forced password change may still call
PASSWORD_CHANGE_ALLOWED = {"auth.change_password_route", "auth.logout_route", "auth.me_route"}


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session.

    Sets g.current_user (the Account) and g.session_token.

    Returns 401 for a missing, invalid, expired or revoked token, and 403
    while the account still has to change its password.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        account = session_service.validate_session(token)
        if not account:
            return jsonify({"error": "Invalid or expired token"}), 401

        if account.requires_password_change and request.endpoint not in PASSWORD_CHANGE_ALLOWED:
            return jsonify({
                "error": "Password change required",
                "code": "PASSWORD_CHANGE_REQUIRED",
            }), 403

        g.current_user = account
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated account to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
