"""Request helpers shared by the API blueprints.

Sign-in happens at the identity provider; requests carry the resulting user
ID in the ``X-User-Id`` header.
"""
from flask import current_app, request
from marketplace.errors import Forbidden, Unauthorized, ValidationError

USER_HEADER = "X-User-Id"


def current_user_id():
    """User ID of the caller, or None for anonymous requests."""
    user_id = request.headers.get(USER_HEADER, "").strip()
    return user_id or None


def require_user():
    user_id = current_user_id()
    if not user_id:
        raise Unauthorized("Please sign in first")
    return user_id


def require_admin():
    user_id = require_user()
    if user_id not in current_app.config["ADMIN_USER_IDS"]:
        current_app.logger.info("Rejected non-admin user: %s", user_id)
        raise Forbidden("Admin access required")
    return user_id


def json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body")
    return payload
