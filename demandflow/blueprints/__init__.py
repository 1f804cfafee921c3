"""
Demand Lifecycle & Scheduling Engine
Blueprint registry and shared request helpers.
"""

from flask import request

from demandflow.models import db
from demandflow.models.organization import User
from demandflow.utils.errors import E, api_error

USER_HEADER = "X-User-Id"


def current_user_id():
    """Resolve the authenticated user id from the ``X-User-Id`` header.

    Returns:
        (user_id, None) on success, (None, error_response) otherwise.
    """
    raw = request.headers.get(USER_HEADER)
    if not raw:
        return None, api_error(E.UNAUTHORIZED, f"{USER_HEADER} header is required")
    try:
        user_id = int(raw)
    except ValueError:
        return None, api_error(E.UNAUTHORIZED, f"{USER_HEADER} must be an integer")
    if db.session.get(User, user_id) is None:
        return None, api_error(E.UNAUTHORIZED, "Unknown user")
    return user_id, None


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
