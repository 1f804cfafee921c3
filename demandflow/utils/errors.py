"""Standardised API error responses.

Usage
-----
    from demandflow.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Demand not found")
    return api_error(E.VALIDATION_REQUIRED, "date is required")

Domain exceptions raised by services are translated here once, by
``register_error_handlers(app)``, instead of per blueprint.
"""

from __future__ import annotations

import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from demandflow.core.exceptions import DemandError
from demandflow.models import db

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Scheduling conflicts – HTTP 409
    AVAILABILITY_CONFLICT = "ERR_AVAILABILITY_CONFLICT"
    NOT_WORKING_DAY = "ERR_NOT_WORKING_DAY"
    SLOT_BOOKED = "ERR_SLOT_BOOKED"

    # Lifecycle – HTTP 422
    ILLEGAL_TRANSITION = "ERR_ILLEGAL_TRANSITION"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.AVAILABILITY_CONFLICT: 409,
    E.NOT_WORKING_DAY: 409,
    E.SLOT_BOOKED: 409,
    E.ILLEGAL_TRANSITION: 422,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (conflicting slot, rejected transition, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app):
    """Map domain exceptions and persistence failures to JSON responses."""

    @app.errorhandler(DemandError)
    def _handle_domain_error(error: DemandError):
        logger.info(
            "Domain error %s: %s", error.code, error.message,
            extra={"error_code": error.code},
        )
        return api_error(error.code, error.message, status=error.status, details=error.details)

    @app.errorhandler(SQLAlchemyError)
    def _handle_database_error(error: SQLAlchemyError):
        db.session.rollback()
        logger.error("Database error: %s", error, exc_info=True)
        return api_error(E.DATABASE, "Database error")
