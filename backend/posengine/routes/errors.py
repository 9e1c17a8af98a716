# Overview: Maps engine errors to JSON responses.

from flask import current_app, jsonify

from ..exceptions import (
    ConcurrencyConflict,
    NotFoundError,
    PriceNotFoundError,
    TransactionError,
    ValidationError,
)

STATUS_CODES = (
    (NotFoundError, 404),
    (PriceNotFoundError, 422),
    (ValidationError, 422),
    (ConcurrencyConflict, 409),
)


def error_response(e: TransactionError):
    for error_cls, status_code in STATUS_CODES:
        if isinstance(e, error_cls):
            return jsonify({"error": e.message, "details": e.details}), status_code
    current_app.logger.error("Unmapped transaction error: %s", e)
    return jsonify({"error": e.message, "details": e.details}), 400
