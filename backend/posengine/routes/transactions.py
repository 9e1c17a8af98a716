# Overview: Flask API routes for POS transactions; parses input and returns JSON responses.

# backend/posengine/routes/transactions.py
"""
Transaction API routes.

Every route wraps exactly one transaction_service operation. The acting user
comes from the X-Actor-Id header (see require_actor).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..exceptions import TransactionError, ValidationError
from ..services import transaction_service, version_service
from posengine.money import parse_money
from posengine.time_utils import parse_iso_datetime
from .errors import error_response


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _parse_int(value, field: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} required")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _transaction_response(txn, status_code: int = 200):
    return jsonify({"transaction": txn.to_dict()}), status_code


@transactions_bp.post("/")
@require_actor
def create_transaction_route():
    """Open a new draft transaction."""
    data = request.get_json(silent=True) or {}
    try:
        txn = transaction_service.create_transaction(
            store_id=_parse_int(data.get("store_id"), "store_id"),
            employee_id=_parse_int(data.get("employee_id", g.actor_id), "employee_id"),
            currency_id=_parse_int(data.get("currency_id"), "currency_id"),
            actor=g.actor_id,
        )
        return _transaction_response(txn, 201)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/")
@require_actor
def list_transactions_route():
    """
    List transactions, newest first.

    Query params: store_id, status, search, start_date, end_date (ISO-8601), limit.
    """
    try:
        store_id = request.args.get("store_id", type=int)
        limit = min(request.args.get("limit", default=100, type=int), 500)
        try:
            start_date = parse_iso_datetime(request.args.get("start_date"))
            end_date = parse_iso_datetime(request.args.get("end_date"))
        except ValueError:
            raise ValidationError("start_date/end_date must be ISO-8601 datetimes")

        txns = transaction_service.list_transactions(
            store_id=store_id,
            status=request.args.get("status"),
            search=request.args.get("search"),
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )
        return jsonify({
            "transactions": [txn.to_dict(include_items=False) for txn in txns],
            "count": len(txns),
        }), 200
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
@require_actor
def get_transaction_route(transaction_id: int):
    try:
        return _transaction_response(transaction_service.get_transaction(transaction_id))
    except TransactionError as e:
        return error_response(e)


@transactions_bp.get("/by-number/<string:transaction_number>")
@require_actor
def get_transaction_by_number_route(transaction_number: str):
    try:
        return _transaction_response(transaction_service.get_transaction_by_number(transaction_number))
    except TransactionError as e:
        return error_response(e)


@transactions_bp.get("/<int:transaction_id>/versions")
@require_actor
def list_versions_route(transaction_id: int):
    """Version history, oldest first."""
    try:
        transaction_service.get_transaction(transaction_id)
        versions = version_service.get_versions(transaction_id)
        return jsonify({"versions": [version.to_dict() for version in versions]}), 200
    except TransactionError as e:
        return error_response(e)


@transactions_bp.get("/<int:transaction_id>/versions/<int:version_number>")
@require_actor
def get_version_route(transaction_id: int, version_number: int):
    version = version_service.get_version(transaction_id, version_number)
    if version is None:
        return jsonify({"error": "Version not found"}), 404
    return jsonify({"version": version.to_dict()}), 200


# =============================================================================
# Items
# =============================================================================

@transactions_bp.post("/<int:transaction_id>/items")
@require_actor
def add_item_route(transaction_id: int):
    data = request.get_json(silent=True) or {}
    try:
        txn = transaction_service.add_item(
            transaction_id,
            product_id=_parse_int(data.get("product_id"), "product_id"),
            quantity=data.get("quantity", 1),
            actor=g.actor_id,
        )
        return _transaction_response(txn, 201)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add item")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:transaction_id>/items/<int:item_id>")
@require_actor
def update_item_route(transaction_id: int, item_id: int):
    data = request.get_json(silent=True) or {}
    try:
        unit_price = data.get("unit_price")
        txn = transaction_service.update_item(
            transaction_id,
            item_id,
            quantity=data.get("quantity"),
            unit_price=parse_money(unit_price, "unit_price") if unit_price is not None else None,
            actor=g.actor_id,
        )
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>/items/<int:item_id>")
@require_actor
def remove_item_route(transaction_id: int, item_id: int):
    try:
        txn = transaction_service.remove_item(transaction_id, item_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove item")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# Customer & discounts
# =============================================================================

@transactions_bp.put("/<int:transaction_id>/customer")
@require_actor
def set_customer_route(transaction_id: int):
    """Body: {"customer_id": int | null}; null detaches the customer."""
    data = request.get_json(silent=True) or {}
    try:
        customer_id = data.get("customer_id")
        txn = transaction_service.set_customer(
            transaction_id,
            customer_id=_parse_int(customer_id, "customer_id") if customer_id is not None else None,
            actor=g.actor_id,
        )
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set customer")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/customer-discount/clear")
@require_actor
def clear_customer_discount_route(transaction_id: int):
    try:
        txn = transaction_service.clear_customer_discount(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear customer discount")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/customer-discount/restore")
@require_actor
def restore_customer_discount_route(transaction_id: int):
    try:
        txn = transaction_service.restore_customer_discount(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restore customer discount")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/manual-discount")
@require_actor
def apply_manual_discount_route(transaction_id: int):
    """Body: {"discount_type": "percentage" | "fixed", "value": number}."""
    data = request.get_json(silent=True) or {}
    try:
        txn = transaction_service.apply_manual_discount(
            transaction_id,
            discount_type=data.get("discount_type"),
            value=parse_money(data.get("value"), "value"),
            actor=g.actor_id,
        )
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply manual discount")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>/manual-discount")
@require_actor
def clear_manual_discount_route(transaction_id: int):
    try:
        txn = transaction_service.clear_manual_discount(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear manual discount")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/offers/refresh")
@require_actor
def refresh_offers_route(transaction_id: int):
    try:
        txn = transaction_service.refresh_offers(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refresh offers")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# Payments
# =============================================================================

@transactions_bp.post("/<int:transaction_id>/payments")
@require_actor
def add_payment_route(transaction_id: int):
    """Body: {"payment_mode_id": int, "amount": number, "payment_data": {...}}."""
    data = request.get_json(silent=True) or {}
    try:
        payment_data = data.get("payment_data")
        if payment_data is not None and not isinstance(payment_data, dict):
            raise ValidationError("payment_data must be an object")
        txn = transaction_service.add_payment(
            transaction_id,
            payment_mode_id=_parse_int(data.get("payment_mode_id"), "payment_mode_id"),
            amount=parse_money(data.get("amount"), "amount"),
            payment_data=payment_data,
            actor=g.actor_id,
        )
        return _transaction_response(txn, 201)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>/payments/<int:payment_id>")
@require_actor
def remove_payment_route(transaction_id: int, payment_id: int):
    try:
        txn = transaction_service.remove_payment(transaction_id, payment_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# Lifecycle
# =============================================================================

@transactions_bp.post("/<int:transaction_id>/complete")
@require_actor
def complete_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.complete_transaction(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/suspend")
@require_actor
def suspend_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.suspend_transaction(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to suspend transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/resume")
@require_actor
def resume_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.resume_transaction(transaction_id, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resume transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/void")
@require_actor
def void_transaction_route(transaction_id: int):
    data = request.get_json(silent=True) or {}
    try:
        txn = transaction_service.void_transaction(
            transaction_id,
            actor=g.actor_id,
            reason=data.get("reason"),
        )
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/refund")
@require_actor
def process_refund_route(transaction_id: int):
    """Body: {"items": [{"item_id": int, "quantity": int, "reason": str}]}."""
    data = request.get_json(silent=True) or {}
    try:
        items = data.get("items")
        if not isinstance(items, list):
            raise ValidationError("items must be a list")
        txn = transaction_service.process_refund(transaction_id, items=items, actor=g.actor_id)
        return _transaction_response(txn)
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500
