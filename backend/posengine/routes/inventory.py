# backend/posengine/routes/inventory.py
"""
Inventory routes.

Stock levels only change through inventory_service.adjust_stock; the
adjustment route here is the entry point for stocktakes, deliveries and
lost/found corrections made outside a POS transaction.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..exceptions import TransactionError, ValidationError
from ..models import InventoryActivityCodes
from ..services import inventory_service
from posengine.time_utils import parse_iso_datetime
from .errors import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _parse_int(value, field: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


@inventory_bp.get("/activity-codes")
def activity_codes_route():
    return jsonify({"activity_codes": InventoryActivityCodes.all()}), 200


@inventory_bp.get("/stock/<int:store_id>/<int:product_id>")
@require_actor
def stock_level_route(store_id: int, product_id: int):
    quantity = inventory_service.get_stock_level(product_id, store_id)
    return jsonify({"store_id": store_id, "product_id": product_id, "quantity": quantity}), 200


@inventory_bp.get("/logs")
@require_actor
def inventory_logs_route():
    """
    List inventory log rows, newest first.

    Query params: store_id, product_id, transaction_id, activity_code,
    start_date, end_date (ISO-8601), limit.
    """
    try:
        try:
            start_date = parse_iso_datetime(request.args.get("start_date"))
            end_date = parse_iso_datetime(request.args.get("end_date"))
        except ValueError:
            raise ValidationError("start_date/end_date must be ISO-8601 datetimes")

        logs = inventory_service.get_inventory_logs(
            store_id=request.args.get("store_id", type=int),
            product_id=request.args.get("product_id", type=int),
            transaction_id=request.args.get("transaction_id", type=int),
            activity_code=request.args.get("activity_code"),
            start_date=start_date,
            end_date=end_date,
            limit=min(request.args.get("limit", default=100, type=int), 500),
        )
        return jsonify({"logs": [log.to_dict() for log in logs], "count": len(logs)}), 200
    except TransactionError as e:
        return error_response(e)


@inventory_bp.post("/adjust")
@require_actor
def adjust_inventory_route():
    """
    Manual stock adjustment.

    Body: {"store_id", "product_id", "delta", "activity_code", "notes",
           "stocktake_id", "delivery_order_id", "purchase_order_id"}
    """
    data = request.get_json(silent=True) or {}
    try:
        missing = [field for field in ("store_id", "product_id", "delta", "activity_code") if data.get(field) is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        delta, product_id, store_id = (_parse_int(data[field], field) for field in ("delta", "product_id", "store_id"))

        log = inventory_service.adjust_inventory(
            product_id=product_id,
            store_id=store_id,
            delta=delta,
            activity_code=str(data["activity_code"]).upper(),
            actor=g.actor_id,
            notes=data.get("notes"),
            stocktake_id=data.get("stocktake_id"),
            delivery_order_id=data.get("delivery_order_id"),
            purchase_order_id=data.get("purchase_order_id"),
        )
        return jsonify({"log": log.to_dict()}), 201
    except TransactionError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500
