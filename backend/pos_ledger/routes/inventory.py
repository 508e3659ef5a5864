# backend/pos_ledger/routes/inventory.py
"""
Inventory routes.

- Stock levels and the movement log are read-only views of the ledger
- Manual adjustments (receiving, counts, opening stock) post one movement each
- Low-stock alerts can be listed and acknowledged
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import inventory_service, low_stock_service
from ..validation import LedgerError, ValidationError
from ..decorators import require_actor


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/")
@inventory_bp.get("")
@require_actor
def list_inventory_route():
    outlet_id = request.args.get("outlet_id", type=int)
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400
    low_only = request.args.get("low_only", "false").lower() in ("1", "true", "yes")
    items = inventory_service.list_inventory(db.session, outlet_id, low_only=low_only)
    return jsonify({"items": items}), 200


@inventory_bp.post("/adjust")
@require_actor
def adjust_inventory_route():
    """
    Request body:
    {
        "product_id": 3,
        "outlet_id": 1,
        "delta": 10,
        "type": "PURCHASE",   (ADJUSTMENT | PURCHASE | INITIAL, default ADJUSTMENT)
        "note": "optional",
        "reference": "optional",
        "cost_price": "optional"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        product_id = data.get("product_id")
        outlet_id = data.get("outlet_id")
        if not isinstance(product_id, int) or not isinstance(outlet_id, int):
            return jsonify({"error": "product_id and outlet_id required"}), 400

        record = inventory_service.record_stock_adjustment(
            db.session,
            product_id=product_id,
            outlet_id=outlet_id,
            delta=data.get("delta"),
            movement_type=data.get("type") or inventory_service.MOVEMENT_ADJUSTMENT,
            actor_id=g.actor_id,
            note=data.get("note"),
            reference=data.get("reference"),
            cost_price=data.get("cost_price"),
        )
        return jsonify({"inventory": record.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/movements")
@require_actor
def list_movements_route():
    movements = inventory_service.list_movements(
        db.session,
        outlet_id=request.args.get("outlet_id", type=int),
        product_id=request.args.get("product_id", type=int),
        movement_type=request.args.get("type"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@inventory_bp.get("/low-stock")
@require_actor
def list_low_stock_route():
    include_cleared = request.args.get("include_cleared", "false").lower() in ("1", "true", "yes")
    alerts = low_stock_service.list_low_stock_alerts(
        db.session,
        outlet_id=request.args.get("outlet_id", type=int),
        include_cleared=include_cleared,
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200


@inventory_bp.post("/low-stock/<int:alert_id>/acknowledge")
@require_actor
def acknowledge_low_stock_route(alert_id: int):
    try:
        alert = low_stock_service.acknowledge_alert(db.session, alert_id, g.actor_id)
        return jsonify({"alert": alert.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to acknowledge low stock alert")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/products/<int:product_id>/min-stock")
@require_actor
def set_min_stock_route(product_id: int):
    """
    Request body:
    {
        "min_stock": 5   (0 disables alerts)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        product = low_stock_service.set_min_stock(db.session, product_id, data.get("min_stock"))
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
