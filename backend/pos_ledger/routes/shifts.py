# Overview: Flask API routes for cash sessions; parses input and returns JSON responses.

"""
Shift API Routes

- Open: one open shift per outlet
- Close: counted cash vs expected cash, immutable afterwards
- Active: the guard every sale, void and refund goes through
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import shift_service
from ..validation import LedgerError, ValidationError
from ..decorators import require_actor


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/open")
@require_actor
def open_shift_route():
    """
    Request body:
    {
        "outlet_id": 1,
        "opening_cash": "200000.00"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        outlet_id = data.get("outlet_id")
        if not isinstance(outlet_id, int):
            return jsonify({"error": "outlet_id required"}), 400

        shift = shift_service.open_shift(
            db.session,
            outlet_id,
            g.actor_id,
            data.get("opening_cash", 0),
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
@require_actor
def close_shift_route(shift_id: int):
    """
    Request body:
    {
        "closing_cash": "350000.00",
        "notes": "optional"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        if "closing_cash" not in data:
            return jsonify({"error": "closing_cash required"}), 400

        shift = shift_service.close_shift(
            db.session,
            shift_id,
            data["closing_cash"],
            data.get("notes"),
            actor_id=g.actor_id,
        )
        return jsonify({"shift": shift.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/active")
@require_actor
def active_shift_route():
    outlet_id = request.args.get("outlet_id", type=int)
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400

    shift = shift_service.get_active_shift(db.session, outlet_id)
    return jsonify({"shift": shift.to_dict() if shift else None}), 200
