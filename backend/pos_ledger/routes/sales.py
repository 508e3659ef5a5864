# Overview: Flask API routes for the sale ledger; parses input and returns JSON responses.

# backend/pos_ledger/routes/sales.py
"""Sale ledger API routes: record, void, refund and dashboard reads."""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import sales_service, reversal_service, reporting_service
from ..validation import LedgerError, RecordSaleInput, ValidationError
from ..decorators import require_actor
from pos_ledger.time_utils import parse_business_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@sales_bp.post("")
@require_actor
def record_sale_route():
    """
    Record a completed sale.

    Request body:
    {
        "outlet_id": 1,
        "receipt_number": "OUT1-20250101-0001",
        "items": [{"product_id": 3, "quantity": 2, "unit_price": 85000, "discount": 10000}],
        "payments": [{"method": "CASH", "amount": 160000}],
        "discount_total": 0,
        "apply_tax": false,
        "tax_rate": 11,          (optional, defaults to DEFAULT_TAX_RATE)
        "tax_mode": "EXCLUSIVE", (optional)
        "sold_at": "2025-01-01T10:00:00Z" (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        sale_input = RecordSaleInput.from_dict(data, current_app.config["DEFAULT_TAX_RATE"])

        sale = sales_service.record_sale(
            db.session,
            outlet_id=sale_input.outlet_id,
            cashier_id=g.actor_id,
            receipt_number=sale_input.receipt_number,
            items=sale_input.items,
            payments=sale_input.payments,
            discount_total=sale_input.discount_total,
            tax_policy=sale_input.tax_policy,
            sold_at=data.get("sold_at"),
            discount_limit_percent=current_app.config["DISCOUNT_LIMIT_PERCENT"],
            payment_epsilon=current_app.config["PAYMENT_EPSILON"],
        )
        return jsonify({"sale": sale.summary()}), 201

    except LedgerError as e:
        current_app.logger.warning("Sale rejected: %s %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(db.session, sale_id)
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/void")
@require_actor
def void_sale_route(sale_id: int):
    """
    Void a completed sale and restock its lines.

    Request body:
    {
        "reason": "dup payment"  (3..200 characters)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        result = reversal_service.void_sale(db.session, sale_id, data.get("reason"), g.actor_id)
        return jsonify({"sale": result.to_dict()}), 200

    except LedgerError as e:
        current_app.logger.warning("Void rejected for sale %s: %s", sale_id, e.message)
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/refund")
@require_actor
def refund_sale_route(sale_id: int):
    """
    Refund a completed sale in full.

    Request body:
    {
        "reason": "customer return",  (optional)
        "amount": 160000              (optional, defaults to total_net)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        result = reversal_service.refund_sale(
            db.session,
            sale_id,
            data.get("reason"),
            g.actor_id,
            data.get("amount"),
            approved_by_id=data.get("approved_by_id"),
        )
        return jsonify({"sale": result.to_dict()}), 200

    except LedgerError as e:
        current_app.logger.warning("Refund rejected for sale %s: %s", sale_id, e.message)
        return jsonify(e.to_dict()), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to refund sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/recent")
@require_actor
def recent_sales_route():
    outlet_id = request.args.get("outlet_id", type=int)
    limit = request.args.get("limit", 10, type=int)
    try:
        sales = reporting_service.list_recent_sales(db.session, outlet_id, limit)
        return jsonify({"sales": sales}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.get("/daily-summary")
@require_actor
def daily_summary_route():
    """
    Query params:
    - date: YYYY-MM-DD or ISO datetime (UTC day; defaults to today)
    - outlet_id: optional
    """
    try:
        day = parse_business_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": f"Invalid date: {request.args.get('date')}"}), 400

    outlet_id = request.args.get("outlet_id", type=int)
    try:
        return jsonify(reporting_service.daily_summary(db.session, day, outlet_id)), 200
    except Exception:
        current_app.logger.exception("Failed to build daily summary")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/weekly-trend")
@require_actor
def weekly_trend_route():
    outlet_id = request.args.get("outlet_id", type=int)
    payment_method = request.args.get("payment_method")
    try:
        return jsonify(reporting_service.weekly_trend(db.session, outlet_id, payment_method)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.get("/forecast")
@require_actor
def forecast_route():
    outlet_id = request.args.get("outlet_id", type=int)
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400
    return jsonify(reporting_service.forecast_next_day(db.session, outlet_id)), 200
