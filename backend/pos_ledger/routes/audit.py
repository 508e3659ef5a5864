# Overview: Read-only API over the audit log.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import audit_service
from pos_ledger.time_utils import parse_iso_datetime
from ..decorators import require_actor


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("/")
@audit_bp.get("")
@require_actor
def list_audit_route():
    """
    Query params (all optional):
    - outlet_id, action, entity_type, entity_id
    - start (inclusive), end (exclusive): ISO-8601
    - limit (default 100, max 500)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    try:
        entries = audit_service.list_audit_log(
            db.session,
            outlet_id=request.args.get("outlet_id", type=int),
            action=request.args.get("action"),
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            start=start,
            end=end,
            limit=request.args.get("limit", 100, type=int),
        )
        return jsonify({"entries": [e.to_dict() for e in entries]}), 200
    except Exception:
        current_app.logger.exception("Failed to list audit log")
        return jsonify({"error": "Internal server error"}), 500
