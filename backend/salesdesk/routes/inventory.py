# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..errors import SalesDeskError
from ..services import inventory_service
from ..validation import coerce_int, parse_stock_adjustment


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/alerts")
def list_alerts_route():
    """Low stock alerts. ?status=active|resolved|all (default active)"""
    try:
        status = request.args.get("status", "active")
        alerts = inventory_service.list_low_stock_alerts(
            status=None if status == "all" else status,
            session=db.session,
        )
        return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/<string:stock_code>")
def get_stock_route(stock_code: str):
    try:
        product = inventory_service.get_product(stock_code, session=db.session)
        return jsonify({"product": product.to_dict()}), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/<string:stock_code>/movements")
def list_movements_route(stock_code: str):
    try:
        limit = coerce_int(request.args.get("limit", "200"), "limit")
        limit = max(1, min(limit, 1000))
        movements = inventory_service.list_stock_movements(stock_code, limit=limit, session=db.session)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.post("/<string:stock_code>/adjust")
def adjust_stock_route(stock_code: str):
    """Manual adjustment. Body: {quantity (signed, non-zero), notes?}"""
    try:
        delta, note = parse_stock_adjustment(request.get_json(silent=True))
        product = inventory_service.adjust_stock(stock_code, delta, note, session=db.session)
        return jsonify({"product": product.to_dict()}), 200

    except SalesDeskError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500
