# Overview: Flask API routes for sales and installments; parses input and returns JSON responses.

# backend/salesdesk/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..errors import SalesDeskError
from ..services import sales_service, installment_service
from ..validation import coerce_int, parse_as_of, parse_create_sale


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error(exc: SalesDeskError):
    return jsonify(exc.to_dict()), exc.status_code


@sales_bp.post("/")
def create_sale_route():
    """
    Create a sale with its items, stock movements and installments.

    Body: {customer_ref?, items: [{stock_code, quantity, unit_price, tax_rate,
    discount_rate?}], payment_method, is_installment, installment_count?,
    discount_amount?, notes?}
    """
    try:
        req = parse_create_sale(request.get_json(silent=True))

        sale = sales_service.create_sale(
            customer_ref=req.customer_ref,
            items=req.items,
            payment_method=req.payment_method,
            is_installment=req.is_installment,
            installment_count=req.installment_count,
            discount_amount_cents=req.discount_amount_cents,
            notes=req.notes,
            session=db.session,
        )

        return jsonify({"sale_id": sale.id, "sale": sale.to_dict(include_children=True)}), 201

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.get("/")
def list_sales_route():
    """List active (not archived) sales, newest first."""
    try:
        limit = coerce_int(request.args.get("limit", "50"), "limit")
        offset = coerce_int(request.args.get("offset", "0"), "offset")
        limit = max(1, min(limit, 200))
        offset = max(0, offset)

        sales = sales_service.list_sales(
            status=request.args.get("status") or None,
            customer_ref=request.args.get("customer_ref") or None,
            limit=limit,
            offset=offset,
            session=db.session,
        )
        return jsonify({"sales": [s.to_dict() for s in sales], "limit": limit, "offset": offset}), 200

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with items and installments."""
    try:
        sale = sales_service.get_sale(sale_id, session=db.session)
        return jsonify({"sale": sale.to_dict(include_children=True)}), 200
    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.post("/<int:sale_id>/cancel")
def cancel_sale_route(sale_id: int):
    """Cancel a sale, restore its stock and archive it."""
    try:
        sale = sales_service.cancel_sale(sale_id, session=db.session)
        return jsonify({"sale": sale.to_dict(include_children=True)}), 200

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.post("/<int:sale_id>/status")
def update_sale_status_route(sale_id: int):
    """Set a side-effect-free status. Body: {status}"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required", "code": "validation_error", "details": {}}), 400

        sale = sales_service.update_sale_status(sale_id, status, session=db.session)
        return jsonify({"sale": sale.to_dict()}), 200

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.post("/<int:sale_id>/installments/<int:installment_id>/pay")
def pay_installment_route(sale_id: int, installment_id: int):
    """Mark an installment paid; completes the sale once all are paid."""
    try:
        installment = installment_service.mark_installment_paid(
            installment_id, sale_id, session=db.session
        )
        sale = sales_service.get_sale(sale_id, session=db.session)
        return jsonify({"installment": installment.to_dict(), "sale": sale.to_dict()}), 200

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to mark installment paid")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500


@sales_bp.post("/<int:sale_id>/installments/detect-overdue")
def detect_overdue_route(sale_id: int):
    """Flag this sale's overdue installments. Body: {as_of?}"""
    try:
        data = request.get_json(silent=True) or {}
        as_of = parse_as_of(data.get("as_of"))

        changed = installment_service.detect_overdue(sale_id, as_of, session=db.session)
        installments = installment_service.list_installments(sale_id, session=db.session)
        return jsonify({
            "changed": changed,
            "installments": [i.to_dict() for i in installments],
        }), 200

    except SalesDeskError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to detect overdue installments")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500
