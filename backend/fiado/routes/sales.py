# Overview: Flask API routes for store-credit sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import sales_service
from ..services.tenant_service import get_current_org_id
from ..validation import ValidationError, parse_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error_response(exc):
    return jsonify({"success": False, "error": str(exc)}), exc.status_code


def _optional_int(data: dict, key: str, default=None):
    value = data.get(key)
    if value is None:
        return default
    return parse_int(value, key)


@sales_bp.post("/credit")
@require_auth
def create_credit_sale_route():
    """
    Record a store-credit sale.

    Request body:
    {
        "customer_id": 7,
        "subtotal_cents": 8403400,
        "tax_cents": 1596600,       (optional)
        "discount_cents": 0,        (optional)
        "credit_days": 30,          (optional, defaults to CREDIT_TERM_DAYS)
        "notes": "..."              (optional)
    }
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        if data.get("customer_id") is None or data.get("subtotal_cents") is None:
            raise ValidationError("customer_id and subtotal_cents required")

        sale = sales_service.create_credit_sale(
            get_current_org_id(),
            parse_int(data["customer_id"], "customer_id"),
            subtotal_cents=parse_int(data["subtotal_cents"], "subtotal_cents"),
            tax_cents=_optional_int(data, "tax_cents", 0),
            discount_cents=_optional_int(data, "discount_cents", 0),
            operator_id=g.current_user.id,
            credit_days=_optional_int(data, "credit_days"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "data": sale.to_dict()}), 201

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create credit sale")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(get_current_org_id(), sale_id)
        return jsonify({"success": True, "data": sale.to_dict()}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/void")
@require_auth
def void_sale_route(sale_id: int):
    """Void a sale. Body: {"reason": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.void_sale(
            get_current_org_id(),
            sale_id,
            operator_id=g.current_user.id,
            reason=data.get("reason"),
        )
        return jsonify({"success": True, "data": sale.to_dict()}), 200

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"success": False, "error": "Internal server error"}), 500
