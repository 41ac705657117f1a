# Overview: Flask API routes for customers and their credit balances.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import balance_service, customer_service
from ..services.tenant_service import get_current_org_id
from ..validation import ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _error_response(exc):
    return jsonify({"success": False, "error": str(exc)}), exc.status_code


@customers_bp.get("/", strict_slashes=False)
@require_auth
def list_customers_route():
    """Paginated customers with total credit, total paid and balance."""
    try:
        result = customer_service.list_customers(
            get_current_org_id(),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            search=request.args.get("search"),
        )
        return jsonify({"success": True, **result}), 200

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.get("/search")
@require_auth
def search_customers_route():
    try:
        results = customer_service.search_customers(get_current_org_id(), request.args.get("q", ""))
        return jsonify({"success": True, "data": results}), 200

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search customers")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.post("/", strict_slashes=False)
@require_auth
def create_customer_route():
    """
    Create a customer.

    Request body:
    {
        "document_id": "1020304050",
        "name": "Maria Lopez",
        "phone": "3001234567",           (optional)
        "email": "maria@example.com",    (optional)
        "address": "Calle 1 # 2-3",      (optional)
        "credit_limit_cents": 50000000,  (optional, 0 = no limit)
        "notes": "..."                   (optional)
    }
    """
    try:
        customer = customer_service.create_customer(get_current_org_id(), request.get_json(silent=True))
        return jsonify({"success": True, "data": customer.to_dict()}), 201

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(get_current_org_id(), customer_id)
        return jsonify({"success": True, "data": customer}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load customer")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/balance")
@require_auth
def customer_balance_route(customer_id: int):
    try:
        balance = balance_service.get_customer_balance(get_current_org_id(), customer_id)
        return jsonify({"success": True, "data": balance}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load customer balance")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(
            get_current_org_id(), customer_id, request.get_json(silent=True)
        )
        return jsonify({"success": True, "data": customer.to_dict()}), 200

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    """Delete a customer; refused while the customer still owes money."""
    try:
        customer_service.delete_customer(get_current_org_id(), customer_id)
        return jsonify({"success": True, "message": "Customer deleted"}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"success": False, "error": "Internal server error"}), 500
