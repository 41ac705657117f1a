# Overview: Flask API routes for the store credit ledger; parses input and returns JSON responses.

"""
Store Credit ("fiado") API Routes

- List open credits with pagination and filters
- Accounts-receivable summary for the tenant
- Credit detail and payment history
- Register partial payments against a credit

Every route is tenant-scoped through the authenticated session.
Responses use the {"success": bool, "data"?, "error"?} envelope.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import OperationalError

from ..decorators import require_auth
from ..errors import LedgerError
from ..money import to_cents
from ..services import credit_service
from ..services.tenant_service import get_current_org_id
from ..validation import ValidationError, parse_int


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


def _error_response(exc):
    return jsonify({"success": False, "error": str(exc)}), exc.status_code


def _payment_amount_cents(data: dict) -> int:
    """amount_cents (integer) wins over amount (major units, up to 2 decimals)."""
    if data.get("amount_cents") is not None:
        return parse_int(data["amount_cents"], "amount_cents")
    if data.get("amount") is not None:
        return to_cents(data["amount"], "amount")
    raise ValidationError("amount or amount_cents required")


@credits_bp.get("/", strict_slashes=False)
@require_auth
def list_credits_route():
    """
    List the tenant's open store credits, newest first.

    Query params:
    - page (default 1), limit (default 10, max 100)
    - customer_id: only this customer's credits
    - status: PENDING | PARTIAL | PAID | all (default: open credits)
    """
    try:
        result = credit_service.find_all_pending_credits(
            get_current_org_id(),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            customer_id=request.args.get("customer_id") or request.args.get("customerId"),
            status=request.args.get("status"),
        )
        return jsonify({"success": True, **result}), 200

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list credits")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@credits_bp.get("/summary")
@require_auth
def credit_summary_route():
    """Totals over open credits: pending amount, credit count, customers in debt."""
    try:
        summary = credit_service.get_summary(get_current_org_id())
        return jsonify({"success": True, "data": summary}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load credit summary")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@credits_bp.get("/<int:sale_id>")
@require_auth
def credit_detail_route(sale_id: int):
    """Sale snapshot, paid/remaining amounts, derived status and payments."""
    try:
        detail = credit_service.get_credit_detail(get_current_org_id(), sale_id)
        return jsonify({"success": True, "data": detail}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load credit detail")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@credits_bp.get("/<int:sale_id>/payments")
@require_auth
def payment_history_route(sale_id: int):
    try:
        payments = credit_service.get_payment_history(get_current_org_id(), sale_id)
        return jsonify({"success": True, "data": [p.to_dict() for p in payments]}), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load payment history")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@credits_bp.post("/<int:sale_id>/payments")
@require_auth
def register_payment_route(sale_id: int):
    """
    Register a payment against a credit.

    Request body:
    {
        "amount": 40000,               (or "amount_cents": 4000000)
        "payment_method": "CASH",      CASH | CARD | TRANSFER
        "notes": "Abono semanal"       (optional)
    }

    Returns:
        201: Payment created
        400: Invalid input, voided sale, or amount over the pending balance
        404: Credit not found
        503: Lock wait timed out, safe to retry
        500: Server error
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")

        payment = credit_service.register_payment(
            get_current_org_id(),
            sale_id,
            amount_cents=_payment_amount_cents(data),
            payment_method=data.get("payment_method") or data.get("paymentMethod"),
            notes=data.get("notes"),
            operator_id=g.current_user.id,
        )
        return jsonify({
            "success": True,
            "data": payment.to_dict(),
            "message": "Payment registered",
        }), 201

    except (LedgerError, ValidationError) as e:
        return _error_response(e)
    except OperationalError:
        # Lock wait timed out (or the database went away); nothing was written
        current_app.logger.warning("Credit payment on sale %s could not acquire its locks", sale_id, exc_info=True)
        return jsonify({
            "success": False,
            "error": "The credit is busy with another operation, please retry",
        }), 503
    except Exception:
        current_app.logger.exception("Failed to register credit payment")
        return jsonify({"success": False, "error": "Internal server error"}), 500
