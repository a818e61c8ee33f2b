# Overview: Flask API routes for the turn ledger; parses input and returns JSON responses.

"""
Transaction ledger routes.

Every route works on the signed-in user's rows only. Rows of other users
answer 404.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import transaction_service
from ..services.transaction_service import (
    TransactionError,
    TransactionNotFound,
    TransactionConflict,
)
from ..models import EDITABLE_FIELDS


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _error_response(exc: TransactionError):
    if isinstance(exc, TransactionNotFound):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, TransactionConflict):
        return jsonify({"error": str(exc)}), 409
    return jsonify({"error": str(exc)}), 400


def _editable_fields(data: dict) -> dict:
    return {key: data[key] for key in EDITABLE_FIELDS if key in data}


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    List one bucket of the current user's ledger.

    Query params:
        payment_type: card | cash (required)
        business_date: YYYY-MM-DD (defaults to today's business date)
    """
    try:
        payment_type = request.args.get("payment_type")
        business_date = request.args.get("business_date") or transaction_service.current_business_date()

        rows = transaction_service.list_transactions(g.current_user.id, payment_type, business_date)
        return jsonify({
            "business_date": business_date,
            "payment_type": payment_type,
            "transactions": [row.to_dict() for row in rows],
        }), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Insert a turn.

    Request body:
    {
        "payment_type": "card",           // required
        "entry_number": 3,                // required, 1-based
        "business_date": "2026-10-19",    // optional, defaults to today
        "service": "...", "cash_amount": "12.50", ...
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = transaction_service.create_transaction(
            user_id=g.current_user.id,
            payment_type=data.get("payment_type"),
            business_date=data.get("business_date") or transaction_service.current_business_date(),
            entry_number=data.get("entry_number"),
            fields=_editable_fields(data),
        )
        return jsonify({"transaction": txn.to_dict()}), 201

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:transaction_id>")
@require_auth
def update_transaction_route(transaction_id: int):
    try:
        data = request.get_json(silent=True) or {}
        unknown = set(data) - set(EDITABLE_FIELDS)
        if unknown:
            return jsonify({"error": f"Unknown field(s): {', '.join(sorted(unknown))}"}), 400

        txn = transaction_service.update_transaction(
            user_id=g.current_user.id,
            transaction_id=transaction_id,
            fields=data,
        )
        return jsonify({"transaction": txn.to_dict()}), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>")
@require_auth
def delete_transaction_route(transaction_id: int):
    """
    Delete a turn and renumber the rest of its bucket.

    Returns the rows whose entry_number changed.
    """
    try:
        renumbered = transaction_service.delete_transaction(
            user_id=g.current_user.id,
            transaction_id=transaction_id,
        )
        return jsonify({
            "deleted_id": transaction_id,
            "renumbered": [row.to_dict() for row in renumbered],
        }), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500
