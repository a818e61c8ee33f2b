# Overview: Scheduled daily reset endpoint.

from flask import Blueprint, jsonify, current_app

from ..decorators import require_cron_secret
from ..services import reset_service
from ..services.transaction_service import current_business_date


reset_bp = Blueprint("reset", __name__, url_prefix="/api")


@reset_bp.route("/reset-daily", methods=["GET", "POST"])
@require_cron_secret
def reset_daily_route():
    """
    Archive and clear today's transactions for every user.

    Called by the scheduler with ``Authorization: Bearer <CRON_SECRET>``.
    Safe to call more than once a day.
    """
    business_date = current_business_date()
    try:
        archived = reset_service.archive_business_day(business_date)
        current_app.logger.info("Daily reset for %s archived %d transactions", business_date, archived)
        return jsonify({
            "success": True,
            "business_date": business_date,
            "archived": archived,
            "message": f"Reset completed. Archived {archived} transactions.",
        }), 200

    except Exception as e:
        current_app.logger.exception("Daily reset failed for %s", business_date)
        return jsonify({"success": False, "error": str(e) or "Unknown error"}), 500
