"""
Reports API - read-only confirmation status, history and statistics.
"""

from flask import Blueprint, jsonify, request

from canteen.constants import STATS_ROLES
from canteen.jwt_middleware import get_user_id, jwt_required, role_required
from canteen.serializers import success_response
from canteen.services.report_service import (
    get_confirmation_history,
    get_department_confirmation_stats,
    get_user_confirmation_status,
)

reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/dining/status")
@jwt_required
def get_status():
    """Today's (or ``date``'s) registration and confirmation state per meal."""
    result = get_user_confirmation_status(get_user_id(), request.args.get("date"))
    return jsonify(success_response(result))


@reports_bp.get("/dining/history")
@jwt_required
def get_history():
    result = get_confirmation_history(
        get_user_id(),
        dining_date=request.args.get("date"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        dining_status=request.args.get("dining_status"),
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(success_response(result))


@reports_bp.get("/dining/stats")
@role_required(STATS_ROLES)
def get_stats():
    result = get_department_confirmation_stats(
        request.args.get("date"),
        request.args.get("department_id"),
        actor_id=get_user_id(),
    )
    return jsonify(success_response(result))
