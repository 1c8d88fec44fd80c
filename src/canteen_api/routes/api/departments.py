from flask import Blueprint, jsonify, request

from canteen.constants import ADMIN_ROLES
from canteen.jwt_middleware import get_user_id, role_required
from canteen.serializers import success_response
from canteen.services.order_service import get_department_members

departments_bp = Blueprint("departments", __name__)


@departments_bp.get("/departments/members")
@role_required(ADMIN_ROLES)
def get_members():
    """Member picker for department bookings."""
    include_inactive = request.args.get("include_inactive", "false").lower() in {
        "1",
        "true",
        "yes",
    }
    result = get_department_members(
        get_user_id(),
        include_inactive=include_inactive,
        keyword=request.args.get("keyword") or None,
        department_id=request.args.get("department_id"),
    )
    return jsonify(success_response(result))
