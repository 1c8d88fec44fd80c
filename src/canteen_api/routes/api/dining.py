"""
Dining API - meal confirmation by the diner or by an administrator.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from canteen.audit_middleware import audit_action
from canteen.constants import ADMIN_ROLES
from canteen.jwt_middleware import get_user_id, jwt_required, role_required
from canteen.schemas import AdminConfirmRequest, BatchConfirmRequest, ConfirmDiningRequest
from canteen.serializers import success_response
from canteen.services.confirmation_service import (
    batch_confirm,
    confirm_by_admin,
    confirm_manually,
)

dining_bp = Blueprint("dining", __name__)


@dining_bp.post("/dining/confirm")
@jwt_required
def post_confirm():
    payload = request.get_json(silent=True) or {}
    data = ConfirmDiningRequest(**payload)
    result = confirm_manually(data.order_id, get_user_id(), remark=data.remark)
    audit_action("DINING_CONFIRM", f"order={data.order_id} channel=manual")
    return jsonify(success_response(result, message="确认就餐成功")), HTTPStatus.OK


@dining_bp.post("/dining/admin-confirm")
@role_required(ADMIN_ROLES)
def post_admin_confirm():
    """Confirm on behalf of a member; ``member_id`` defaults to the registrant."""
    payload = request.get_json(silent=True) or {}
    data = AdminConfirmRequest(**payload)
    result = confirm_by_admin(
        data.order_id, get_user_id(), member_id=data.member_id, remark=data.remark
    )
    audit_action("DINING_CONFIRM", f"order={data.order_id} channel=admin")
    return jsonify(success_response(result, message="管理员代确认就餐成功")), HTTPStatus.OK


@dining_bp.post("/dining/batch-confirm")
@role_required(ADMIN_ROLES)
def post_batch_confirm():
    payload = request.get_json(silent=True) or {}
    data = BatchConfirmRequest(**payload)
    result = batch_confirm(get_user_id(), data.order_ids, remark=data.remark)
    audit_action(
        "DINING_BATCH_CONFIRM", f"ok={result['success_count']}/{result['total_count']}"
    )
    return jsonify(success_response(result)), HTTPStatus.OK
