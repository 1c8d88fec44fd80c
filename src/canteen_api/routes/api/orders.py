"""
Orders API - department bookings and their cancellation.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from canteen.audit_middleware import audit_action
from canteen.constants import ADMIN_ROLES
from canteen.jwt_middleware import get_user_id, jwt_required, role_required
from canteen.schemas import (
    BatchDepartmentOrdersRequest,
    CancelOrderRequest,
    CreateDepartmentOrderRequest,
    QuickBatchOrdersRequest,
)
from canteen.serializers import success_response
from canteen.services.order_service import (
    cancel_order,
    create_batch_department_orders,
    create_department_order,
    create_quick_batch_orders,
    get_department_order_stats,
    get_order,
    list_department_orders,
)

orders_bp = Blueprint("orders", __name__)


@orders_bp.post("/orders/department")
@role_required(ADMIN_ROLES)
def post_department_order():
    """
    Book a meal for department members.

    Body: see CreateDepartmentOrderRequest
    """
    payload = request.get_json(silent=True) or {}
    data = CreateDepartmentOrderRequest(**payload)
    result = create_department_order(
        get_user_id(),
        data.date,
        data.meal_type,
        data.member_ids,
        remark=data.remark,
        department_id=data.department_id,
    )
    audit_action("ORDER_CREATE", f"order={result['id']} members={result['member_count']}")
    return jsonify(success_response(result, message="报餐成功")), HTTPStatus.CREATED


@orders_bp.post("/orders/department/batch")
@role_required(ADMIN_ROLES)
def post_batch_department_orders():
    payload = request.get_json(silent=True) or {}
    data = BatchDepartmentOrdersRequest(**payload)
    result = create_batch_department_orders(
        get_user_id(), [line.model_dump() for line in data.orders]
    )
    audit_action("ORDER_BATCH_CREATE", f"ok={result['success_count']}/{result['total_orders']}")
    return jsonify(success_response(result))


@orders_bp.post("/orders/department/quick-batch")
@role_required(ADMIN_ROLES)
def post_quick_batch_orders():
    """Same member list for several (date, meal) combinations."""
    payload = request.get_json(silent=True) or {}
    data = QuickBatchOrdersRequest(**payload)
    result = create_quick_batch_orders(
        get_user_id(),
        data.member_ids,
        [meal.model_dump() for meal in data.meals],
        remark=data.remark,
        department_id=data.department_id,
    )
    audit_action("ORDER_QUICK_BATCH", f"ok={result['success_count']}/{result['total_orders']}")
    return jsonify(success_response(result))


@orders_bp.get("/orders/department")
@role_required(ADMIN_ROLES)
def get_department_orders():
    """
    Paginated department bookings.

    Query: date, meal_type, start_date, end_date, department_id, page, limit
    """
    result = list_department_orders(
        get_user_id(),
        dining_date=request.args.get("date"),
        meal_type=request.args.get("meal_type"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        department_id=request.args.get("department_id"),
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify(success_response(result))


@orders_bp.get("/orders/department/stats")
@role_required(ADMIN_ROLES)
def get_department_stats():
    result = get_department_order_stats(
        get_user_id(),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        department_id=request.args.get("department_id"),
    )
    return jsonify(success_response(result))


@orders_bp.get("/orders/<order_id>")
@jwt_required
def get_order_detail(order_id: str):
    return jsonify(success_response(get_order(order_id, get_user_id())))


@orders_bp.post("/orders/<order_id>/cancel")
@jwt_required
def post_cancel_order(order_id: str):
    payload = request.get_json(silent=True) or {}
    data = CancelOrderRequest(**payload)
    result = cancel_order(order_id, get_user_id(), reason=data.reason)
    audit_action("ORDER_CANCEL", f"order={order_id}")
    return jsonify(success_response(result, message="订单已取消"))
