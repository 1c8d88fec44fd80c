from flask import Blueprint, jsonify, request

from canteen.audit_middleware import audit_action
from canteen.jwt_middleware import get_user_id, jwt_required
from canteen.schemas import QRScanRequest
from canteen.serializers import success_response
from canteen.services.qr_scan_service import process_qr_scan

qr_bp = Blueprint("qr", __name__)


@qr_bp.post("/qr/scan")
@jwt_required
def post_scan():
    """Check the scanning user in for the meal currently being served."""
    payload = request.get_json(silent=True) or {}
    data = QRScanRequest(**payload)
    result = process_qr_scan(get_user_id(), data.qr_code)
    audit_action("DINING_CONFIRM", f"order={result['order_id']} channel=qr")
    return jsonify(success_response(result, message=f"登记成功！[{result['meal_type_name']}]"))
