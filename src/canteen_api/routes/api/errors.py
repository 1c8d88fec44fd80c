from flask import Blueprint, jsonify

from canteen.error_catalog import ERROR_CATALOG
from canteen.serializers import success_response

errors_bp = Blueprint("errors", __name__)


@errors_bp.get("/errors/catalog")
def get_error_catalog():
    """Reference of every error code the API can return."""
    return jsonify(success_response(ERROR_CATALOG))
