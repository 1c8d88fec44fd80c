"""
Canteen API - Modular Blueprint Structure

Each module handles one part of the operation surface; all are mounted
under ``/api`` by the app factory.
"""

from flask import Blueprint

from .departments import departments_bp
from .dining import dining_bp
from .errors import errors_bp
from .orders import orders_bp
from .qr import qr_bp
from .reports import reports_bp

api_bp = Blueprint("api", __name__)

api_bp.register_blueprint(departments_bp)
api_bp.register_blueprint(orders_bp)
api_bp.register_blueprint(dining_bp)
api_bp.register_blueprint(qr_bp)
api_bp.register_blueprint(reports_bp)
api_bp.register_blueprint(errors_bp)
