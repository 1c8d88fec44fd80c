"""
Factory for the canteen REST API.

Uses JWT for authentication; tokens are issued by the identity service.
"""

from __future__ import annotations

from flask import Flask, jsonify
from flask_cors import CORS

from canteen.audit_middleware import init_audit_middleware
from canteen.config import AppConfig, load_config, set_active_config, validate_required_env_vars
from canteen.db import init_db, init_engine
from canteen.error_handlers import register_error_handlers
from canteen.jwt_middleware import init_jwt_middleware
from canteen.logging_config import configure_logging
from canteen.models import Base
from canteen.services.meal_window_service import MealWindowService
from canteen_api.routes.api import api_bp

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


def create_app(config: AppConfig | None = None) -> Flask:
    if config is None:
        # Validate all required environment variables (fail-fast)
        validate_required_env_vars(skip_in_debug=True)
        config = load_config("canteen-api")

    set_active_config(config)
    MealWindowService.reset()

    app = Flask(__name__)
    logger = configure_logging(config.app_name, config.log_level)

    # Database
    init_engine(config)
    init_db(Base.metadata)

    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = "Canteen API"
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["DEBUG"] = config.flask_debug

    init_jwt_middleware(app)
    init_audit_middleware(app)

    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)

    allowed_origins = config.cors_allowed_origins or DEFAULT_ALLOWED_ORIGINS
    CORS(app, resources={r"/api/*": {"origins": allowed_origins, "supports_credentials": True}})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "service": "canteen-api"}), 200

    logger.info(
        "Canteen API ready (timezone %s, meal windows %s)",
        config.timezone,
        config.meal_windows,
    )
    return app
