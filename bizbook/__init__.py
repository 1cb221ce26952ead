from flask import Flask, jsonify
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .errors import BizbookError
from .extensions import db
from .logging_config import setup_logging
from .routes import register_routes


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    if isinstance(config_object, dict):
        app.config.from_object(Config)
        app.config.from_mapping(config_object)
    else:
        app.config.from_object(config_object or Config)
        app.config.from_envvar("APP_SETTINGS", silent=True)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))
    db.init_app(app)

    # Allow the booking frontend to talk to the backend
    CORS(app,
         origins=app.config.get("CORS_ORIGINS", ["*"]),
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    register_error_handlers(app)
    register_routes(app)

    with app.app_context():
        from . import models  # noqa: F401  register tables on the metadata

        db.create_all()

    return app


def register_error_handlers(app):
    @app.errorhandler(BizbookError)
    def handle_domain_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", exc.code, exc.message)
        else:
            app.logger.warning("Rejected request: %s (%s)", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc):
        db.session.rollback()
        app.logger.exception("Unhandled database error", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    @app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({"error": "not_found", "message": "Route not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(_exc):
        return jsonify({"error": "method_not_allowed", "message": "Method not allowed"}), 405
