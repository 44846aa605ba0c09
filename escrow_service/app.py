"""
Escrow Service — Flask application
Escrow lifecycle, dispute resolution and wallet ledger.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from flasgger import Swagger
from dotenv import load_dotenv

from escrow_service.errors import EscrowServiceError, Internal
from escrow_service.extensions import db, jwt
from escrow_service.models import User

load_dotenv()

logger = logging.getLogger(__name__)


def _database_uri():
    if os.getenv('DATABASE_URL'):
        return os.environ['DATABASE_URL']
    return (
        f"postgresql://{os.getenv('DB_USER', 'escrow_svc_user')}"
        f":{os.getenv('DB_PASS', 'password')}"
        f"@{os.getenv('DB_HOST', 'escrow-db')}"
        f"/{os.getenv('DB_NAME', 'escrow_db')}"
    )


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET', 'dev-secret-change-me')
    app.config['ESCROW_PERIOD_DAYS'] = int(os.getenv('ESCROW_PERIOD_DAYS', '14'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        try:
            return db.session.get(User, _token_identity(jwt_payload['sub']))
        except ValueError:
            return None

    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": 'apispec_1',
                "route": '/apispec_1.json',
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/api-docs/",
    }
    Swagger(app, config=swagger_config)

    # Register Blueprints
    from escrow_service.routes.escrows import escrow_bp
    from escrow_service.routes.disputes import dispute_bp
    from escrow_service.routes.wallet import wallet_bp
    app.register_blueprint(escrow_bp, url_prefix='/api')
    app.register_blueprint(dispute_bp, url_prefix='/api')
    app.register_blueprint(wallet_bp, url_prefix='/api')

    _register_error_handlers(app)

    from escrow_service.cli import register_commands
    register_commands(app)

    # --- Health check ---------------------------------------------------
    @app.route('/health')
    def health():
        try:
            db.session.execute(db.text('SELECT 1'))
            return jsonify({
                "status": "healthy",
                "service": "escrow-service",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }), 200
        except Exception:
            logger.exception("Health check failed")
            return jsonify({"status": "unhealthy", "service": "escrow-service"}), 503

    logger.debug("Routes: %s", app.url_map)
    return app


def _token_identity(sub):
    return uuid.UUID(str(sub))


def _register_error_handlers(app):

    def handle_service_error(error):
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message)
        return jsonify(error.to_dict()), error.status_code

    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled error")
        db.session.rollback()
        return jsonify(Internal().to_dict()), 500

    app.register_error_handler(EscrowServiceError, handle_service_error)
    app.register_error_handler(Exception, handle_unexpected_error)


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '8000')))
