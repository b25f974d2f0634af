"""Application factory for the sessionbook scheduling service."""

from __future__ import annotations

from flask import Flask, jsonify

from sessionbook.blueprints.api import api_bp
from sessionbook.blueprints.auth import auth_bp
from sessionbook.config import Config
from sessionbook.extensions import (
    db,
    migrate,
    login_manager,
    csrf,
    limiter,
)
from sessionbook.models import User
from sessionbook.security.config import (
    configure_security_headers,
    validate_input_length,
)
from sessionbook.services.errors import ServiceError


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # Configure security
    configure_security_headers(app)
    validate_input_length(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED'}), 401

    # Ensure models are registered for migrations
    import sessionbook.models  # noqa: F401

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            db.create_all()

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(api_bp, url_prefix='/api/v1')

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found', 'code': 'NOT_FOUND'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED'}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'error': 'Request body too large', 'code': 'PAYLOAD_TOO_LARGE'}), 413

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': 'Too many requests', 'code': 'RATE_LIMITED'}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500

    # Register CLI commands
    from sessionbook.commands import register_commands
    register_commands(app)

    return app
