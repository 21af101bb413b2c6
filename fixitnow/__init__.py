"""
FixItNow backend - Flask application factory
"""
import os
import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    from config import config
    app.config.from_object(config.get(config_name, config['default']))

    _configure_logging(app)
    _init_sentry(app)

    # Initialize extensions
    from fixitnow.extensions import limiter
    from fixitnow.middleware import RequestIdMiddleware

    db.init_app(app)
    limiter.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})
    app.wsgi_app = RequestIdMiddleware(app.wsgi_app)

    # Register blueprints
    from fixitnow.routes import (
        auth_bp, jobs_bp, cash_payments_bp, payments_bp, webhook_bp,
        payouts_bp, admin_bp, notifications_bp,
    )

    api_prefix = app.config['API_PREFIX']
    app.register_blueprint(auth_bp, url_prefix=f'{api_prefix}/auth')
    app.register_blueprint(jobs_bp, url_prefix=f'{api_prefix}/jobs')
    app.register_blueprint(cash_payments_bp, url_prefix=f'{api_prefix}/cash-payments')
    app.register_blueprint(payments_bp, url_prefix=f'{api_prefix}/payments')
    app.register_blueprint(webhook_bp, url_prefix=f'{api_prefix}/webhooks')
    app.register_blueprint(payouts_bp, url_prefix=f'{api_prefix}/payouts')
    app.register_blueprint(admin_bp, url_prefix=f'{api_prefix}/admin')
    app.register_blueprint(notifications_bp, url_prefix=f'{api_prefix}/notifications')

    _register_error_handlers(app)
    _register_security_headers(app)
    _register_cli(app)

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy', 'service': 'fixitnow-backend'}, 200

    # Import models so create_all() sees every table
    from fixitnow import models  # noqa: F401

    with app.app_context():
        db.create_all()

    return app


def _configure_logging(app):
    from fixitnow.middleware import RequestIdFilter

    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s'
    ))
    handler.addFilter(RequestIdFilter())

    package_logger = logging.getLogger('fixitnow')
    package_logger.handlers = [handler]
    package_logger.setLevel(level)
    package_logger.propagate = False


def _init_sentry(app):
    """Sentry error monitoring (optional -- only active when SENTRY_DSN is set)"""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        if not app.debug and not app.testing:
            logger.warning("SENTRY_DSN is not set -- error monitoring is disabled.")
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
    )


def _register_error_handlers(app):
    from fixitnow.errors import FixItNowError

    @app.errorhandler(FixItNowError)
    def handle_marketplace_error(e):
        db.session.rollback()
        if e.status_code >= 500:
            logger.error("%s: %s", e.kind, e.message)
        else:
            logger.info("Rejected request (%s): %s", e.kind, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'success': False, 'error': 'Resource not found', 'kind': 'not_found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({
            'success': False,
            'error': 'Method not allowed',
            'kind': 'method_not_allowed',
        }), 405

    @app.errorhandler(429)
    def ratelimit_handler(e):
        # Retry-After header is set by Flask-Limiter; read it back.
        retry_after = e.get_headers().get("Retry-After") if hasattr(e, "get_headers") else None
        retry_after_seconds = int(retry_after) if retry_after else 60
        return jsonify({
            'success': False,
            'error': 'Too many requests. Please try again later.',
            'kind': 'rate_limited',
            'retry_after': retry_after_seconds,
        }), 429

    @app.errorhandler(500)
    def internal_error(e):
        db.session.rollback()
        logger.exception("Unhandled server error")
        return jsonify({'success': False, 'error': 'Server error', 'kind': 'server_error'}), 500


def _register_security_headers(app):
    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def _register_cli(app):
    @app.cli.command("init-db")
    def cli_init_db():
        """Create all database tables."""
        click.echo("Creating FixItNow tables...")
        db.create_all()
        click.echo("Done.")
