# app.py
"""
Flask application factory for the TokenFlow waitlist service

The factory wires together:
- Logging for journald/stdout with an optional rotating file
- SQLite (or any SQLAlchemy URL) subscriber storage
- Mail transport bootstrap (production SMTP or Ethereal sandbox)
- The subscription API, static file serving and health checks
"""

import os
import logging
import logging.handlers
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from flask import Flask, request, jsonify, g, send_from_directory
from flask_cors import CORS
from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from api.subscribe import subscribe_bp
from config.settings import get_config
from core.database_models import db
from core.storage import init_storage, count_subscribers
from core.transport import SMTPSettings, TransportHandle
from middleware.security import security_headers
from services.subscriptions import SubscriptionService
from tasks.email_sender import WelcomeMailer
from tasks.transport_setup import SandboxProvisioner, TransportBootstrapper

LOG_HANDLER_PREFIX = 'waitlist'


def setup_logging(app: Flask) -> None:
    """
    Configure logging for stdout (collected by journald under systemd) and,
    when LOG_FILE is set, a rotating file with a detailed format.

    Handlers go on the root logger so module loggers share them; handlers
    installed by a previous factory call are replaced, not duplicated.
    """
    journal_formatter = logging.Formatter(
        fmt='%(name)s[%(process)d]: %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if (handler.get_name() or '').startswith(LOG_HANDLER_PREFIX):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(log_level)

    app.logger.handlers.clear()
    app.logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.set_name(f'{LOG_HANDLER_PREFIX}.stream')
    stream_handler.setFormatter(journal_formatter)
    stream_handler.setLevel(log_level)
    root_logger.addHandler(stream_handler)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.set_name(f'{LOG_HANDLER_PREFIX}.file')
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)


def configure_database(app: Flask) -> None:
    """
    Bind Flask-SQLAlchemy to DATABASE_URL and create the subscribers table
    """
    database_url = app.config['DATABASE_URL']
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if not database_url.startswith('sqlite'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {
            'pool_pre_ping': True,
            'pool_recycle': 3600,
        })

    # a malformed URL is fatal even when STORAGE_REQUIRED is off
    try:
        db.init_app(app)
    except ArgumentError as e:
        app.logger.error(f"Invalid DATABASE_URL {database_url!r}: {e}")
        raise
    init_storage(app)


def configure_mail(app: Flask) -> TransportHandle:
    """
    Create the transport handle and the subscription service, then start the
    transport bootstrap unless TRANSPORT_BOOTSTRAP is disabled
    """
    settings = SMTPSettings.from_config(app.config)
    handle = TransportHandle()

    mailer = WelcomeMailer(from_address=settings.from_address)
    app.subscription_service = SubscriptionService(
        transport_handle=handle,
        mailer=mailer,
        transport_wait_timeout=app.config.get('TRANSPORT_WAIT_TIMEOUT') or 0.0
    )
    app.transport_handle = handle

    if app.config.get('TRANSPORT_BOOTSTRAP', True):
        provisioner = SandboxProvisioner(
            api_url=app.config['ETHEREAL_API_URL'],
            version=app.config.get('VERSION', '1.0.0')
        )
        app.transport_bootstrapper = TransportBootstrapper(settings, handle, provisioner)
        app.transport_bootstrapper.start()
    else:
        app.logger.info("Mail transport bootstrap disabled")

    return handle


def register_blueprints(app: Flask) -> None:
    """
    Register the API blueprint and static file serving
    """
    CORS(app, resources={r"/api/*": {"origins": app.config.get('CORS_ORIGINS', '*')}})

    app.register_blueprint(subscribe_bp)

    @app.route('/')
    def index():
        return send_from_directory(app.static_folder, 'index.html')

    app.logger.info("Application blueprints registered")


def configure_error_handlers(app: Flask) -> None:
    """
    JSON error bodies for everything outside the subscription API's own handling
    """
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify({'error': 'Internal Server Error'}), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        if isinstance(e, HTTPException):
            return e

        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({'error': 'Internal Server Error'}), 500


def configure_health_checks(app: Flask) -> None:
    """
    Health endpoint reporting storage and mail transport status
    """
    @app.route('/health')
    def health_check():
        health_status: Dict[str, Any] = {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': app.config.get('VERSION', '1.0.0'),
            'components': {}
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['components']['database'] = f'healthy ({count_subscribers()} subscribers)'
        except SQLAlchemyError as e:
            db.session.rollback()
            health_status['components']['database'] = f'unhealthy: {str(e)}'
            health_status['status'] = 'unhealthy'

        health_status['components']['mail_transport'] = app.transport_handle.describe()

        status_code = 200 if health_status['status'] == 'healthy' else 503
        return jsonify(health_status), status_code


def configure_request_middleware(app: Flask) -> None:
    """
    Request timing and security headers
    """
    @app.before_request
    def before_request():
        g.start_time = datetime.now(timezone.utc)

    @app.after_request
    def after_request(response):
        response = security_headers(response)

        if hasattr(g, 'start_time'):
            duration = (datetime.now(timezone.utc) - g.start_time).total_seconds() * 1000
            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

        return response


def create_app(config_name: Optional[str] = None,
               config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')
        config_overrides: Values applied on top of the selected configuration

    Returns:
        Configured Flask application instance
    """
    config_class = get_config(config_name)
    config_overrides = config_overrides or {}

    static_root = os.path.abspath(config_overrides.get('STATIC_ROOT') or config_class.STATIC_ROOT)

    app = Flask(__name__,
                static_folder=static_root,
                static_url_path='')

    app.config.from_object(config_class)
    app.config.update(config_overrides)
    app.config['START_TIME'] = datetime.now(timezone.utc)

    setup_logging(app)
    app.logger.info(f"Starting waitlist service with {config_class.__name__}")

    configure_database(app)
    configure_mail(app)
    register_blueprints(app)
    configure_error_handlers(app)
    configure_health_checks(app)
    configure_request_middleware(app)

    app.logger.info("Flask application factory completed successfully")
    return app


def main() -> None:
    app = create_app()

    startup_wait = app.config.get('TRANSPORT_STARTUP_WAIT')
    if startup_wait:
        app.transport_handle.wait(startup_wait)

    app.logger.info(f"Server running on port {app.config['PORT']}")
    app.run(
        host=app.config['HOST'],
        port=app.config['PORT'],
        debug=app.debug,
        use_reloader=False,
        threaded=True
    )


if __name__ == '__main__':
    main()
