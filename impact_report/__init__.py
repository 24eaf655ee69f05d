"""
Impact Report Service

JSON API over the impact report authoring engine: a twelve-section
community-service report that students fill in step by step, saved as a
local draft and to the remote report API, then submitted once.

The factory wires in:
- the remote report API client and the draft push executor
- CSRF protection and per-endpoint rate limits
- security headers and request timing logs
- the draft cache table and the audit trail
"""

import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from flask import Flask, request, g
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _env_int(name, default):
    return int(os.environ.get(name, default))


def _load_config(app, test_config):
    app.config.from_mapping(
        SECRET_KEY=os.environ.get('SECRET_KEY', 'dev-only-secret-key'),
        SQLALCHEMY_DATABASE_URI=os.environ.get('DATABASE_URL', 'sqlite:///impact_report.db'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        PERMANENT_SESSION_LIFETIME=8 * 3600,

        # Remote report API
        REPORT_API_BASE_URL=os.environ.get('REPORT_API_BASE_URL', 'http://localhost:8000/api'),
        REPORT_API_TOKEN=os.environ.get('REPORT_API_TOKEN', ''),
        REPORT_API_TIMEOUT=_env_int('REPORT_API_TIMEOUT', 30),
        DRAFT_PUSH_WORKERS=_env_int('DRAFT_PUSH_WORKERS', 2),
        MAX_REPORT_SESSIONS=_env_int('MAX_REPORT_SESSIONS', 500),

        # Forms and tokens
        WTF_CSRF_ENABLED=True,
        WTF_CSRF_TIME_LIMIT=3600,
        WTF_CSRF_SSL_STRICT=False,

        # Limits are kept in memory unless a Redis URL is given
        RATELIMIT_STORAGE_URI=os.environ.get('RATELIMIT_STORAGE_URI', 'memory://'),
        RATELIMIT_STRATEGY='fixed-window',
        RATELIMIT_HEADERS_ENABLED=True,
    )

    if test_config is not None:
        app.config.from_mapping(test_config)
    else:
        app.config.from_pyfile('config.py', silent=True)

    os.makedirs(app.instance_path, exist_ok=True)


def _init_engine(app):
    """Attach the report engine's collaborators to the app."""
    from impact_report.api_client import ReportApiClient
    from impact_report.routes import SessionRegistry, report_bp

    app.extensions['report_api'] = ReportApiClient(
        app.config['REPORT_API_BASE_URL'],
        token=app.config['REPORT_API_TOKEN'] or None,
        timeout=app.config['REPORT_API_TIMEOUT'],
    )
    app.extensions['draft_executor'] = ThreadPoolExecutor(
        max_workers=app.config['DRAFT_PUSH_WORKERS'],
        thread_name_prefix='draft-push'
    )
    app.extensions['report_sessions'] = SessionRegistry(app.config['MAX_REPORT_SESSIONS'])
    app.register_blueprint(report_bp)


def _register_hooks(app):
    from impact_report.security import add_security_headers

    @app.before_request
    def start_timer():
        g.request_started_at = datetime.utcnow()

    @app.after_request
    def finish_request(response):
        response = add_security_headers(response)
        started = g.get('request_started_at')
        if started is not None:
            elapsed = (datetime.utcnow() - started).total_seconds()
            app.logger.info(f'{request.method} {request.path} {response.status_code} in {elapsed:.3f}s')
        return response

    @app.errorhandler(404)
    def not_found(error):
        return {'ok': False, 'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(error):
        db.session.rollback()
        app.logger.error(f'Unhandled error: {error}')
        return {'ok': False, 'error': 'Internal server error'}, 500


def create_app(test_config=None):
    """Build the application; `test_config` replaces the instance config."""
    app = Flask(__name__, instance_relative_config=True)
    _load_config(app, test_config)

    db.init_app(app)

    # Security needs the config in place before the extensions bind
    from impact_report.security import init_security
    init_security(app)

    _init_engine(app)
    _register_hooks(app)

    with app.app_context():
        from impact_report import models  # noqa: F401
        db.create_all()

    return app
