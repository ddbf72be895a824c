"""
Application factory for LearnHub.

This module provides create_app() which initializes Flask, extensions,
logging, error handlers, CLI commands and the announcement email
scheduler, and registers blueprints.
"""

import os
import logging
from logging.handlers import RotatingFileHandler

import pytz
from flask import Flask, request
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# Validate required environment variables
required_env_vars = ["SECRET_KEY", "DATABASE_URL", "FLASK_ENV"]
missing_vars = [var for var in required_env_vars if not os.getenv(var)]
if missing_vars:
    raise RuntimeError(
        "Missing required environment variables: " + ", ".join(missing_vars)
    )


def _env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# -------------------- APPLICATION FACTORY --------------------

def create_app(test_config=None):
    """
    Application factory function.

    Args:
        test_config: Optional mapping applied over the environment-derived
            configuration before extensions are initialized.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # -------------------- CONFIGURATION --------------------
    app.config.from_mapping(
        DEBUG=False,
        ENV=os.environ["FLASK_ENV"],
        SECRET_KEY=os.environ["SECRET_KEY"],
        SQLALCHEMY_DATABASE_URI=os.environ["DATABASE_URL"],
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SESSION_COOKIE_SECURE=True,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        MAIL_SERVER=os.getenv("MAIL_SERVER", "localhost"),
        MAIL_PORT=int(os.getenv("MAIL_PORT", "587")),
        MAIL_USE_TLS=_env_flag("MAIL_USE_TLS", True),
        MAIL_USE_SSL=_env_flag("MAIL_USE_SSL", False),
        MAIL_USERNAME=os.getenv("MAIL_USERNAME"),
        MAIL_PASSWORD=os.getenv("MAIL_PASSWORD"),
        MAIL_DEFAULT_SENDER=os.getenv("MAIL_DEFAULT_SENDER", "noreply@learnhub.local"),
        PLATFORM_NAME=os.getenv("PLATFORM_NAME", "LearnHub"),
        SCHEDULER_TIMEZONE=os.getenv("SCHEDULER_TIMEZONE") or None,
        SCHEDULER_INTERVAL_HOURS=int(os.getenv("SCHEDULER_INTERVAL_HOURS", "1")),
    )
    if test_config:
        app.config.update(test_config)

    # -------------------- LOGGING --------------------
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    log_format = os.getenv(
        "LOG_FORMAT",
        "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(logging.Formatter(log_format))

    handlers = [stream_handler]
    if os.getenv("FLASK_ENV", app.config.get("ENV")) == "production":
        log_file = os.getenv("LOG_FILE", "app.log")
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    # app.logger is the "learnhub" logger, parent of every module logger
    for logger in (app.logger, logging.getLogger('scheduled_tasks')):
        logger.setLevel(log_level)
        # Prevent duplicate log entries by clearing handlers first
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)

    tz_name = app.config.get("SCHEDULER_TIMEZONE")
    if tz_name:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            app.logger.warning(f"Invalid SCHEDULER_TIMEZONE '{tz_name}', using server-local time.")
            app.config["SCHEDULER_TIMEZONE"] = None

    # -------------------- EXTENSIONS --------------------
    from learnhub.extensions import db, migrate, mail, limiter

    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    limiter.init_app(app)

    # Make sure models are registered with SQLAlchemy metadata
    from learnhub import models  # noqa: F401

    # -------------------- REGISTER BLUEPRINTS --------------------
    from learnhub.routes.main import main_bp
    from learnhub.routes.announcements import announcements_bp
    from learnhub.routes.scheduler import scheduler_bp
    from learnhub.routes.email import email_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(announcements_bp)
    app.register_blueprint(scheduler_bp)
    app.register_blueprint(email_bp)

    # -------------------- SECURITY HEADERS --------------------
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all HTTP responses."""
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        return response

    # -------------------- CLI COMMANDS --------------------
    from learnhub import cli_commands
    cli_commands.init_app(app)

    # -------------------- SCHEDULED TASKS --------------------
    if not app.config.get("TESTING") and app.config.get("ENV") != "testing":
        from learnhub.scheduled_tasks import init_scheduled_tasks
        init_scheduled_tasks(app)

    return app


__all__ = ["create_app"]
