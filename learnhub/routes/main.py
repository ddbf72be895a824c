"""
Main routes for LearnHub.

Health check plus the application-wide JSON error handlers.
"""

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from learnhub.errors import LearnHubError
from learnhub.extensions import db

# Create blueprint
main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health_check():
    """Simple health check endpoint for uptime monitoring."""
    try:
        db.session.execute(text('SELECT 1'))
        return 'ok', 200
    except SQLAlchemyError:
        current_app.logger.exception('Health check failed')
        return jsonify(error='Database error'), 500


# -------------------- ERROR HANDLERS --------------------

@main_bp.app_errorhandler(LearnHubError)
def handle_learnhub_error(error):
    if error.status_code >= 500:
        current_app.logger.error(f"{type(error).__name__}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@main_bp.app_errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    current_app.logger.exception('Database error while handling request')
    return jsonify({"status": "error", "message": "Database error"}), 500
