"""Email service routes for LearnHub (admin only)."""

from flask import Blueprint, jsonify

from learnhub.auth import get_current_caller, require_caller
from learnhub.email_delivery import check_mail_connection
from learnhub.models import Role

# Create blueprint
email_bp = Blueprint('email', __name__, url_prefix='/email')


@email_bp.route('/test-connection', methods=['GET'])
def test_connection():
    """Open an SMTP connection with the configured credentials."""
    require_caller(get_current_caller(), Role.ADMIN)
    if check_mail_connection():
        return jsonify({"status": "success", "success": True, "message": "Email service is working"})
    return jsonify({"status": "error", "success": False, "message": "Email service connection failed"}), 503
