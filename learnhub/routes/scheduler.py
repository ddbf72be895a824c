"""
Scheduler routes for LearnHub.

Admin endpoints to run the announcement email job on demand and to preview
what it will send over the coming weeks.
"""

from flask import Blueprint, jsonify

from learnhub.auth import get_current_caller
from learnhub.extensions import limiter
from learnhub.scheduled_tasks import trigger_scheduled_announcements, list_upcoming_email_announcements

# Create blueprint
scheduler_bp = Blueprint('scheduler', __name__, url_prefix='/scheduler')


@scheduler_bp.route('/trigger-announcements', methods=['POST'])
@limiter.limit("5 per minute")
def trigger_announcements():
    """Run the scheduled announcement job synchronously."""
    result = trigger_scheduled_announcements(get_current_caller())
    return jsonify({"status": "success", **result})


@scheduler_bp.route('/upcoming-announcements', methods=['GET'])
def upcoming_announcements():
    announcements = list_upcoming_email_announcements(get_current_caller())
    return jsonify({
        "status": "success",
        "count": len(announcements),
        "announcements": [a.to_dict() for a in announcements],
    })
