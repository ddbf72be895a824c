"""
Announcement routes for LearnHub.

JSON endpoints for managing announcements (admin) and reading the feeds
(public, per-user, banners, tags). Authorization is enforced inside the
service functions; views that read a JSON body check the caller first so
anonymous requests get 401 before any body validation.
"""

from flask import Blueprint, request, jsonify

from learnhub import announcement_service as service
from learnhub.auth import get_current_caller, require_caller
from learnhub.errors import ValidationError
from learnhub.extensions import limiter
from learnhub.models import Role
from learnhub.utils.filters import AnnouncementFilter

# Create blueprint
announcements_bp = Blueprint('announcements', __name__, url_prefix='/announcements')


def _admin_caller():
    return require_caller(get_current_caller(), Role.ADMIN)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _announcement_response(announcement, status=200, message=None):
    payload = {"status": "success", "announcement": announcement.to_dict()}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def _list_response(announcements):
    return jsonify({
        "status": "success",
        "count": len(announcements),
        "announcements": [a.to_dict() for a in announcements],
    })


# -------------------- ADMIN MANAGEMENT --------------------

@announcements_bp.route('', methods=['POST'])
def create_announcement():
    announcement = service.create_announcement(_admin_caller(), _json_body())
    return _announcement_response(announcement, 201, "Announcement created successfully")


@announcements_bp.route('/public', methods=['POST'])
def create_public_announcement():
    announcement = service.create_public_announcement(_admin_caller(), _json_body())
    return _announcement_response(announcement, 201, "Public announcement created successfully")


@announcements_bp.route('/all', methods=['GET'])
def list_all_announcements():
    """Every announcement, including inactive and expired ones."""
    return _list_response(service.list_all_announcements(get_current_caller()))


@announcements_bp.route('/<announcement_id>', methods=['PUT'])
def update_announcement(announcement_id):
    announcement = service.update_announcement(_admin_caller(), announcement_id, _json_body())
    return _announcement_response(announcement, message="Announcement updated successfully")


@announcements_bp.route('/<announcement_id>/toggle', methods=['PATCH'])
def toggle_announcement(announcement_id):
    announcement = service.toggle_announcement_status(get_current_caller(), announcement_id)
    state = "activated" if announcement.is_active else "deactivated"
    return _announcement_response(announcement, message=f"Announcement {state}")


@announcements_bp.route('/<announcement_id>', methods=['DELETE'])
def delete_announcement(announcement_id):
    service.delete_announcement(get_current_caller(), announcement_id)
    return jsonify({"status": "success", "message": "Announcement deleted successfully"})


@announcements_bp.route('/test-data', methods=['POST'])
def create_test_data():
    """Seed the sample announcements."""
    created = service.seed_sample_announcements(get_current_caller())
    return jsonify({
        "status": "success",
        "message": f"Created {len(created)} sample announcements",
        "announcements": [a.to_dict() for a in created],
    }), 201


@announcements_bp.route('/stats/overview', methods=['GET'])
def announcement_stats():
    return jsonify({"status": "success", "stats": service.get_announcement_stats(get_current_caller())})


# -------------------- FEEDS --------------------

@announcements_bp.route('', methods=['GET'])
@limiter.limit("60 per minute")
def list_announcements():
    """
    Role-aware listing.

    Admins get the filtered admin listing (query-string filters), other
    signed-in users their personal feed, anonymous visitors the public feed.
    """
    caller = get_current_caller()
    if caller is not None and caller.is_admin:
        filters = AnnouncementFilter.from_args(request.args)
        announcements = service.list_announcements_for_admin(caller, filters)
    elif caller is not None:
        announcements = service.list_announcements_for_user(caller)
    else:
        announcements = service.list_public_announcements()
    return _list_response(announcements)


@announcements_bp.route('/public', methods=['GET'])
@limiter.limit("60 per minute")
def public_announcements():
    return _list_response(service.list_public_announcements())


@announcements_bp.route('/banners', methods=['GET'])
@limiter.limit("60 per minute")
def banner_announcements():
    return _list_response(service.list_banner_announcements())


@announcements_bp.route('/tags', methods=['GET'])
@limiter.limit("60 per minute")
def popular_tags():
    return jsonify({"status": "success", "tags": service.get_popular_tags()})


@announcements_bp.route('/tags/<tags>', methods=['GET'])
@limiter.limit("60 per minute")
def announcements_by_tags(tags):
    """Visible announcements matching any of the comma-separated tags."""
    return _list_response(service.list_announcements_by_tags(tags))


@announcements_bp.route('/user', methods=['GET'])
def user_announcements():
    return _list_response(service.list_announcements_for_user(get_current_caller()))


@announcements_bp.route('/view/<announcement_id>', methods=['GET'])
@announcements_bp.route('/<announcement_id>', methods=['GET'])
def get_announcement(announcement_id):
    return _announcement_response(service.get_announcement(announcement_id))
