"""
Application-wide constants for LearnHub.

Lookup tables used when presenting announcements (email subjects, badges)
and the sample announcements used to seed a fresh installation.
"""

# Subject-line marker per priority; unknown priorities fall back to DEFAULT_PRIORITY_MARKER
PRIORITY_MARKERS = {
    'P1': '🚨',
    'P2': '⚠️',
    'P3': 'ℹ️',
}
DEFAULT_PRIORITY_MARKER = '📢'

PRIORITY_COLORS = {
    'P1': '#e74c3c',
    'P2': '#f39c12',
    'P3': '#3498db',
}
DEFAULT_PRIORITY_COLOR = '#95a5a6'

# GENERAL has no entry and renders as DEFAULT_CATEGORY_LABEL
CATEGORY_LABELS = {
    'PROMOTION': 'Promotion',
    'COURSE_UPDATE': 'Course Update',
    'SYSTEM_MAINTENANCE': 'System Maintenance',
    'NEW_FEATURE': 'New Feature',
    'INSTRUCTOR_ANNOUNCEMENT': 'Instructor Announcement',
}
DEFAULT_CATEGORY_LABEL = 'Announcement'

CATEGORY_COLORS = {
    'PROMOTION': '#e67e22',
    'COURSE_UPDATE': '#27ae60',
    'SYSTEM_MAINTENANCE': '#8e44ad',
    'NEW_FEATURE': '#3498db',
    'INSTRUCTOR_ANNOUNCEMENT': '#2c3e50',
}
DEFAULT_CATEGORY_COLOR = '#95a5a6'

POPULAR_TAGS_LIMIT = 10
UPCOMING_WINDOW_DAYS = 30

SAMPLE_ANNOUNCEMENTS = [
    {
        "title": "Welcome to LearnHub",
        "content": "Welcome to our learning platform! We are excited to have you here.",
        "type": "PUBLIC_USERS",
        "priority": "P1",
        "category": "GENERAL",
        "display_type": "BANNER",
        "is_active": True,
        "show_as_banner": True,
        "action_url": "https://learnhub.example.com/courses",
        "action_text": "Browse Courses",
        "tags": ["welcome", "general"],
    },
    {
        "title": "New Advanced Course Available",
        "content": "We have added a new advanced course. Check it out in the courses section!",
        "type": "ALL_USERS",
        "priority": "P2",
        "category": "COURSE_UPDATE",
        "display_type": "IN_APP",
        "is_active": True,
        "action_url": "https://learnhub.example.com/courses/advanced",
        "action_text": "View Course",
        "tags": ["new-course", "advanced"],
    },
    {
        "title": "Instructor Meeting Reminder",
        "content": "Monthly instructor meeting scheduled for next Friday at 3 PM. Please mark your calendars.",
        "type": "INSTRUCTORS",
        "priority": "P2",
        "category": "INSTRUCTOR_ANNOUNCEMENT",
        "display_type": "IN_APP",
        "is_active": True,
        "tags": ["meeting", "instructor"],
    },
    {
        "title": "System Maintenance Notice",
        "content": "The platform will be under maintenance from 2-4 AM tonight. We apologize for any inconvenience.",
        "type": "ALL_USERS",
        "priority": "P1",
        "category": "SYSTEM_MAINTENANCE",
        "display_type": "BANNER",
        "is_active": True,
        "show_as_banner": True,
        "tags": ["maintenance", "system"],
    },
    {
        "title": "Admin Training Session",
        "content": "New admin training session available for all administrators. Contact support for details.",
        "type": "SPECIFIC_ROLES",
        "target_roles": ["ADMIN"],
        "priority": "P1",
        "category": "INSTRUCTOR_ANNOUNCEMENT",
        "display_type": "IN_APP",
        "is_active": True,
        "tags": ["training", "admin"],
    },
    {
        "title": "Special Promotion: 20% Off All Courses",
        "content": "Limited time offer! Get 20% off all courses this week. Use code LEARN20 at checkout.",
        "type": "PROMOTIONAL",
        "priority": "P1",
        "category": "PROMOTION",
        "display_type": "BANNER",
        "is_active": True,
        "show_as_banner": True,
        "action_url": "https://learnhub.example.com/courses",
        "action_text": "Shop Now",
        "tags": ["promotion", "discount", "sale"],
    },
]
