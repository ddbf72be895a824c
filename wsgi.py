"""
WSGI entry point for LearnHub.

For gunicorn: wsgi:app
"""

from learnhub import create_app

app = create_app()
