"""
Flask CLI commands for announcement maintenance.
"""

import click
from flask.cli import with_appcontext

from learnhub.auth import Caller
from learnhub.models import User, Role


@click.command('seed-announcements')
@click.option('--admin-email', required=True, help='Email of the admin user recorded as the creator.')
@with_appcontext
def seed_announcements_command(admin_email):
    """Create the sample announcements on behalf of an existing admin."""
    from learnhub.announcement_service import seed_sample_announcements

    admin = User.query.filter_by(email=admin_email, role=Role.ADMIN).first()
    if admin is None:
        raise click.ClickException(f"No admin user with email {admin_email}")

    created = seed_sample_announcements(Caller(user_id=admin.id, role=admin.role))
    click.echo(f"✓ Created {len(created)} sample announcements")


@click.command('send-scheduled-announcements')
@with_appcontext
def send_scheduled_announcements_command():
    """Run the scheduled announcement email job once."""
    from learnhub.scheduled_tasks import deliver_scheduled_announcements

    summary = deliver_scheduled_announcements()
    click.echo(
        f"Found {summary['found']}: delivered {summary['delivered']}, "
        f"skipped {summary['skipped']}, failed {summary['failed']} "
        f"({summary['recipients']} emails sent)"
    )


def init_app(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(seed_announcements_command)
    app.cli.add_command(send_scheduled_announcements_command)
