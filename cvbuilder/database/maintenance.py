from datetime import datetime, timedelta

import click
from flask.cli import with_appcontext

import cvbuilder.databases as databases


@click.command("set-subscription")
@click.argument("email")
@click.argument("tier", type=click.Choice(["free", "premium", "enterprise"]))
@click.option("--days", type=int, default=None, help="Subscription length; omit for no expiry.")
@with_appcontext
def set_subscription(email, tier, days):
    """Change a user's subscription tier."""
    user = databases.find_user_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}")

    expires_at = None
    if tier != "free" and days is not None:
        expires_at = datetime.utcnow() + timedelta(days=days)

    databases.update_user_subscription(user.id, tier, expires_at)
    until = expires_at.strftime("%Y-%m-%d") if expires_at else "no expiry"
    click.echo(f"✅ {email} is now on {tier} ({until})")


@click.command("cleanup-tokens")
@with_appcontext
def cleanup_tokens():
    """Delete expired verification and password reset tokens."""
    deleted = databases.cleanup_expired_tokens()
    click.echo(f"🧹 Removed {deleted} expired token(s)")
