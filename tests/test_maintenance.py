from datetime import datetime, timedelta

from cvbuilder.extensions import db
from cvbuilder.models import User, UserToken
from cvbuilder.services.auth import RESET_PASSWORD, VERIFY_EMAIL


def test_set_subscription_with_expiry(app, user):
    result = app.test_cli_runner().invoke(args=["set-subscription", "User@Example.com", "premium", "--days", "30"])

    assert result.exit_code == 0, result.output
    db.session.expire_all()
    assert "user@example.com is now on premium" in result.output
    refreshed = db.session.get(User, user.id)
    assert refreshed.subscription_tier == "premium"
    assert refreshed.has_active_premium()
    assert refreshed.subscription_expires_at > datetime.utcnow() + timedelta(days=29)


def test_downgrade_to_free_clears_expiry(app, premium_user):
    result = app.test_cli_runner().invoke(args=["set-subscription", "premium@example.com", "free", "--days", "30"])

    assert result.exit_code == 0, result.output
    db.session.expire_all()
    refreshed = db.session.get(User, premium_user.id)
    assert refreshed.subscription_tier == "free"
    assert refreshed.subscription_expires_at is None


def test_set_subscription_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["set-subscription", "ghost@example.com", "premium"])

    assert result.exit_code != 0
    assert "No user with email ghost@example.com" in result.output


def test_set_subscription_rejects_unknown_tier(app, user):
    result = app.test_cli_runner().invoke(args=["set-subscription", "user@example.com", "gold"])

    assert result.exit_code != 0
    assert db.session.get(User, user.id).subscription_tier == "free"


def test_cleanup_tokens_keeps_live_ones(app, user):
    now = datetime.utcnow()
    db.session.add_all([
        UserToken(user_id=user.id, token="old-verify", purpose=VERIFY_EMAIL, expires_at=now - timedelta(days=1)),
        UserToken(user_id=user.id, token="old-reset", purpose=RESET_PASSWORD, expires_at=now - timedelta(minutes=5)),
        UserToken(user_id=user.id, token="live-reset", purpose=RESET_PASSWORD, expires_at=now + timedelta(hours=1)),
    ])
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["cleanup-tokens"])

    assert result.exit_code == 0, result.output
    assert "Removed 2 expired token(s)" in result.output
    assert [t.token for t in UserToken.query.all()] == ["live-reset"]
