from datetime import datetime, timedelta

from cvbuilder.extensions import db, bcrypt
from cvbuilder.models import User


def seed():
    print("🌱 Seeding users...")

    users = [
        User(
            name="Free User",
            email="free@example.com",
            password=bcrypt.generate_password_hash("password123").decode("utf-8"),
            subscription_tier="free",
            email_verified=True,
        ),
        User(
            name="Premium User",
            email="premium@example.com",
            password=bcrypt.generate_password_hash("password123").decode("utf-8"),
            subscription_tier="premium",
            subscription_expires_at=datetime.utcnow() + timedelta(days=365),
            email_verified=True,
        ),
        User(
            name="Enterprise User",
            email="enterprise@example.com",
            password=bcrypt.generate_password_hash("password123").decode("utf-8"),
            subscription_tier="enterprise",
            email_verified=True,
        ),
    ]

    # prevent duplicates
    for user in users:
        existing = User.query.filter_by(email=user.email).first()
        if not existing:
            db.session.add(user)

    db.session.commit()
    print("✅ Users seeded successfully!")
