from ..extensions import db
from datetime import datetime
import uuid


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255))
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    subscription_tier = db.Column(
        db.Enum("free", "premium", "enterprise", name="subscription_tiers"),
        nullable=False,
        default="free",
    )
    subscription_expires_at = db.Column(db.DateTime, nullable=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cvs = db.relationship("CV", back_populates="user", cascade="all, delete-orphan")
    tokens = db.relationship("UserToken", back_populates="user", cascade="all, delete-orphan")
    ai_usage = db.relationship("AIUsage", back_populates="user", cascade="all, delete-orphan")

    def has_active_premium(self, now=None):
        """Premium features need a paid tier and an unexpired subscription.

        Enterprise accounts without an expiry date never lapse.
        """
        if self.subscription_tier not in ("premium", "enterprise"):
            return False
        if self.subscription_expires_at is None:
            return self.subscription_tier == "enterprise"
        return (now or datetime.utcnow()) < self.subscription_expires_at

    @property
    def plan_type(self):
        """Usage-limit plan key for the tier, e.g. ``"PREMIUM"``."""
        return (self.subscription_tier or "free").upper()

    # for string representation
    def __repr__(self):
        return f"<User {self.email}>"
