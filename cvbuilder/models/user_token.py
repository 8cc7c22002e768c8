from cvbuilder.extensions import db
from datetime import datetime
import uuid


class UserToken(db.Model):
    """One-time token for email verification or password reset."""
    __tablename__ = "user_tokens"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False)
    purpose = db.Column(db.Enum("verify_email", "reset_password", name="token_purposes"), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship("User", back_populates="tokens")
