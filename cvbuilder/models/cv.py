from cvbuilder.extensions import db
from datetime import datetime
import uuid


class CV(db.Model):
    __tablename__ = "cvs"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    template = db.Column(db.String(50), nullable=False, default="modern")
    data = db.Column(db.JSON, nullable=False)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    share_token = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="cvs")

    def __repr__(self):
        return f"<CV {self.id} {self.name!r}>"
