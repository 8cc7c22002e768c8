# cvbuilder/services/cv_sharing.py
"""Public share links for CVs."""
import logging
import re

from flask import current_app

from cvbuilder import databases
from cvbuilder.services.cv_transforms import (
    SHARE_TOKEN_LENGTH,
    generate_share_token,
    sanitize_cv_for_public_sharing,
)

logger = logging.getLogger(__name__)

MIN_LOOKUP_TOKEN_LENGTH = 10

_TOKEN_RE = re.compile(rf"^[A-Za-z0-9]{{{SHARE_TOKEN_LENGTH}}}$")
_LEGACY_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


class InvalidShareTokenError(ValueError):
    pass


def generate_share_url(token, base_url=None):
    base = (base_url or current_app.config.get("APP_URL") or "http://localhost:3000").rstrip("/")
    return f"{base}/cv/shared/{token}"


def is_valid_share_token(token) -> bool:
    if not isinstance(token, str):
        return False
    return bool(_TOKEN_RE.match(token) or _LEGACY_UUID_RE.match(token))


def issue_share_token(cv_id, user_id):
    """Give the CV a fresh token and make it public. Returns ``(cv, share_url)``."""
    token = generate_share_token()
    cv = databases.set_share_token(cv_id, user_id, token)
    logger.info(f"🔗 Share link issued for CV {cv_id}")
    return cv, generate_share_url(token)


def revoke_share_token(cv_id, user_id):
    cv = databases.set_share_token(cv_id, user_id, None)
    logger.info(f"🔒 Share link revoked for CV {cv_id}")
    return cv


def get_shared_cv(token):
    """Resolve a public token to the response payload for the shared CV.

    Raises InvalidShareTokenError for malformed tokens and
    databases.NotFoundError when nothing public matches.
    """
    if not token or len(token) < MIN_LOOKUP_TOKEN_LENGTH:
        raise InvalidShareTokenError("Invalid share token")

    cv = databases.find_cv_by_share_token(token)
    return {
        "id": cv.id,
        "name": cv.name,
        "template": cv.template,
        "data": sanitize_cv_for_public_sharing(cv.data),
        "createdAt": cv.created_at.isoformat() if cv.created_at else None,
        "updatedAt": cv.updated_at.isoformat() if cv.updated_at else None,
        "owner": (cv.user.name if cv.user else None) or "Anonymous",
    }


def generate_share_metadata(cv, owner_name=None):
    """Title/description used for link previews of a shared CV."""
    data = cv.data or {}
    contact_name = (data.get("contact") or {}).get("name") or owner_name or "Anonymous"
    summary = (data.get("summary") or cv.description or "").strip()
    if len(summary) > 160:
        summary = summary[:157].rstrip() + "..."

    role = (data.get("metadata") or {}).get("targetRole")
    if not role and data.get("experience"):
        role = data["experience"][0].get("title")

    title = f"{contact_name} - {role}" if role else f"{contact_name} - CV"
    return {
        "title": title,
        "description": summary or f"View {contact_name}'s CV",
        "owner": contact_name,
        "template": cv.template,
        "url": generate_share_url(cv.share_token) if cv.share_token else None,
    }
