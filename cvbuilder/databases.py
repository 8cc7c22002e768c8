import copy
import logging
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cvbuilder.extensions import db
from cvbuilder.models import AIUsage, CV, User, UserToken

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base class for persistence failures."""


class NotFoundError(DatabaseError):
    def __init__(self, resource, identifier):
        super().__init__(f"{resource} with id {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class AccessDeniedError(DatabaseError):
    def __init__(self, message="Access denied: CV does not belong to user"):
        super().__init__(message)


class DuplicateError(DatabaseError):
    def __init__(self, resource, field):
        super().__init__(f"{resource} with this {field} already exists")
        self.resource = resource
        self.field = field


def _commit(action):
    """Commit the session, rolling back and wrapping any SQLAlchemy failure."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Database error while trying to {action}: {e}")
        raise DatabaseError(f"Failed to {action}") from e


# ==================== USER FUNCTIONS ====================

def find_user_by_email(email):
    if not email:
        return None
    return User.query.filter_by(email=email.strip().lower()).first()


def find_user_by_id(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def create_user(name, email, password_hash):
    user = User(name=name, email=email.strip().lower(), password=password_hash)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateError("User", "email") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"❌ Database error while creating user: {e}")
        raise DatabaseError("Failed to create user") from e
    return user


def update_user_subscription(user_id, tier, expires_at=None):
    user = find_user_by_id(user_id)
    user.subscription_tier = tier
    user.subscription_expires_at = expires_at
    _commit("update user subscription")
    return user


def update_user_password(user, password_hash):
    user.password = password_hash
    _commit("update user password")
    return user


def get_user_stats(user_id):
    cv_count = CV.query.filter_by(user_id=user_id).count()
    request_count, tokens_used = (
        db.session.query(func.count(AIUsage.id), func.coalesce(func.sum(AIUsage.total_tokens), 0))
        .filter(AIUsage.user_id == user_id)
        .one()
    )
    return {
        "totalCVs": cv_count,
        "totalAIRequests": int(request_count),
        "totalTokensUsed": int(tokens_used),
    }


# ==================== ONE-TIME TOKENS ====================

def create_user_token(user_id, token, purpose, expires_at):
    record = UserToken(user_id=user_id, token=token, purpose=purpose, expires_at=expires_at)
    db.session.add(record)
    _commit("create user token")
    return record


def find_valid_user_token(token, purpose, now=None):
    """Unexpired token of the given purpose, or None."""
    if not token:
        return None
    return (
        UserToken.query
        .filter(UserToken.token == token, UserToken.purpose == purpose)
        .filter(UserToken.expires_at > (now or datetime.utcnow()))
        .first()
    )


def delete_user_tokens(user_id, purpose):
    UserToken.query.filter_by(user_id=user_id, purpose=purpose).delete()
    _commit("delete user tokens")


def cleanup_expired_tokens(now=None):
    deleted = UserToken.query.filter(UserToken.expires_at < (now or datetime.utcnow())).delete()
    _commit("clean up expired tokens")
    return deleted


# ==================== CV FUNCTIONS ====================

_SORT_COLUMNS = {
    "name": CV.name,
    "createdAt": CV.created_at,
    "updatedAt": CV.updated_at,
}


def find_cv_by_id(cv_id, user_id=None):
    """Fetch a CV; when ``user_id`` is given the CV must belong to that user."""
    cv = db.session.get(CV, cv_id)
    if cv is None:
        raise NotFoundError("CV", cv_id)
    if user_id is not None and cv.user_id != user_id:
        raise AccessDeniedError()
    return cv


def _like_pattern(text):
    """Substring LIKE pattern with wildcard characters in ``text`` escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def find_user_cvs(user_id, page=1, limit=20, search=None, template=None,
                  sort_by="updatedAt", sort_order="desc"):
    """Return ``(cvs, total)`` for one page of the user's CVs."""
    query = CV.query.filter(CV.user_id == user_id)

    if search:
        pattern = _like_pattern(search.lower())
        query = query.filter(or_(
            func.lower(CV.name).like(pattern, escape="\\"),
            func.lower(func.coalesce(CV.description, "")).like(pattern, escape="\\"),
        ))
    if template:
        query = query.filter(CV.template == template)

    total = query.count()

    column = _SORT_COLUMNS.get(sort_by, CV.updated_at)
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc())
    cvs = query.offset((page - 1) * limit).limit(limit).all()
    return cvs, total


def create_cv(user_id, name, data, description=None, template="modern"):
    cv = CV(
        user_id=user_id,
        name=name,
        description=description,
        template=template or "modern",
        data=data,
    )
    db.session.add(cv)
    _commit("create CV")
    return cv


def update_cv(cv_id, user_id, **fields):
    """Apply ``fields`` (name, description, template, data, is_public, share_token)."""
    cv = find_cv_by_id(cv_id, user_id)
    for key, value in fields.items():
        if key == "data":
            # JSON columns only notice reassignment
            value = copy.deepcopy(value)
        setattr(cv, key, value)
    _commit("update CV")
    return cv


def delete_cv(cv_id, user_id):
    cv = find_cv_by_id(cv_id, user_id)
    db.session.delete(cv)
    _commit("delete CV")


def duplicate_cv(cv_id, user_id, new_name, description=None, data=None):
    """Create a private copy of a CV owned by ``user_id``."""
    original = find_cv_by_id(cv_id, user_id)
    duplicate = CV(
        user_id=user_id,
        name=new_name,
        description=description if description is not None else original.description,
        template=original.template,
        data=copy.deepcopy(data if data is not None else original.data),
        is_public=False,
        share_token=None,
    )
    db.session.add(duplicate)
    _commit("duplicate CV")
    return duplicate


def set_share_token(cv_id, user_id, token):
    """Issue (``token`` set) or revoke (``token`` None) a CV's public link."""
    return update_cv(cv_id, user_id, share_token=token, is_public=token is not None)


def find_cv_by_share_token(token):
    cv = CV.query.filter_by(share_token=token).first() if token else None
    if cv is None or not cv.is_public:
        raise NotFoundError("Shared CV", token)
    return cv


# ==================== HELPER FUNCTIONS ====================

def user_to_dict(user: User):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "subscriptionTier": user.subscription_tier,
        "subscriptionExpiresAt": user.subscription_expires_at.isoformat() if user.subscription_expires_at else None,
        "emailVerified": user.email_verified,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


def cv_summary_to_dict(cv: CV):
    return {
        "id": cv.id,
        "name": cv.name,
        "description": cv.description,
        "template": cv.template,
        "isPublic": cv.is_public,
        "createdAt": cv.created_at.isoformat() if cv.created_at else None,
        "updatedAt": cv.updated_at.isoformat() if cv.updated_at else None,
    }
