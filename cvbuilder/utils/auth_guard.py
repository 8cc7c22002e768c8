from functools import wraps

from flask_jwt_extended import current_user, verify_jwt_in_request

from cvbuilder.extensions import db, jwt
from cvbuilder.models import User
from cvbuilder.utils.responses import error_response


@jwt.user_lookup_loader
def load_user(_jwt_header, jwt_data):
    return db.session.get(User, jwt_data["sub"])


@jwt.user_lookup_error_loader
def user_not_found(_jwt_header, _jwt_data):
    return error_response("UNAUTHORIZED", "User no longer exists", 401)


@jwt.unauthorized_loader
def missing_token(reason):
    return error_response("UNAUTHORIZED", "Authentication required", 401)


@jwt.invalid_token_loader
def invalid_token(reason):
    return error_response("UNAUTHORIZED", f"Invalid token: {reason}", 401)


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return error_response("UNAUTHORIZED", "Token has expired", 401)


def premium_required(fn):
    """Like ``jwt_required()`` but also needs an active premium/enterprise plan."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if not current_user.has_active_premium():
            return error_response(
                "PREMIUM_REQUIRED",
                "This feature requires a premium subscription",
                403,
                details={"subscriptionTier": current_user.subscription_tier},
            )
        return fn(*args, **kwargs)
    return wrapper
