from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required

import cvbuilder.databases as databases
from cvbuilder.extensions import api_rate_limit, limiter
from cvbuilder.utils.auth_guard import premium_required

user_bp = Blueprint("user", __name__, url_prefix="/api/user")
premium_bp = Blueprint("premium", __name__, url_prefix="/api/premium")

PREMIUM_FEATURES = {
    "aiAnalysis": True,
    "advancedTemplates": True,
    "exportFormats": ["pdf", "docx", "latex"],
    "customBranding": True,
    "prioritySupport": True,
}


@user_bp.route("/profile", methods=["GET"])
@jwt_required()
@limiter.limit(api_rate_limit)
def get_profile():
    profile = databases.user_to_dict(current_user)
    profile["stats"] = databases.get_user_stats(current_user.id)
    return jsonify({"user": profile}), 200


@premium_bp.route("/features", methods=["GET"])
@premium_required
@limiter.limit(api_rate_limit)
def get_premium_features():
    return jsonify({
        "message": "Premium features accessed successfully",
        "features": PREMIUM_FEATURES,
        "user": {
            "id": current_user.id,
            "subscriptionTier": current_user.subscription_tier,
        },
    }), 200
