import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request

from cvbuilder.databases import user_to_dict
from cvbuilder.extensions import auth_rate_limit, limiter
from cvbuilder.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from cvbuilder.services import auth as auth_service
from cvbuilder.services.auth import AuthService
from cvbuilder.utils.responses import error_response

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _json_body():
    return request.get_json(silent=True) or {}


def _app_url(path, **params):
    base = current_app.config["APP_URL"].rstrip("/")
    return f"{base}{path}?{urlencode(params)}" if params else f"{base}{path}"


@auth_bp.route("/register", methods=["POST"])
@limiter.limit(auth_rate_limit)
def register():
    payload = RegisterRequest.model_validate(_json_body())

    result, error = AuthService.register(payload.name, payload.email, payload.password)
    if error == auth_service.USER_EXISTS:
        return error_response("USER_EXISTS", "A user with this email already exists", 409)

    user, verification_token = result
    verification_link = f"{request.host_url.rstrip('/')}/api/auth/verify-email?{urlencode({'token': verification_token})}"
    # no mail transport configured; the link is logged for delivery out of band
    logger.info(f"📧 Verification link for {user.email}: {verification_link}")

    body = {
        "message": "User created successfully. Please check your email to verify your account.",
        "user": user_to_dict(user),
    }
    if current_app.debug or current_app.testing:
        body["verificationLink"] = verification_link
    return jsonify(body), 201


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(auth_rate_limit)
def login():
    payload = LoginRequest.model_validate(_json_body())

    token, user = AuthService.authenticate_user(payload.email, payload.password)
    if not token:
        return error_response("UNAUTHORIZED", "Invalid email or password", 401)

    return jsonify({"access_token": token, "user": user_to_dict(user)}), 200


@auth_bp.route("/verify-email", methods=["POST"])
@limiter.limit(auth_rate_limit)
def verify_email():
    payload = VerifyEmailRequest.model_validate(_json_body())

    user, error = AuthService.verify_email(payload.token)
    if error:
        return error_response("INVALID_TOKEN", "Invalid or expired verification token", 400)

    return jsonify({
        "message": "Email verified successfully",
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }), 200


@auth_bp.route("/verify-email", methods=["GET"])
@limiter.limit(auth_rate_limit)
def verify_email_link():
    """Target of the emailed link; always answers with a redirect to the frontend."""
    token = request.args.get("token")
    if not token:
        return redirect(_app_url("/auth/error", error="MissingToken"))

    _, error = AuthService.verify_email(token)
    if error:
        return redirect(_app_url("/auth/error", error="InvalidToken"))

    return redirect(_app_url("/auth/signin", message="Email verified successfully. Please sign in."))


@auth_bp.route("/forgot-password", methods=["POST"])
@limiter.limit(auth_rate_limit)
def forgot_password():
    payload = ForgotPasswordRequest.model_validate(_json_body())

    token = AuthService.request_password_reset(payload.email)
    if token:
        reset_link = _app_url("/auth/reset-password", token=token)
        logger.info(f"📧 Password reset link for {payload.email}: {reset_link}")

    return jsonify({
        "message": "If an account with that email exists, we have sent a password reset link.",
    }), 200


@auth_bp.route("/reset-password", methods=["POST"])
@limiter.limit(auth_rate_limit)
def reset_password():
    payload = ResetPasswordRequest.model_validate(_json_body())

    _, error = AuthService.reset_password(payload.token, payload.password)
    if error:
        return error_response("INVALID_TOKEN", "Invalid or expired reset token", 400)

    return jsonify({"message": "Password reset successful"}), 200
