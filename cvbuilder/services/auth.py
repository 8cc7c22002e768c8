# cvbuilder/services/auth.py
import logging
import secrets
from datetime import datetime

from flask import current_app
from flask_jwt_extended import create_access_token

from cvbuilder import databases
from cvbuilder.extensions import bcrypt

logger = logging.getLogger(__name__)

VERIFY_EMAIL = "verify_email"
RESET_PASSWORD = "reset_password"

# error codes returned alongside a None result
INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
USER_EXISTS = "USER_EXISTS"
INVALID_TOKEN = "INVALID_TOKEN"


class AuthService:
    @staticmethod
    def create_token_for(user):
        """JWT for ``user`` carrying its email and subscription tier."""
        return create_access_token(
            identity=str(user.id),
            additional_claims={
                "email": user.email,
                "subscription_tier": user.subscription_tier,
            },
        )

    @staticmethod
    def authenticate_user(email, password):
        """
        Check email & password using bcrypt.
        Return (access_token, user) if valid, (None, error_code) otherwise.
        """
        logger.info(f"🔐 Auth attempt: {email}")

        user = databases.find_user_by_email(email)
        if not user:
            logger.info("❌ User not found")
            return None, INVALID_CREDENTIALS

        if not bcrypt.check_password_hash(user.password, password):
            logger.info("❌ Invalid password")
            return None, INVALID_CREDENTIALS

        logger.info(f"✅ Auth successful for {email}")
        return AuthService.create_token_for(user), user

    @staticmethod
    def register(name, email, password):
        """
        Create a new free-tier user and an email verification token.
        Return ((user, verification_token), None) or (None, error_code).
        """
        logger.info(f"📝 Register attempt: name: {name}, email: {email}")

        if databases.find_user_by_email(email):
            logger.info("❌ Email already registered")
            return None, USER_EXISTS

        hashed_password = bcrypt.generate_password_hash(password).decode("utf-8")

        try:
            user = databases.create_user(name, email, hashed_password)
        except databases.DuplicateError:
            # lost a race with a concurrent registration
            return None, USER_EXISTS

        token = AuthService._issue_token(user, VERIFY_EMAIL, current_app.config["VERIFICATION_TOKEN_TTL"])
        logger.info(f"✅ Registration successful for {email}")
        return (user, token), None

    @staticmethod
    def _issue_token(user, purpose, ttl):
        databases.cleanup_expired_tokens()
        token = secrets.token_hex(32)
        databases.create_user_token(user.id, token, purpose, datetime.utcnow() + ttl)
        return token

    @staticmethod
    def verify_email(token):
        """Consume a verification token. Return (user, None) or (None, error_code)."""
        record = databases.find_valid_user_token(token, VERIFY_EMAIL)
        if record is None:
            logger.info("❌ Invalid or expired verification token")
            return None, INVALID_TOKEN

        user = record.user
        user.email_verified = True
        databases.delete_user_tokens(user.id, VERIFY_EMAIL)
        logger.info(f"✅ Email verified for user: {user.email}")
        return user, None

    @staticmethod
    def request_password_reset(email):
        """Issue a reset token when the account exists. Returns the token or None.

        Callers must answer the same way either way so accounts cannot be
        enumerated.
        """
        user = databases.find_user_by_email(email)
        if user is None:
            logger.info(f"🔎 Password reset requested for unknown email {email}")
            return None

        token = AuthService._issue_token(user, RESET_PASSWORD, current_app.config["RESET_TOKEN_TTL"])
        logger.info(f"📧 Password reset token issued for {email}")
        return token

    @staticmethod
    def reset_password(token, new_password):
        """Consume a reset token and set the new password. Return (user, None) or (None, error_code)."""
        record = databases.find_valid_user_token(token, RESET_PASSWORD)
        if record is None:
            logger.info("❌ Invalid or expired reset token")
            return None, INVALID_TOKEN

        user = record.user
        hashed_password = bcrypt.generate_password_hash(new_password).decode("utf-8")
        databases.update_user_password(user, hashed_password)
        databases.delete_user_tokens(user.id, RESET_PASSWORD)
        logger.info(f"✅ Password reset for {user.email}")
        return user, None
