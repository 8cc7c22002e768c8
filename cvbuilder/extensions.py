from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

cors = CORS()

db = SQLAlchemy()
migrate = Migrate()

# login manager for handling JWTs
jwt = JWTManager()

bcrypt = Bcrypt()

# per-route limits are attached in the blueprints
limiter = Limiter(key_func=get_remote_address)


def auth_rate_limit():
    return current_app.config["AUTH_RATE_LIMIT"]


def api_rate_limit():
    return current_app.config["API_RATE_LIMIT"]


def ai_rate_limit():
    return current_app.config["AI_RATE_LIMIT"]
