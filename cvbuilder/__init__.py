import logging

from flask import Flask
from pymysql import connect

from config import Config
from .extensions import bcrypt, cors, db, jwt, limiter, migrate
from . import models  # noqa: F401  (register tables with SQLAlchemy)
from .routes.ai_routes import ai_bp
from .routes.auth_routes import auth_bp
from .routes.chatbot_routes import chatbot_bp
from .routes.cv_routes import cv_bp
from .routes.health_routes import health_bp
from .routes.user_routes import premium_bp, user_bp
from .database.maintenance import cleanup_tokens, set_subscription
from .database.seed.seed_all import seed_all
from .utils.responses import register_error_handlers

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.config.get("TESTING"):
        logging.basicConfig(
            level=logging.DEBUG if app.config.get("DEBUG") else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    # Allow CORS from the frontend
    origins = [origin.strip() for origin in app.config["CORS_ORIGINS"].split(",") if origin.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    if app.config.get("DB_HOST") and app.config["SQLALCHEMY_DATABASE_URI"].startswith("mysql"):
        create_database_if_not_exists(app.config)

    # extensions initialization
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    bcrypt.init_app(app)
    limiter.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(cv_bp)
    app.register_blueprint(ai_bp)
    app.register_blueprint(chatbot_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(premium_bp)
    app.register_blueprint(health_bp)

    register_error_handlers(app)

    if app.config.get("TESTING"):
        with app.app_context():
            db.create_all()

    app.cli.add_command(seed_all)
    app.cli.add_command(set_subscription)
    app.cli.add_command(cleanup_tokens)

    return app


def create_database_if_not_exists(config):
    host_parts = config["DB_HOST"].split(":")
    host = host_parts[0]
    port = int(host_parts[1]) if len(host_parts) > 1 else 3306

    logger.info(f"🔧 Ensuring database '{config['DB_NAME']}' exists...")
    logger.info(f"Connecting to DB server at {host}:{port} with user '{config['DB_USER']}'")

    conn = connect(
        host=host,
        port=port,
        user=config["DB_USER"],
        password=config["DB_PASSWORD"] or "",
    )
    try:
        with conn.cursor() as cursor:
            cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{config['DB_NAME']}`")
        conn.commit()
    finally:
        conn.close()
