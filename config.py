import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv() # Load variables from the .env file


def _build_database_uri():
    override = os.getenv('DATABASE_URL')
    if override:
        return override

    db_host = os.getenv('DB_HOST')
    if not db_host:
        return 'sqlite:///cvbuilder.db'

    db_user = os.getenv('DB_USER')
    db_password = os.getenv('DB_PASSWORD')
    db_name = os.getenv('DB_NAME')

    # MySQL connection string (PyMySQL driver)
    return (
        f"mysql+pymysql://{db_user}@{db_host}/{db_name}"
        if not db_password else
        f"mysql+pymysql://{db_user}:{db_password}@{db_host}/{db_name}"
    )


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me-in-production')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=30)

    DB_HOST = os.getenv('DB_HOST')
    DB_USER = os.getenv('DB_USER')
    DB_PASSWORD = os.getenv('DB_PASSWORD')
    DB_NAME = os.getenv('DB_NAME')

    SQLALCHEMY_DATABASE_URI = _build_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False  # disables overhead warning

    APP_URL = os.getenv('APP_URL', 'http://localhost:3000')
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000')

    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '30'))

    # Flask-Limiter
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True
    AUTH_RATE_LIMIT = os.getenv('AUTH_RATE_LIMIT', '5 per 15 minutes')
    API_RATE_LIMIT = os.getenv('API_RATE_LIMIT', '100 per minute')
    AI_RATE_LIMIT = os.getenv('AI_RATE_LIMIT', '10 per minute')

    VERIFICATION_TOKEN_TTL = timedelta(hours=24)
    RESET_TOKEN_TTL = timedelta(hours=1)

    # Bcrypt work factor
    BCRYPT_LOG_ROUNDS = 12

    # CV uploads for /api/ai/parse-cv
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))

    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    DB_HOST = None
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    SECRET_KEY = 'test-secret-key'
    OPENAI_API_KEY = 'sk-test'
    DEBUG = True
