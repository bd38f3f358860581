import os
from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), '.env'))

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-prod'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///spacebooking.db'
    JWT_EXPIRATION_HOURS = int(os.environ.get('JWT_EXPIRATION_HOURS', 24))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Business Rules Defaults
    TIMEZONE = os.environ.get('TIMEZONE', 'UTC')
    OPERATING_HOURS_OPEN = os.environ.get('OPERATING_HOURS_OPEN', '08:00')
    OPERATING_HOURS_CLOSE = os.environ.get('OPERATING_HOURS_CLOSE', '20:00')

    # Admission control
    SPACE_LOCK_TIMEOUT = float(os.environ.get('SPACE_LOCK_TIMEOUT', 3.0))  # seconds
    TRANSIENT_RETRY_ATTEMPTS = int(os.environ.get('TRANSIENT_RETRY_ATTEMPTS', 3))
    TRANSIENT_RETRY_BACKOFF = float(os.environ.get('TRANSIENT_RETRY_BACKOFF', 0.05))  # seconds, doubled per retry

class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SPACE_LOCK_TIMEOUT = 1.0
    TRANSIENT_RETRY_BACKOFF = 0.0

class ProductionConfig(Config):
    DEBUG = False
    # In prod, rely on env vars strictly
