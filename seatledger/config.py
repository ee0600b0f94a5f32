import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///seatledger.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'dev-jwt-secret-key'
    JWT_ACCESS_TOKEN_EXPIRES = False  # Tokens don't expire (adjust as needed)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    AUTO_INIT_DB = _flag('AUTO_INIT_DB', True)

    # Renewal engine
    RENEWAL_MAX_ATTEMPTS = int(os.environ.get('RENEWAL_MAX_ATTEMPTS', 3))
    RECEIVABLES_LOOKAHEAD_DAYS = int(os.environ.get('RECEIVABLES_LOOKAHEAD_DAYS', 3))

    # Shared secret for the scheduled autopay sweep endpoint (optional)
    CRON_SECRET = os.environ.get('CRON_SECRET')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AUTO_INIT_DB = False
    CRON_SECRET = None
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
