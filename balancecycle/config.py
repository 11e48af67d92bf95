"""Flask configuration for BalanceCycle."""

import os
from pathlib import Path


class Config:
    """Base configuration."""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database settings
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'balancecycle.db'}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # APScheduler settings
    # Only one instance of a multi-instance deployment should run the loop
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = os.environ.get('TZ', 'UTC')

    # Balance reset settings
    # Day of month (1-31) for the automatic reset; 0 or unset disables it
    BALANCE_RESET_DAY = os.environ.get('BALANCE_RESET_DAY')
    # Default balance used by the set_default_from_init migration
    INIT_BALANCE = os.environ.get('INIT_BALANCE', '0')

    # Admin API settings
    API_TOKEN = os.environ.get('API_TOKEN')

    # Application settings
    DEBUG = os.environ.get('DEBUG', 'false').lower() == 'true'
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    DATA_DIR = Path(__file__).parent / 'data'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'balancecycle.db'}"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    # Re-evaluate DATA_DIR and database URI to ensure environment variable is picked up
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'balancecycle.db'}"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    # Disable scheduler during tests
    SCHEDULER_ENABLED = False
    SCHEDULER_TIMEZONE = 'UTC'
    BALANCE_RESET_DAY = '1'
    INIT_BALANCE = '100'
    API_TOKEN = 'test-api-token'


# Config dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
