"""BalanceCycle Flask application - Main entry point."""

import logging
import os
import sys
from pathlib import Path

from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from balancecycle.models import db

# Configure logging for the entire application
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / 'migrations'

# Initialize Flask-Migrate
migrate = Migrate()


def create_app(config_name=None):
    """Application factory pattern for Flask app creation."""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    from balancecycle.config import config
    app.config.from_object(config[config_name])

    # Ensure data directory exists (skip for in-memory or external databases)
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') \
            and app.config['SQLALCHEMY_DATABASE_URI'] != "sqlite:///:memory:":
        data_dir = Path(app.config['DATA_DIR'])
        data_dir.mkdir(parents=True, exist_ok=True)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))

    # Register routes and CLI commands
    register_routes(app)

    from balancecycle.cli import init_cli
    init_cli(app)

    # Initialize background reset scheduler
    from balancecycle.scheduler import init_scheduler
    init_scheduler(app)

    return app


def register_routes(app):
    """Register all application routes."""

    from balancecycle.routes import reset_bp, migrate_bp, scheduler_bp

    app.register_blueprint(reset_bp)
    app.register_blueprint(migrate_bp)
    app.register_blueprint(scheduler_bp)

    @app.route('/health')
    def health():
        """Health check endpoint for monitoring."""
        try:
            # Check database connectivity
            db.session.execute(text('SELECT 1'))
            db_status = 'healthy'
        except SQLAlchemyError as e:
            db_status = f'unhealthy: {str(e)}'

        return jsonify({
            'status': 'healthy' if db_status == 'healthy' else 'degraded',
            'database': db_status
        })
