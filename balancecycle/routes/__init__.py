"""Routes package for BalanceCycle API endpoints."""

from .reset import reset_bp
from .migrate import migrate_bp
from .scheduler import scheduler_bp

__all__ = ['reset_bp', 'migrate_bp', 'scheduler_bp']
