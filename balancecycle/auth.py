"""API token authentication for BalanceCycle admin endpoints."""

import logging
import secrets
from functools import wraps

from flask import current_app, jsonify, request
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

API_TOKEN_SETTING = 'api_token'


def get_or_create_api_token() -> str:
    """
    Get the admin API token.

    API_TOKEN from the config wins; otherwise a token is generated once and
    stored in the settings table.

    Returns:
        str: The API token
    """
    from balancecycle.models import Settings

    configured = current_app.config.get('API_TOKEN')
    if configured:
        return configured

    try:
        token = Settings.get(API_TOKEN_SETTING)
        if token:
            return token

        # 32 bytes = 64 hex characters
        token = secrets.token_hex(32)
        Settings.set(API_TOKEN_SETTING, token)
        logger.info("Generated new admin API token")
        return token

    except OperationalError:
        # Table doesn't exist yet (migrations not run)
        logger.warning("Settings table not ready, admin API token unavailable until migrations run")
        return ''


def verify_api_token(token: str) -> bool:
    """
    Verify if the provided API token is valid.

    Args:
        token: The API token to verify

    Returns:
        bool: True if token is valid
    """
    expected = get_or_create_api_token()
    if not expected or not token:
        return False

    # Constant-time comparison
    return secrets.compare_digest(token, expected)


def api_token_required(f):
    """Decorator requiring an 'Authorization: Bearer <token>' header."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get('Authorization', '')
        token = auth_header[7:] if auth_header.startswith('Bearer ') else ''

        if not verify_api_token(token):
            return jsonify({
                'error': 'Unauthorized',
                'message': 'Valid API token required'
            }), 401

        return f(*args, **kwargs)
    return decorated_function
