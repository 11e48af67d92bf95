"""Default balance migration API endpoints for BalanceCycle."""

import logging

from flask import Blueprint, jsonify

from balancecycle.auth import api_token_required
from balancecycle.models import db
from balancecycle.routes.reset import json_body, service_error_response
from balancecycle.services.migration_service import STATUS, DefaultMigrationService
from balancecycle.services.reset_service import ResetServiceError

logger = logging.getLogger(__name__)

migrate_bp = Blueprint('migrate', __name__, url_prefix='/api/v1/balances/migrate')


@migrate_bp.route('', methods=['POST'])
@api_token_required
def run_migration():
    """
    Run a default balance migration action.

    Body:
        action: status | set_default_from_current | set_default_from_init | set_default_value
        value: number (set_default_value only)
    """
    try:
        data = json_body()
        action = data.get('action')

        if action == STATUS:
            return jsonify({
                'success': True,
                'data': DefaultMigrationService.status(),
                'message': 'Migration status retrieved'
            })

        result = DefaultMigrationService.apply(action, data.get('value'))
        return jsonify({
            'success': True,
            'data': result.to_dict(),
            'message': result.message
        })

    except ResetServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Migration error: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Migration failed'
        }), 500
