"""Balance reset API endpoints for BalanceCycle."""

import logging

from flask import Blueprint, jsonify, request

from balancecycle.auth import api_token_required
from balancecycle.models import db, as_float
from balancecycle.scheduler import get_scheduler
from balancecycle.services.reset_service import (
    InvalidInputError,
    ResetService,
    ResetServiceError,
)

logger = logging.getLogger(__name__)

reset_bp = Blueprint('reset', __name__, url_prefix='/api/v1/balances/reset')


def service_error_response(e: ResetServiceError):
    """Translate a service error into the standard JSON error response."""
    body = {
        'error': e.__class__.__name__.replace('Error', ' Error'),
        'message': e.message
    }
    if e.details:
        body['details'] = e.details
    return jsonify(body), e.status_code


def json_body() -> dict:
    """Get the JSON request body; an absent or empty body is {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return data


def parse_account_id(value) -> int:
    if isinstance(value, bool):
        raise InvalidInputError('account_id must be a valid integer')
    try:
        return int(value)
    except (ValueError, TypeError):
        raise InvalidInputError('account_id must be a valid integer')


@reset_bp.route('', methods=['GET'])
@api_token_required
def reset_status():
    """Report reset day, last reset, whether a reset is due, and scheduler state."""
    try:
        status = ResetService.get_status(scheduler=get_scheduler())
        return jsonify({
            'success': True,
            'data': status,
            'message': 'Reset status retrieved'
        })
    except ResetServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error checking reset status: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to check reset status'
        }), 500


@reset_bp.route('', methods=['POST'])
@api_token_required
def reset_balances():
    """
    Reset balances to their default values.

    Body (all optional):
        account_id: Reset only this account
        force: Skip the reset-day check for the bulk reset
    """
    try:
        data = json_body()
        if data.get('account_id') is not None:
            account_id = parse_account_id(data['account_id'])
            new_balance = ResetService.reset_one(account_id)
            return jsonify({
                'success': True,
                'data': {
                    'account_id': account_id,
                    'new_balance': as_float(new_balance)
                },
                'message': f'Balance reset for account {account_id}'
            })

        force = bool(data.get('force', False))
        outcome = ResetService.perform_reset(force=force)

        if not outcome.performed:
            return jsonify({
                'success': False,
                'data': outcome.to_dict(),
                'message': outcome.reason
            })

        return jsonify({
            'success': True,
            'data': outcome.to_dict(),
            'message': f'Reset balances for {outcome.affected_count} accounts to their default values'
        })

    except ResetServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error resetting balances: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to reset balances'
        }), 500
