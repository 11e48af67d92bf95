"""Reset scheduler control endpoints for BalanceCycle."""

from flask import Blueprint, jsonify

from balancecycle.auth import api_token_required
from balancecycle.scheduler import get_scheduler

scheduler_bp = Blueprint('scheduler', __name__, url_prefix='/api/v1/balances/scheduler')


@scheduler_bp.route('', methods=['GET'])
@api_token_required
def scheduler_status():
    """Get the reset scheduler status."""
    return jsonify({
        'data': get_scheduler().status(),
        'message': 'Scheduler status retrieved'
    })


@scheduler_bp.route('/start', methods=['POST'])
@api_token_required
def start_scheduler():
    """Start the reset scheduler (no-op if running or auto-reset is disabled)."""
    reset_scheduler = get_scheduler()
    started = reset_scheduler.start()
    return jsonify({
        'data': {'started': started, **reset_scheduler.status()},
        'message': 'Scheduler started' if started else 'Scheduler not started (already running or auto-reset disabled)'
    })


@scheduler_bp.route('/stop', methods=['POST'])
@api_token_required
def stop_scheduler():
    """Stop the reset scheduler (no-op if not running)."""
    reset_scheduler = get_scheduler()
    stopped = reset_scheduler.stop()
    return jsonify({
        'data': {'stopped': stopped, **reset_scheduler.status()},
        'message': 'Scheduler stopped' if stopped else 'Scheduler was not running'
    })
