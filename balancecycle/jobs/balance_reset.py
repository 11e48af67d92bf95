"""
Monthly balance reset job.
"""

import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


def check_and_reset(now: Optional[datetime] = None):
    """
    Reset all balances if today is the reset day and no reset ran this month.

    Runs hourly from the reset scheduler, and once when it starts. Failures
    are logged and swallowed: the next tick retries the due check.

    Returns:
        ResetOutcome, or None if the check failed
    """
    # Import inside function to avoid circular imports and to get app context
    from balancecycle.services.reset_service import ResetService

    try:
        outcome = ResetService.perform_reset(force=False, now=now)
    except Exception as e:
        logger.error(f"Error during auto-reset check: {e}", exc_info=True)
        return None

    if outcome.performed:
        logger.info(f"Reset day reached, reset balances for {outcome.affected_count} accounts")
    else:
        logger.debug(outcome.reason)

    return outcome
