"""
Background jobs for BalanceCycle.

- balance_reset: Hourly due check for the monthly balance reset
"""

from balancecycle.jobs.balance_reset import check_and_reset

__all__ = [
    'check_and_reset',
]
