"""Balance reset service.

This module contains the business logic for the monthly balance reset:
- Deciding whether a reset is due (using the configured reset day)
- Bulk-resetting every live account to its default balance
- Resetting a single account
- Reporting reset status

The bulk reset and the cycle marker update are committed in one
transaction, so a recorded marker always matches applied balances.
Routes, CLI commands and the scheduler job delegate to this service.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from balancecycle.models import db, Account, CycleMarker, InvalidMarkerError
from balancecycle.utils.reset_schedule import (
    ResetConfig,
    explain_not_due,
    next_reset_date,
    should_reset,
)
from balancecycle.utils.timezone import isoformat_or_none, local_now

logger = logging.getLogger(__name__)


class ResetServiceError(Exception):
    """Base exception for reset service errors."""

    def __init__(self, message: str, status_code: int = 400, details: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundError(ResetServiceError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class InvalidInputError(ResetServiceError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, 400, details)


class StorageFailureError(ResetServiceError):
    def __init__(self, message: str):
        super().__init__(message, 500)


@dataclass
class ResetOutcome:
    """Result of a conditional or forced bulk reset."""

    performed: bool
    affected_count: Optional[int] = None
    reason: Optional[str] = None
    reset_at: Optional[datetime] = None
    reset_day: Optional[int] = None
    last_reset: Optional[datetime] = None
    forced: bool = False

    def to_dict(self) -> dict:
        data = {
            'performed': self.performed,
            'forced': self.forced,
        }
        if self.performed:
            data['users_affected'] = self.affected_count
            data['reset_date'] = isoformat_or_none(self.reset_at)
        else:
            data['reason'] = self.reason
            data['reset_day'] = self.reset_day
            data['last_reset'] = isoformat_or_none(self.last_reset)
        return data


def load_reset_config() -> ResetConfig:
    """Read the reset day from the app config.

    Called on every check, so runtime config changes apply to the next tick.
    """
    return ResetConfig.from_value(current_app.config.get('BALANCE_RESET_DAY'))


class ResetService:
    """Service for monthly balance resets."""

    @staticmethod
    def get_last_reset() -> Optional[datetime]:
        """Read the cycle marker or raise StorageFailureError."""
        try:
            return CycleMarker.get()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to read last reset marker: {e}", exc_info=True)
            raise StorageFailureError('Failed to read last reset date') from e
        except InvalidMarkerError as e:
            logger.error(f"Corrupt last reset marker: {e}")
            raise StorageFailureError(
                f'Stored last reset date is invalid ({e}); a forced reset rewrites it'
            ) from e

    @staticmethod
    def is_reset_due(now: Optional[datetime] = None) -> bool:
        """Run the due check against the current config and cycle marker."""
        if now is None:
            now = local_now()
        config = load_reset_config()
        if not config.enabled:
            return False
        return should_reset(now, config.reset_day, config.enabled, ResetService.get_last_reset())

    @staticmethod
    def bulk_reset(now: Optional[datetime] = None) -> int:
        """
        Reset every live account's balance to its default balance.

        A single UPDATE statement touches all eligible rows; the cycle marker
        is written in the same transaction. Accounts without a configured
        default balance are left unchanged.

        Args:
            now: Reset timestamp to record (defaults to the current time)

        Returns:
            Number of accounts updated

        Raises:
            StorageFailureError: The update or marker write failed; nothing
                was applied
        """
        affected, _ = ResetService._apply_bulk_reset(now)
        return affected

    @staticmethod
    def _apply_bulk_reset(now: Optional[datetime] = None) -> Tuple[int, datetime]:
        """Run the bulk reset; return the affected count and the recorded marker."""
        if now is None:
            now = local_now()

        try:
            result = db.session.execute(
                update(Account)
                .where(Account.live_filter(), Account.default_balance.isnot(None))
                .values(balance=Account.default_balance)
                .execution_options(synchronize_session=False)
            )
            affected = result.rowcount
            recorded = CycleMarker.set(now)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Bulk balance reset failed: {e}", exc_info=True)
            raise StorageFailureError('Failed to reset balances') from e

        logger.info(f"Reset balances for {affected} accounts to their default values")

        return affected, recorded

    @staticmethod
    def reset_one(account_id: int) -> Optional[Decimal]:
        """
        Reset a single account's balance to its default balance.

        Does not touch the cycle marker. An account without a configured
        default keeps its current balance.

        Args:
            account_id: ID of the account

        Returns:
            The account's new balance

        Raises:
            NotFoundError: Account does not exist or is soft-deleted
            StorageFailureError: The update failed
        """
        try:
            account = Account.get_live(account_id)
            if account is None:
                raise NotFoundError(f'Account {account_id} not found')

            if account.default_balance is not None:
                account.balance = account.default_balance
            new_balance = account.balance
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to reset balance for account {account_id}: {e}", exc_info=True)
            raise StorageFailureError(f'Failed to reset balance for account {account_id}') from e

        logger.info(f"Reset balance for account {account_id} to {new_balance}")
        return new_balance

    @staticmethod
    def perform_reset(force: bool = False, now: Optional[datetime] = None) -> ResetOutcome:
        """
        Run the bulk reset, conditionally or forced.

        Without force, the same due check as the scheduler runs first; if it
        fails, nothing is mutated and the outcome explains why.

        Args:
            force: Skip the due check
            now: Current moment in local time (defaults to now)

        Returns:
            ResetOutcome
        """
        if now is None:
            now = local_now()

        if not force:
            config = load_reset_config()
            last_reset = ResetService.get_last_reset()
            if not should_reset(now, config.reset_day, config.enabled, last_reset):
                return ResetOutcome(
                    performed=False,
                    reason=explain_not_due(now, config, last_reset),
                    reset_day=config.reset_day,
                    last_reset=last_reset,
                )

        affected, recorded = ResetService._apply_bulk_reset(now)
        return ResetOutcome(
            performed=True,
            affected_count=affected,
            reset_at=recorded,
            forced=force,
        )

    @staticmethod
    def get_status(scheduler=None, now: Optional[datetime] = None) -> dict:
        """
        Report reset configuration and state. Read-only.

        Args:
            scheduler: Optional ResetScheduler whose state is included
            now: Current moment in local time (defaults to now)
        """
        if now is None:
            now = local_now()

        config = load_reset_config()
        last_reset = ResetService.get_last_reset()

        next_date = None
        if config.enabled:
            local_last = last_reset
            if last_reset is not None and now.tzinfo is not None:
                local_last = last_reset.astimezone(now.tzinfo)
            next_date = next_reset_date(now.date(), config.reset_day, local_last)

        return {
            'enabled': config.enabled,
            'reset_day': config.reset_day,
            'last_reset': isoformat_or_none(last_reset),
            'should_reset_today': should_reset(now, config.reset_day, config.enabled, last_reset),
            'next_reset_date': next_date.isoformat() if next_date else None,
            'scheduler': scheduler.status() if scheduler is not None else None,
        }
