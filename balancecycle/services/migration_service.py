"""Default balance migration service.

Bulk operations that configure the value future resets restore balances
to. They never touch the cycle marker:
- set_default_from_current: copy each account's balance into its default
- set_default_from_init: set every default to the INIT_BALANCE constant
- set_default_value: set every default to a caller-supplied number

All actions are single UPDATE statements restricted to live accounts.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from flask import current_app
from sqlalchemy import case, func, inspect, update
from sqlalchemy.exc import SQLAlchemyError

from balancecycle.models import db, Account, AMOUNT_QUANTUM
from balancecycle.services.reset_service import InvalidInputError, StorageFailureError

logger = logging.getLogger(__name__)

SET_DEFAULT_FROM_CURRENT = 'set_default_from_current'
SET_DEFAULT_FROM_INIT = 'set_default_from_init'
SET_DEFAULT_VALUE = 'set_default_value'
STATUS = 'status'

AVAILABLE_ACTIONS = [
    {
        'action': STATUS,
        'description': 'Get migration status and statistics',
    },
    {
        'action': SET_DEFAULT_FROM_CURRENT,
        'description': "Set each account's default_balance to its current balance",
    },
    {
        'action': SET_DEFAULT_FROM_INIT,
        'description': "Set all accounts' default_balance to INIT_BALANCE environment variable",
    },
    {
        'action': SET_DEFAULT_VALUE,
        'description': "Set all accounts' default_balance to a specific value",
        'params': {'value': 'number'},
    },
]


@dataclass
class MigrationResult:
    """Outcome of a default balance migration."""

    action: str
    affected_count: int
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            'action': self.action,
            'users_affected': self.affected_count,
            'message': self.message,
        }
        data.update(self.details)
        return data


def parse_amount(value: Any) -> Decimal:
    """
    Validate a caller-supplied amount.

    Only real numbers are accepted; strings and booleans are rejected even
    if they look numeric.

    Raises:
        InvalidInputError: Value is not a finite number
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidInputError('Value must be a number')

    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise InvalidInputError('Value must be a finite number')
        return amount.quantize(AMOUNT_QUANTUM)
    except InvalidOperation as e:
        raise InvalidInputError('Value is out of range') from e


def parse_configured_amount(raw: Optional[str]) -> Decimal:
    """Parse the INIT_BALANCE setting (a string, default "0")."""
    text = str(raw).strip() if raw is not None else '0'
    try:
        amount = Decimal(text or '0')
        if not amount.is_finite():
            raise InvalidOperation(text)
        return amount.quantize(AMOUNT_QUANTUM)
    except InvalidOperation as e:
        raise InvalidInputError(f'INIT_BALANCE {raw!r} is not a number') from e


class DefaultMigrationService:
    """Service for bulk default balance migrations."""

    @staticmethod
    def _execute(statement, description: str) -> int:
        try:
            result = db.session.execute(statement.execution_options(synchronize_session=False))
            affected = result.rowcount
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Migration '{description}' failed: {e}", exc_info=True)
            raise StorageFailureError(f'Migration failed: {description}') from e

        logger.info(f"Migration '{description}' updated {affected} accounts")
        return affected

    @staticmethod
    def copy_current_to_default() -> int:
        """Set each live account's default balance to its current balance."""
        return DefaultMigrationService._execute(
            update(Account)
            .where(Account.live_filter())
            .values(default_balance=Account.balance),
            SET_DEFAULT_FROM_CURRENT,
        )

    @staticmethod
    def set_all_defaults(value: Decimal) -> int:
        """Set every live account's default balance to one value."""
        return DefaultMigrationService._execute(
            update(Account)
            .where(Account.live_filter())
            .values(default_balance=value),
            f'set default_balance to {value}',
        )

    @staticmethod
    def apply(kind: str, value: Any = None) -> MigrationResult:
        """
        Run one of the default balance migration actions.

        Args:
            kind: Action name
            value: Number for set_default_value

        Returns:
            MigrationResult

        Raises:
            InvalidInputError: Unknown action or invalid value; nothing is
                mutated
            StorageFailureError: The update failed
        """
        if kind == SET_DEFAULT_FROM_CURRENT:
            affected = DefaultMigrationService.copy_current_to_default()
            accounts = Account.query.filter(Account.live_filter()).order_by(Account.id).all()
            return MigrationResult(
                action=kind,
                affected_count=affected,
                message=f'Set default_balance from current balance for {affected} accounts',
                details={'users': [a.to_dict() for a in accounts]},
            )

        if kind == SET_DEFAULT_FROM_INIT:
            raw = current_app.config.get('INIT_BALANCE', '0')
            init_balance = parse_configured_amount(raw)
            affected = DefaultMigrationService.set_all_defaults(init_balance)
            return MigrationResult(
                action=kind,
                affected_count=affected,
                message=f'Set default_balance to {raw} for {affected} accounts',
                details={'init_balance': float(init_balance)},
            )

        if kind == SET_DEFAULT_VALUE:
            amount = parse_amount(value)
            affected = DefaultMigrationService.set_all_defaults(amount)
            return MigrationResult(
                action=kind,
                affected_count=affected,
                message=f'Set default_balance to {value} for {affected} accounts',
                details={'default_balance': float(amount)},
            )

        raise InvalidInputError(
            'Unknown action. Available actions: '
            + ', '.join(a['action'] for a in AVAILABLE_ACTIONS),
            details={'available_actions': AVAILABLE_ACTIONS},
        )

    @staticmethod
    def status() -> dict:
        """Report schema presence and default balance coverage. Read-only."""
        try:
            inspector = inspect(db.engine)
            has_accounts = inspector.has_table('accounts')
            has_default_column = has_accounts and any(
                column['name'] == 'default_balance' for column in inspector.get_columns('accounts')
            )
            has_settings = inspector.has_table('settings')

            total, with_default, without_default = db.session.query(
                func.count(Account.id),
                func.count(case((Account.default_balance > 0, 1))),
                func.count(case(
                    (Account.default_balance.is_(None), 1),
                    (Account.default_balance == 0, 1),
                )),
            ).filter(Account.live_filter()).one()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to read migration status: {e}", exc_info=True)
            raise StorageFailureError('Failed to read migration status') from e

        return {
            'migration_status': {
                'has_default_balance_column': has_default_column,
                'has_settings_table': has_settings,
                'total_users': total,
                'users_with_default_balance': with_default,
                'users_without_default_balance': without_default,
            },
            'environment': {
                'init_balance': current_app.config.get('INIT_BALANCE', '0'),
                'balance_reset_day': current_app.config.get('BALANCE_RESET_DAY'),
            },
        }
