"""Tests for the balance reset service."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from balancecycle.models import Account, CycleMarker, Settings
from balancecycle.services.reset_service import (
    NotFoundError,
    ResetService,
    StorageFailureError,
)

UTC = timezone.utc


def balances(db_session):
    """Map account name to balance, read fresh from the database."""
    db_session.expire_all()
    return {a.name: a.balance for a in Account.query.order_by(Account.id).all()}


class TestBulkReset:
    """Tests for ResetService.bulk_reset."""

    def test_resets_live_accounts_to_default(self, app, db_session, accounts):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        affected = ResetService.bulk_reset(now)

        assert affected == 2
        result = balances(db_session)
        assert result['Alice'] == Decimal('100')
        assert result['Bob'] == Decimal('50')

    def test_skips_soft_deleted_accounts(self, app, db_session, accounts):
        ResetService.bulk_reset(datetime(2026, 3, 1, tzinfo=UTC))
        assert balances(db_session)['Carol'] == Decimal('3')

    def test_leaves_unconfigured_default_alone(self, app, db_session, accounts):
        ResetService.bulk_reset(datetime(2026, 3, 1, tzinfo=UTC))
        assert balances(db_session)['Dave'] == Decimal('8')

    def test_records_cycle_marker(self, app, db_session, accounts):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        ResetService.bulk_reset(now)
        assert CycleMarker.get() == now

    def test_idempotent(self, app, db_session, accounts):
        """Running the reset twice gives the same balances as running it once."""
        ResetService.bulk_reset(datetime(2026, 3, 1, tzinfo=UTC))
        once = balances(db_session)

        ResetService.bulk_reset(datetime(2026, 3, 1, 1, 0, tzinfo=UTC))
        twice = balances(db_session)

        assert once == twice

    def test_marker_never_moves_backwards(self, app, db_session, accounts, set_last_reset):
        later = datetime(2026, 5, 1, 0, 0, tzinfo=UTC)
        set_last_reset(later)

        ResetService.bulk_reset(datetime(2026, 4, 1, 0, 0, tzinfo=UTC))

        assert CycleMarker.get() == later

    def test_marker_advances(self, app, db_session, accounts, set_last_reset):
        before = datetime(2026, 2, 1, 0, 0, tzinfo=UTC)
        set_last_reset(before)

        now = datetime(2026, 3, 1, 0, 0, tzinfo=UTC)
        ResetService.bulk_reset(now)

        assert CycleMarker.get() >= before
        assert CycleMarker.get() == now

    def test_marker_failure_rolls_back_balances(self, app, db_session, accounts):
        """Balances and marker are one transaction."""
        before = balances(db_session)
        error = OperationalError('UPDATE settings', {}, Exception('database is locked'))

        with patch.object(CycleMarker, 'set', side_effect=error):
            with pytest.raises(StorageFailureError):
                ResetService.bulk_reset(datetime(2026, 3, 1, tzinfo=UTC))

        assert balances(db_session) == before
        assert CycleMarker.get() is None

    def test_no_accounts(self, app, db_session):
        assert ResetService.bulk_reset(datetime(2026, 3, 1, tzinfo=UTC)) == 0
        assert CycleMarker.get() is not None


class TestResetOne:
    """Tests for ResetService.reset_one."""

    def test_resets_single_account(self, app, db_session, account, account_2):
        new_balance = ResetService.reset_one(account.id)

        assert new_balance == Decimal('100')
        result = balances(db_session)
        assert result['Alice'] == Decimal('100')
        assert result['Bob'] == Decimal('0.25')

    def test_does_not_touch_marker(self, app, db_session, account):
        ResetService.reset_one(account.id)
        assert CycleMarker.get() is None

    def test_scenario_e_soft_deleted_account(self, app, db_session, accounts, deleted_account):
        before = balances(db_session)

        with pytest.raises(NotFoundError) as exc_info:
            ResetService.reset_one(deleted_account.id)

        assert exc_info.value.status_code == 404
        assert balances(db_session) == before

    def test_unknown_account(self, app, db_session):
        with pytest.raises(NotFoundError):
            ResetService.reset_one(9999)

    def test_unconfigured_default_keeps_balance(self, app, db_session, unconfigured_account):
        assert ResetService.reset_one(unconfigured_account.id) == Decimal('8')


class TestPerformReset:
    """Tests for conditional and forced resets."""

    def test_scenario_a_conditional_reset_on_reset_day(self, app, db_session, accounts):
        """Reset day 1, never reset, today is the 1st."""
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

        outcome = ResetService.perform_reset(now=now)

        assert outcome.performed is True
        assert outcome.affected_count == 2
        assert balances(db_session)['Alice'] == Decimal('100')
        assert CycleMarker.get() == now

    def test_not_due_mutates_nothing(self, app, db_session, accounts, set_last_reset):
        last = datetime(2026, 3, 1, 0, 5, tzinfo=UTC)
        set_last_reset(last)
        before = balances(db_session)

        outcome = ResetService.perform_reset(now=datetime(2026, 3, 15, tzinfo=UTC))

        assert outcome.performed is False
        assert 'Reset day is 1' in outcome.reason
        assert outcome.last_reset == last
        assert balances(db_session) == before
        assert CycleMarker.get() == last

    def test_second_check_same_day_is_noop(self, app, db_session, accounts):
        ResetService.perform_reset(now=datetime(2026, 3, 1, 0, 30, tzinfo=UTC))
        outcome = ResetService.perform_reset(now=datetime(2026, 3, 1, 1, 30, tzinfo=UTC))
        assert outcome.performed is False

    def test_scenario_d_force_resets_when_not_due(self, app, db_session, accounts, set_last_reset):
        set_last_reset(datetime(2026, 3, 1, tzinfo=UTC))
        now = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
        assert ResetService.is_reset_due(now) is False

        outcome = ResetService.perform_reset(force=True, now=now)

        assert outcome.performed is True
        assert outcome.forced is True
        assert balances(db_session)['Bob'] == Decimal('50')
        assert CycleMarker.get() == now

    def test_disabled_conditional_reset_not_due(self, app, db_session, accounts):
        app.config['BALANCE_RESET_DAY'] = '0'
        outcome = ResetService.perform_reset(now=datetime(2026, 3, 1, tzinfo=UTC))
        assert outcome.performed is False
        assert 'disabled' in outcome.reason

    def test_config_read_on_every_call(self, app, db_session, accounts):
        now = datetime(2026, 3, 15, tzinfo=UTC)
        assert ResetService.is_reset_due(now) is False

        app.config['BALANCE_RESET_DAY'] = '15'
        assert ResetService.is_reset_due(now) is True

    def test_to_dict_not_performed(self, app, db_session):
        outcome = ResetService.perform_reset(now=datetime(2026, 3, 2, tzinfo=UTC))
        data = outcome.to_dict()
        assert data['performed'] is False
        assert data['reset_day'] == 1
        assert data['last_reset'] is None


class TestGetStatus:
    """Tests for ResetService.get_status."""

    def test_status_never_reset(self, app, db_session):
        status = ResetService.get_status(now=datetime(2026, 3, 1, tzinfo=UTC))

        assert status['enabled'] is True
        assert status['reset_day'] == 1
        assert status['last_reset'] is None
        assert status['should_reset_today'] is True
        assert status['next_reset_date'] == '2026-03-01'
        assert status['scheduler'] is None

    def test_status_after_reset(self, app, db_session, accounts):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        ResetService.bulk_reset(now)

        status = ResetService.get_status(now=now)

        assert status['last_reset'] == now.isoformat()
        assert status['should_reset_today'] is False
        assert status['next_reset_date'] == '2026-04-01'

    def test_status_disabled(self, app, db_session):
        app.config['BALANCE_RESET_DAY'] = None
        status = ResetService.get_status(now=datetime(2026, 3, 1, tzinfo=UTC))
        assert status['enabled'] is False
        assert status['should_reset_today'] is False
        assert status['next_reset_date'] is None

    def test_status_is_read_only(self, app, db_session, accounts):
        before = balances(db_session)
        ResetService.get_status(now=datetime(2026, 3, 1, tzinfo=UTC))
        assert balances(db_session) == before
        assert CycleMarker.get() is None


class TestRecordedResetDate:
    """The outcome reports the marker that was actually recorded."""

    def test_forced_reset_with_stale_clock_reports_stored_marker(self, app, db_session, accounts, set_last_reset):
        later = datetime(2026, 5, 1, 0, 0, tzinfo=UTC)
        set_last_reset(later)

        outcome = ResetService.perform_reset(force=True, now=datetime(2026, 4, 20, tzinfo=UTC))

        assert outcome.performed is True
        assert outcome.reset_at == later
        assert outcome.to_dict()['reset_date'] == later.isoformat()

    def test_reports_now_when_marker_advances(self, app, db_session, accounts):
        now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        outcome = ResetService.perform_reset(now=now)
        assert outcome.reset_at == now


class TestInvalidMarker:
    """Tests for an unparseable stored marker."""

    def test_get_last_reset_raises_storage_failure(self, app, db_session):
        Settings.set(CycleMarker.KEY, 'garbage')

        with pytest.raises(StorageFailureError) as exc_info:
            ResetService.get_last_reset()

        assert 'invalid' in exc_info.value.message
        assert exc_info.value.status_code == 500

    def test_conditional_reset_mutates_nothing(self, app, db_session, accounts):
        Settings.set(CycleMarker.KEY, 'garbage')
        before = balances(db_session)

        with pytest.raises(StorageFailureError):
            ResetService.perform_reset(now=datetime(2026, 3, 1, tzinfo=UTC))

        assert balances(db_session) == before

    def test_forced_reset_rewrites_marker(self, app, db_session, accounts):
        Settings.set(CycleMarker.KEY, 'garbage')
        now = datetime(2026, 3, 15, tzinfo=UTC)

        outcome = ResetService.perform_reset(force=True, now=now)

        assert outcome.performed is True
        assert ResetService.get_last_reset() == now
