"""Pytest configuration and fixtures for BalanceCycle tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from balancecycle.app import create_app
from balancecycle.models import db, Account, Settings


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing."""
    app = create_app('testing')

    # Create database tables
    with app.app_context():
        db.create_all()

    yield app

    # Clean up
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for making requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for tests."""
    with app.app_context():
        yield db.session


@pytest.fixture
def auth_headers(app):
    """Headers carrying the admin API token."""
    return {'Authorization': f"Bearer {app.config['API_TOKEN']}"}


@pytest.fixture
def account(db_session):
    """Create an account with a configured default balance."""
    acct = Account(
        name='Alice',
        balance=Decimal('12.5000'),
        default_balance=Decimal('100.0000'),
        deleted=False
    )
    db_session.add(acct)
    db_session.commit()
    return acct


@pytest.fixture
def account_2(db_session):
    """Create a second account whose deleted flag is NULL."""
    acct = Account(
        name='Bob',
        balance=Decimal('0.2500'),
        default_balance=Decimal('50.0000'),
        deleted=None
    )
    db_session.add(acct)
    db_session.commit()
    return acct


@pytest.fixture
def deleted_account(db_session):
    """Create a soft-deleted account."""
    acct = Account(
        name='Carol',
        balance=Decimal('3.0000'),
        default_balance=Decimal('75.0000'),
        deleted=True
    )
    db_session.add(acct)
    db_session.commit()
    return acct


@pytest.fixture
def unconfigured_account(db_session):
    """Create an account without a default balance."""
    acct = Account(
        name='Dave',
        balance=Decimal('8.0000'),
        default_balance=None,
        deleted=False
    )
    db_session.add(acct)
    db_session.commit()
    return acct


@pytest.fixture
def accounts(account, account_2, deleted_account, unconfigured_account):
    """All account fixtures."""
    return [account, account_2, deleted_account, unconfigured_account]


@pytest.fixture
def set_last_reset(db_session):
    """Write the cycle marker directly."""
    def _set(moment: datetime):
        Settings.set('last_balance_reset', moment.astimezone(timezone.utc).isoformat())
    return _set
