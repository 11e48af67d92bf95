"""
SQLAlchemy models for BalanceCycle.

This module defines the account table whose balances are reset every
month, and the key/value settings table that holds the cycle marker.
Uses Flask-SQLAlchemy for ORM integration with Flask.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import or_

from balancecycle.utils.timezone import to_utc, utc_now

logger = logging.getLogger(__name__)

db = SQLAlchemy()

# DECIMAL(16,4), the precision balances are stored and reported with
AMOUNT_PRECISION = 16
AMOUNT_SCALE = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)


def as_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class Account(db.Model):
    """An account holding a balance that is reset to its default each cycle."""

    __tablename__ = 'accounts'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(255), nullable=False)
    balance = db.Column(db.Numeric(AMOUNT_PRECISION, AMOUNT_SCALE), default=Decimal('0'), nullable=False)
    default_balance = db.Column(db.Numeric(AMOUNT_PRECISION, AMOUNT_SCALE), nullable=True)  # NULL = not configured
    deleted = db.Column(db.Boolean, default=False, nullable=True)  # Soft delete
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f'<Account {self.name} balance={self.balance}>'

    @staticmethod
    def live_filter():
        """SQL condition selecting accounts that are not soft-deleted."""
        return or_(Account.deleted.is_(False), Account.deleted.is_(None))

    @classmethod
    def get_live(cls, account_id: int) -> Optional['Account']:
        """Get a non-deleted account by ID, or None."""
        return cls.query.filter(cls.id == account_id, cls.live_filter()).first()

    def to_dict(self) -> dict:
        """Serialize Account to dictionary for JSON responses."""
        return {
            'id': self.id,
            'name': self.name,
            'balance': as_float(self.balance),
            'default_balance': as_float(self.default_balance),
            'deleted': bool(self.deleted),
        }


class Settings(db.Model):
    """System settings and configuration."""

    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    key = db.Column(db.String(255), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f'<Settings {self.key}>'

    @staticmethod
    def get(key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a setting value by key."""
        setting = Settings.query.filter_by(key=key).first()
        return setting.value if setting else default

    @staticmethod
    def put(key: str, value: str) -> 'Settings':
        """Stage a setting value in the current session without committing."""
        setting = Settings.query.filter_by(key=key).first()
        if setting:
            setting.value = value
        else:
            setting = Settings(key=key, value=value)
            db.session.add(setting)
        return setting

    @staticmethod
    def set(key: str, value: str) -> 'Settings':
        """Set a setting value (creates or updates) and commit."""
        setting = Settings.put(key, value)
        db.session.commit()
        return setting


class InvalidMarkerError(ValueError):
    """The stored cycle marker cannot be parsed."""


class CycleMarker:
    """
    Durable "last reset" timestamp kept in the settings table.

    The value only moves forward: writing a timestamp older than the stored
    one keeps the stored one.
    """

    KEY = 'last_balance_reset'

    @staticmethod
    def get() -> Optional[datetime]:
        """Get the last reset timestamp (aware UTC), or None if never reset.

        Raises:
            InvalidMarkerError: The stored value is not an ISO timestamp
        """
        raw = Settings.get(CycleMarker.KEY)
        if not raw:
            return None
        try:
            return to_utc(datetime.fromisoformat(raw))
        except (TypeError, ValueError):
            raise InvalidMarkerError(f"{CycleMarker.KEY} is not a timestamp: {raw!r}")

    @staticmethod
    def set(now: datetime) -> datetime:
        """
        Stage the marker update in the current session.

        The caller commits, so the marker lands in the same transaction as
        the balance update that produced it.

        Returns:
            The timestamp that is now recorded
        """
        now = to_utc(now)
        try:
            previous = CycleMarker.get()
        except InvalidMarkerError as e:
            logger.warning(f"Overwriting invalid cycle marker: {e}")
            previous = None
        if previous is not None and previous > now:
            return previous

        Settings.put(CycleMarker.KEY, now.isoformat())
        return now
