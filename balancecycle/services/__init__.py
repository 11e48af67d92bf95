"""Business logic services for BalanceCycle."""

from balancecycle.services.reset_service import (
    ResetService,
    ResetServiceError,
    ResetOutcome,
    NotFoundError,
    InvalidInputError,
    StorageFailureError,
)
from balancecycle.services.migration_service import DefaultMigrationService, MigrationResult

__all__ = [
    'ResetService',
    'ResetServiceError',
    'ResetOutcome',
    'NotFoundError',
    'InvalidInputError',
    'StorageFailureError',
    'DefaultMigrationService',
    'MigrationResult',
]
