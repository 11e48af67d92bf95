"""
Command-line administration for BalanceCycle.

Registered on the Flask CLI as ``flask balances ...``.
"""

import json

import click
from flask.cli import AppGroup

from balancecycle.scheduler import get_scheduler
from balancecycle.services.migration_service import STATUS, DefaultMigrationService
from balancecycle.services.reset_service import ResetService, ResetServiceError

balances_cli = AppGroup('balances', help='Balance reset administration.')


def _echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@balances_cli.command('status')
def status_command():
    """Show reset day, last reset and whether a reset is due."""
    try:
        _echo_json(ResetService.get_status(scheduler=get_scheduler()))
    except ResetServiceError as e:
        raise click.ClickException(e.message)


@balances_cli.command('reset')
@click.option('--force', is_flag=True, help='Reset even if today is not the reset day.')
@click.option('--account', 'account_id', type=int, default=None, help='Reset a single account.')
def reset_command(force, account_id):
    """Reset balances to their default values."""
    try:
        if account_id is not None:
            new_balance = ResetService.reset_one(account_id)
            click.echo(f'Balance reset for account {account_id}: {new_balance}')
            return

        outcome = ResetService.perform_reset(force=force)
    except ResetServiceError as e:
        raise click.ClickException(e.message)

    if outcome.performed:
        click.echo(f'Reset balances for {outcome.affected_count} accounts to their default values')
    else:
        click.echo(outcome.reason)


@balances_cli.command('migrate')
@click.argument('action')
@click.option('--value', type=float, default=None, help='Value for set_default_value.')
def migrate_command(action, value):
    """Run a default balance migration ACTION."""
    try:
        if action == STATUS:
            _echo_json(DefaultMigrationService.status())
            return
        result = DefaultMigrationService.apply(action, value)
    except ResetServiceError as e:
        raise click.ClickException(e.message)

    click.echo(result.message)


def init_cli(app) -> None:
    """Register the balances command group on the app."""
    app.cli.add_command(balances_cli)
