"""Flask CLI commands for inspecting and recovering registration state."""

from __future__ import annotations

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from crm_signup.core.extensions import get_registration_guard
from crm_signup.services.registration.journal import RegistrationAttemptQueryService

LOGGER = logging.getLogger(__name__)


def _ensure_allowed(force: bool) -> None:
    """Refuse to clear guard keys in production unless ``--force`` is given."""
    env = str(current_app.config.get("ENV_NAME", "production")).lower()
    if env == "production" and not force:
        raise click.UsageError(
            "Refusing to clear in-flight registrations in production without --force."
        )


@click.group("registrations")
def registrations_cli() -> None:
    """Operator commands for the registration guard and journal."""


@registrations_cli.command("in-flight")
@with_appcontext
def in_flight_command() -> None:
    """List dedup keys currently held by the guard."""
    keys = sorted(get_registration_guard().in_flight())
    if not keys:
        click.echo("No registrations in flight.")
        return
    for key in keys:
        click.echo(key)
    click.echo(f"{len(keys)} in flight")


@registrations_cli.command("clear-in-flight")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.option("--force", is_flag=True, help="Allow running against production.")
@with_appcontext
def clear_in_flight_command(yes: bool, force: bool) -> None:
    """Drop every held key, e.g. after a crash left stale leases behind."""
    _ensure_allowed(force)
    if not yes:
        click.confirm(
            "Registrations in progress will lose their duplicate protection. Continue?",
            abort=True,
        )
    removed = get_registration_guard().clear_all()
    LOGGER.warning("cli.registrations.cleared removed=%s", removed)
    click.echo(f"Removed {removed} in-flight key(s).")


@registrations_cli.command("summary")
@click.option("--partial", is_flag=True, help="Also list aborted attempts with leftovers.")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 500))
@with_appcontext
def summary_command(partial: bool, limit: int) -> None:
    """Print journal counts per state and, optionally, partial attempts."""
    queries = RegistrationAttemptQueryService()
    counts = queries.state_counts()
    click.echo("Registration attempts:")
    if not counts:
        click.echo("  (none)")
    else:
        width = max(len(state) for state in counts)
        for state, n in sorted(counts.items()):
            click.echo(f"  {state.ljust(width)}  {n:>5}")
    if not partial:
        return
    attempts = queries.partial_attempts(limit=limit)
    click.echo("Partial registrations:")
    if not attempts:
        click.echo("  (none)")
    for attempt in attempts:
        click.echo(
            f"  #{attempt.id} {attempt.email} tenant={attempt.tenant_id} "
            f"user={attempt.user_id or '-'} credentials={attempt.credentials_id or '-'}"
        )
