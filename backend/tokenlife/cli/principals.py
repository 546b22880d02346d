"""Flask CLI commands for managing principals."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from tokenlife.services._shared.errors import ConflictError
from tokenlife.services.principals.store import SQLPrincipalStore

LOGGER = logging.getLogger(__name__)


@click.group("principals")
def principals_cli() -> None:
    """Create principals and inspect their roles."""


@principals_cli.command("create")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", "roles", multiple=True, help="Role to grant (repeatable).")
@with_appcontext
def create_command(email: str, password: str, roles: tuple[str, ...]) -> None:
    """Register EMAIL with the given password and roles."""
    try:
        principal = SQLPrincipalStore().register(email, password, roles)
    except ConflictError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("principal created via CLI", extra={"principal_id": principal.id})
    click.echo(f"Created principal {principal.id} <{principal.email}>")


@principals_cli.command("roles")
@click.argument("email")
@click.option("--grant", "grants", multiple=True, help="Role to add before listing.")
@with_appcontext
def roles_command(email: str, grants: tuple[str, ...]) -> None:
    """Show (and optionally extend) the roles of EMAIL."""
    store = SQLPrincipalStore()
    principal = store.grant(email, grants) if grants else store.find_by_email(email)
    if principal is None:
        raise click.ClickException(f"No principal with email {email!r}")
    click.echo(", ".join(sorted(principal.roles)) or "(no roles)")
