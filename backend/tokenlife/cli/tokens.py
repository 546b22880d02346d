"""Flask CLI commands for inspecting and revoking refresh tokens."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from tokenlife.services._shared.ports import PrincipalView
from tokenlife.services.tokens.wiring import get_token_service


def _principal(email: str) -> PrincipalView:
    principal = get_token_service().principals.find_by_email(email)
    if principal is None:
        raise click.ClickException(f"No principal with email {email!r}")
    return principal


@click.group("tokens")
def tokens_cli() -> None:
    """Inspect and revoke refresh tokens."""


@tokens_cli.command("list")
@click.argument("email")
@click.option("--all", "include_expired", is_flag=True, help="Include expired tokens.")
@with_appcontext
def list_command(email: str, include_expired: bool) -> None:
    """List the refresh tokens held by EMAIL, oldest first."""
    service = get_token_service()
    principal = _principal(email)
    if include_expired:
        views = service.refresh_store.list_for_principal(principal.id)
    else:
        views = service.active_sessions(principal)
    if not views:
        click.echo("(no refresh tokens)")
        return
    now = service.now_utc()
    for view in views:
        state = "active" if view.is_active(now) else "expired"
        click.echo(
            f"{view.token_id:>6}  {view.ref}  created={view.created_at.isoformat()}"
            f"  expires={view.expires_at.isoformat()}  ip={view.issuing_ip or '-'}  {state}"
        )


@tokens_cli.command("revoke-all")
@click.argument("email")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def revoke_all_command(email: str, yes: bool) -> None:
    """Revoke every refresh token of EMAIL (log out everywhere)."""
    principal = _principal(email)
    if not yes:
        click.confirm(f"Revoke all refresh tokens of {principal.email}?", abort=True)
    removed = get_token_service().revoke_all(principal)
    click.echo(f"Revoked {removed} refresh token(s)")
