"""Integration tests for the ``principals`` and ``tokens`` CLI groups."""

from __future__ import annotations

from tests.factories.user import UserFactory


def test_principals_create_and_roles(runner, session) -> None:
    result = runner.invoke(
        args=[
            "principals", "create", "ops@example.com",
            "--password", "Passw0rd!", "--role", "admin",
        ]
    )
    assert result.exit_code == 0, result.output
    assert "<ops@example.com>" in result.output

    roles = runner.invoke(args=["principals", "roles", "ops@example.com", "--grant", "auditor"])
    assert roles.exit_code == 0
    assert roles.output.strip() == "admin, auditor"


def test_principals_create_conflict(runner, session) -> None:
    UserFactory(email="dup@example.com")
    session.commit()

    result = runner.invoke(
        args=["principals", "create", "dup@example.com", "--password", "Passw0rd!"]
    )

    assert result.exit_code != 0
    assert "email already in use" in result.output


def test_principals_roles_unknown(runner, session) -> None:
    result = runner.invoke(args=["principals", "roles", "ghost@example.com"])

    assert result.exit_code != 0
    assert "No principal" in result.output


def test_tokens_list_and_revoke_all(runner, session, token_service) -> None:
    UserFactory(email="cli@example.com")
    session.commit()
    token_service.issue_for_email("cli@example.com", issuing_ip="10.0.0.7")
    token_service.issue_for_email("cli@example.com")

    listed = runner.invoke(args=["tokens", "list", "cli@example.com"])
    assert listed.exit_code == 0
    lines = listed.output.strip().splitlines()
    assert len(lines) == 2
    assert "ip=10.0.0.7" in lines[0]
    assert all(line.endswith("active") for line in lines)

    aborted = runner.invoke(args=["tokens", "revoke-all", "cli@example.com"], input="n\n")
    assert aborted.exit_code != 0

    revoked = runner.invoke(args=["tokens", "revoke-all", "cli@example.com", "--yes"])
    assert revoked.exit_code == 0
    assert "Revoked 2 refresh token(s)" in revoked.output

    empty = runner.invoke(args=["tokens", "list", "cli@example.com", "--all"])
    assert "(no refresh tokens)" in empty.output
