"""Command line entry point for the JWT bearer client."""
from __future__ import annotations

import json
import logging

import click

from .errors import TokenClientError
from .factory import create_client_from_env
from .models import AuthorizationToken

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
LOGGER = logging.getLogger(__name__)


@click.group()
def cli() -> None:
    """Obtain OAuth2 access tokens with a certificate-signed client assertion."""


@cli.command("token")
@click.option("--json", "as_json", is_flag=True, help="Print the token as JSON.")
def token_command(as_json: bool) -> None:
    """Exchange a signed client assertion for an access token."""

    try:
        token = create_client_from_env().exchange_client_assertion()
    except TokenClientError as exc:
        raise click.ClickException(str(exc)) from exc
    _emit_token(token, as_json=as_json)


@cli.command("assertion")
def assertion_command() -> None:
    """Print a freshly signed client assertion."""

    try:
        assertion = create_client_from_env().assertion_builder.build_signed_assertion()
    except TokenClientError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(assertion)


@cli.command("secrets")
def secrets_command() -> None:
    """List the secret names held by the configured key vault."""

    try:
        names = create_client_from_env().key_vault.obtain_list_of_secrets()
    except TokenClientError as exc:
        raise click.ClickException(str(exc)) from exc
    for name in names:
        click.echo(name)


def _emit_token(token: AuthorizationToken, *, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(token.as_dict(), indent=2))
    else:
        click.echo(f"{token.token_type} {token.access_token}")
        click.echo(f"  - expires_at: {token.expires_at.isoformat()}")


if __name__ == "__main__":  # pragma: no cover - entry point
    cli()
