"""Operator CLI for the custody gateway."""

from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

from custody import address
from custody.config import CustodySettings, load_config
from custody.errors import CustodyError
from custody.gateway import KeyCustodyGateway
from custody.logging import correlation_scope, setup_logging
from custody.models import KeyInfo
from custody.verify import verify_signature

_DEFAULT_CONFIG_PATH = "config/custody.yaml"

T = TypeVar("T")


def _load_settings(config_path: str) -> CustodySettings:
    if Path(config_path).exists():
        try:
            return load_config(config_path)
        except ValueError as exc:
            raise click.ClickException(f"invalid config {config_path}: {exc}") from exc
    if config_path != _DEFAULT_CONFIG_PATH:
        raise click.ClickException(f"config file not found: {config_path}")
    return CustodySettings()


def _run(ctx: click.Context, operation: Callable[[KeyCustodyGateway], Awaitable[T]]) -> T:
    settings: CustodySettings = ctx.obj["settings"]

    async def _call() -> T:
        async with KeyCustodyGateway.from_settings(settings, client=ctx.obj.get("http_client")) as gateway:
            with correlation_scope(operation=ctx.info_name):
                return await operation(gateway)

    try:
        return asyncio.run(_call())
    except CustodyError as exc:
        status = f" (HTTP {exc.upstream_status})" if exc.upstream_status is not None else ""
        raise click.ClickException(f"{exc.kind.value}{status}: {exc}") from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_key(info: KeyInfo) -> None:
    click.echo(f"{info.name}\t{info.address}")


@click.group()
@click.option("--config", "config_path", default=_DEFAULT_CONFIG_PATH, show_default=True)
@click.option("--token", envvar="VAULT_TOKEN", default="", help="Vault session token.")
@click.pass_context
def cli(ctx: click.Context, config_path: str, token: str) -> None:
    """Vault key custody CLI."""
    settings = _load_settings(config_path)
    setup_logging(settings.logging.level.upper(), json_output=settings.logging.json_output)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["token"] = token


@cli.command("check-token")
@click.pass_context
def check_token_command(ctx: click.Context) -> None:
    """Validate the session token against Vault."""
    token = ctx.obj["token"]
    _run(ctx, lambda gateway: gateway.check_token(token))
    click.echo("token valid")


@cli.command("key")
@click.argument("name")
@click.option("--path", "base_path", default=None, help="Transit key path; defaults to the users path.")
@click.pass_context
def key_command(ctx: click.Context, name: str, base_path: str | None) -> None:
    """Get or create a key and print its address."""
    token = ctx.obj["token"]
    settings: CustodySettings = ctx.obj["settings"]
    path = base_path or settings.vault.users_path

    async def _op(gateway: KeyCustodyGateway) -> KeyInfo:
        public_key = await gateway.get_or_create_key(name, path, token)
        return KeyInfo(name=name, public_key=public_key, address=address.encode(public_key))

    _echo_key(_run(ctx, _op))


@cli.command("keys")
@click.option("--path", "base_path", default=None, help="Transit key path; defaults to the users path.")
@click.pass_context
def keys_command(ctx: click.Context, base_path: str | None) -> None:
    """List keys and their addresses in Vault order."""
    token = ctx.obj["token"]
    settings: CustodySettings = ctx.obj["settings"]
    path = base_path or settings.vault.users_path
    for info in _run(ctx, lambda gateway: gateway.list_keys(path, token)):
        _echo_key(info)


@cli.command("manager")
@click.pass_context
def manager_command(ctx: click.Context) -> None:
    """Print the manager identity's address, creating its key if needed."""
    token = ctx.obj["token"]
    _echo_key(_run(ctx, lambda gateway: gateway.get_manager_info(token)))


def _decode_payload(data_b64: str) -> bytes:
    try:
        return base64.b64decode(data_b64, validate=True)
    except binascii.Error as exc:
        raise click.BadParameter("not valid base64", param_hint="--data-b64") from exc


async def _sign_checked(
    gateway: KeyCustodyGateway,
    name: str,
    base_path: str,
    payload: bytes,
    token: str,
    verify: bool,
) -> bytes:
    signature = await gateway.sign(name, base_path, payload, token)
    if verify:
        public_key = await gateway.get_key(name, base_path, token)
        valid, reason = verify_signature(public_key, payload, signature)
        if not valid:
            raise click.ClickException(f"signature failed local verification: {reason}")
    return signature


_verify_option = click.option(
    "--verify",
    is_flag=True,
    help="Check the returned signature against the key's public key before printing it.",
)


@cli.command("sign")
@click.argument("name")
@click.option("--data-b64", required=True, help="Payload to sign, base64 encoded.")
@click.option("--path", "base_path", default=None, help="Transit key path; defaults to the users path.")
@_verify_option
@click.pass_context
def sign_command(ctx: click.Context, name: str, data_b64: str, base_path: str | None, verify: bool) -> None:
    """Sign a payload with key NAME and print the base64 signature."""
    token = ctx.obj["token"]
    settings: CustodySettings = ctx.obj["settings"]
    payload = _decode_payload(data_b64)
    path = base_path or settings.vault.users_path
    signature = _run(ctx, lambda gateway: _sign_checked(gateway, name, path, payload, token, verify))
    click.echo(base64.b64encode(signature).decode("ascii"))


@cli.command("manager-sign")
@click.option("--data-b64", required=True, help="Payload to sign, base64 encoded.")
@_verify_option
@click.pass_context
def manager_sign_command(ctx: click.Context, data_b64: str, verify: bool) -> None:
    """Sign a payload with the manager key and print the base64 signature."""
    token = ctx.obj["token"]
    vault = ctx.obj["settings"].vault
    payload = _decode_payload(data_b64)
    signature = _run(
        ctx,
        lambda gateway: _sign_checked(gateway, vault.manager_key, vault.managers_path, payload, token, verify),
    )
    click.echo(base64.b64encode(signature).decode("ascii"))


if __name__ == "__main__":
    cli()
