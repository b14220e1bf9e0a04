from __future__ import annotations

import json
import sys
from typing import Any

import click
import typer

from . import __version__
from . import auth_inputs
from .cli_shared import (
    STUDIO_COGNITO_CLIENT_ID,
    STUDIO_ID_TOKEN,
    STUDIO_LOGIN_ENDPOINT,
    OpError,
    UsageError,
    _cognito_id_token,
    _env_or_none,
    _http_get,
    _jwt_payload,
    _presigned_url_endpoint,
    _print_json,
    _rich_error,
    _token_groups,
)

app = typer.Typer(
    name="studio-login",
    help="Sign in with Cognito and fetch presigned SageMaker Studio URLs.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"studio-login {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def app_callback(
    ctx: typer.Context,
    region: str | None = typer.Option(None, "--region", help="Cognito region (env fallback: AWS_REGION)"),
    plain_json: bool = typer.Option(False, "--plain-json", help="Emit compact JSON output"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    ctx.obj = {
        "region": (region or _env_or_none("AWS_REGION", "AWS_DEFAULT_REGION") or "").strip() or None,
        "pretty": not plain_json,
    }


def _opts(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {"region": None, "pretty": True}


def _sign_in(
    ctx: typer.Context,
    *,
    username: str | None,
    password: str | None,
    client_id: str | None,
) -> str:
    try:
        creds = auth_inputs.resolve_basic_credentials(
            username=username,
            password=password,
            env_or_none=_env_or_none,
        )
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e
    resolved_client_id = (client_id or _env_or_none(STUDIO_COGNITO_CLIENT_ID) or "").strip()
    if not resolved_client_id:
        raise UsageError(f"missing Cognito app client id (pass --client-id or set {STUDIO_COGNITO_CLIENT_ID})")
    return _cognito_id_token(
        client_id=resolved_client_id,
        username=creds.username,
        password=creds.password,
        region=_opts(ctx).get("region"),
    )


@app.command("id-token", help="Sign in with USER_PASSWORD_AUTH and print the Cognito IdToken.")
def id_token_cmd(
    ctx: typer.Context,
    username: str | None = typer.Option(None, "--username", help="Cognito username"),
    password: str | None = typer.Option(None, "--password", help="Cognito password"),
    client_id: str | None = typer.Option(None, "--client-id", help="Cognito app client id"),
) -> None:
    tok = _sign_in(ctx, username=username, password=password, client_id=client_id)
    sys.stdout.write(tok + "\n")


@app.command("claims", help="Show the username and groups an IdToken carries (no signature check).")
def claims_cmd(
    ctx: typer.Context,
    id_token: str | None = typer.Option(None, "--id-token", help=f"IdToken (env fallback: {STUDIO_ID_TOKEN})"),
) -> None:
    try:
        tok = auth_inputs.check_id_token_shape(id_token or _env_or_none(STUDIO_ID_TOKEN) or "")
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e
    claims = _jwt_payload(tok)
    _print_json(
        {
            "kind": "studio-login.claims.v1",
            "username": str(claims.get("cognito:username") or claims.get("username") or ""),
            "groups": _token_groups(claims),
            "hasGroupsClaim": "cognito:groups" in claims,
            "exp": claims.get("exp"),
        },
        pretty=_opts(ctx)["pretty"],
    )


@app.command("url", help="Fetch a presigned Studio URL for DOMAIN from the deployed endpoint.")
def url_cmd(
    ctx: typer.Context,
    domain: str = typer.Argument(..., help="SageMaker domain name (must match one of your Cognito groups)"),
    endpoint: str | None = typer.Option(None, "--endpoint", help=f"API base URL (env fallback: {STUDIO_LOGIN_ENDPOINT})"),
    id_token: str | None = typer.Option(None, "--id-token", help=f"IdToken (env fallback: {STUDIO_ID_TOKEN})"),
    username: str | None = typer.Option(None, "--username", help="Cognito username, used when no IdToken is given"),
    password: str | None = typer.Option(None, "--password", help="Cognito password, used when no IdToken is given"),
    client_id: str | None = typer.Option(None, "--client-id", help="Cognito app client id"),
) -> None:
    tok = (id_token or _env_or_none(STUDIO_ID_TOKEN) or "").strip()
    if not tok:
        tok = _sign_in(ctx, username=username, password=password, client_id=client_id)
    try:
        auth = auth_inputs.preflight_login_request(
            endpoint=endpoint or _env_or_none(STUDIO_LOGIN_ENDPOINT),
            id_token=tok,
        )
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e

    status, raw = _http_get(
        url=_presigned_url_endpoint(auth.endpoint, domain),
        headers={"Authorization": auth.id_token, "Accept": "application/json"},
    )
    text = raw.decode("utf-8", errors="replace")
    try:
        body = json.loads(text) if text.strip() else {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    if status != 200:
        message = str(body.get("message") or text or "no body")
        raise OpError(f"presigned url request failed: status={status} message={message}")
    url = str(body.get("url") or "")
    if not url:
        raise OpError("presigned url response has no url")
    _print_json({"domain": domain, "url": url}, pretty=_opts(ctx)["pretty"])


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        result = app(args=argv, prog_name="studio-login", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
