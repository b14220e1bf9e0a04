from __future__ import annotations

import base64
import json
import os
import sys
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

import boto3
from rich.console import Console


class StudioCliError(Exception):
    pass


class UsageError(StudioCliError):
    pass


class OpError(StudioCliError):
    pass


STUDIO_LOGIN_ENDPOINT = "STUDIO_LOGIN_ENDPOINT"
STUDIO_COGNITO_CLIENT_ID = "STUDIO_COGNITO_CLIENT_ID"
STUDIO_COGNITO_USERNAME = "STUDIO_COGNITO_USERNAME"
STUDIO_COGNITO_PASSWORD = "STUDIO_COGNITO_PASSWORD"
STUDIO_ID_TOKEN = "STUDIO_ID_TOKEN"

PRESIGNED_URL_PATH_TEMPLATE = "/domainName/{domain_name}/getPresignedUrl"

_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {msg}")


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _print_json(obj: Any, *, pretty: bool) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")


def _jwt_payload(token: str) -> dict[str, Any]:
    parts = (token or "").split(".")
    if len(parts) < 2:
        raise OpError("invalid JWT: expected at least 2 dot-separated parts")
    payload_b64 = parts[1]
    payload_b64 += "=" * (-len(payload_b64) % 4)
    try:
        raw = base64.urlsafe_b64decode(payload_b64.encode("utf-8"))
        val = json.loads(raw.decode("utf-8"))
    except Exception as e:
        raise OpError(f"invalid JWT payload: {e}") from e
    if not isinstance(val, dict):
        raise OpError("invalid JWT payload: expected JSON object")
    return val


def _token_groups(claims: dict[str, Any]) -> list[str]:
    raw = claims.get("cognito:groups")
    if raw is None:
        return []
    if isinstance(raw, list):
        return [str(g) for g in raw]
    return [g for g in str(raw).strip("[]").replace(",", " ").split() if g]


def _presigned_url_endpoint(endpoint: str, domain_name: str) -> str:
    path = PRESIGNED_URL_PATH_TEMPLATE.format(domain_name=quote(domain_name, safe=""))
    return endpoint.rstrip("/") + path


def _cognito_id_token(*, client_id: str, username: str, password: str, region: str | None) -> str:
    c = boto3.client("cognito-idp", region_name=region)
    try:
        resp = c.initiate_auth(
            ClientId=client_id,
            AuthFlow="USER_PASSWORD_AUTH",
            AuthParameters={"USERNAME": username, "PASSWORD": password},
        )
    except Exception as e:
        raise OpError(f"cognito initiate-auth failed: {e}") from e
    auth = resp.get("AuthenticationResult") or {}
    tok = str(auth.get("IdToken") or "").strip()
    if not tok:
        raise OpError("missing IdToken in Cognito response")
    return tok


def _http_get(
    *,
    url: str,
    headers: dict[str, str],
    timeout_seconds: int = 30,
) -> tuple[int, bytes]:
    req = Request(url, method="GET")
    for k, v in headers.items():
        req.add_header(k, v)
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            return int(getattr(resp, "status", 200)), resp.read()
    except HTTPError as e:
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), data
    except URLError as e:
        raise OpError(f"http request failed: {e}") from e
