from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence


class AuthInputError(ValueError):
    """Raised when CLI auth inputs are missing or conflicting."""


class MissingEndpointError(AuthInputError):
    """Raised when an endpoint is required but missing."""


class InvalidTokenShapeError(AuthInputError):
    """Raised when a supplied token is not in JWT shape."""


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class LoginRequestAuth:
    endpoint: str
    id_token: str


def _require_non_empty(val: str | None, *, name: str, hint: str) -> str:
    out = (val or "").strip()
    if not out:
        raise AuthInputError(f"missing {name} ({hint})")
    return out


def resolve_basic_credentials(
    *,
    username: str | None,
    password: str | None,
    env_or_none: Callable[..., str | None],
    username_env_names: Sequence[str] = ("STUDIO_COGNITO_USERNAME",),
    password_env_names: Sequence[str] = ("STUDIO_COGNITO_PASSWORD",),
) -> BasicCredentials:
    username_hint_env = str(username_env_names[0]).strip() if username_env_names else "STUDIO_COGNITO_USERNAME"
    password_hint_env = str(password_env_names[0]).strip() if password_env_names else "STUDIO_COGNITO_PASSWORD"
    resolved_username = _require_non_empty(
        username or env_or_none(*username_env_names),
        name="username",
        hint=f"--username or env {username_hint_env}",
    )
    resolved_password = _require_non_empty(
        password or env_or_none(*password_env_names),
        name="password",
        hint=f"--password or env {password_hint_env}",
    )
    return BasicCredentials(username=resolved_username, password=resolved_password)


def check_id_token_shape(id_token: str, *, token_name: str = "id token") -> str:
    token_value = _require_non_empty(
        id_token,
        name=token_name,
        hint="pass --id-token, env STUDIO_ID_TOKEN, or --username/--password",
    )
    parts = token_value.split(".")
    if len(parts) != 3 or any(not p.strip() for p in parts):
        raise InvalidTokenShapeError(
            f"{token_name} is not a JWT (expected 3 dot-separated segments)"
        )
    return token_value


def preflight_login_request(*, endpoint: str | None, id_token: str) -> LoginRequestAuth:
    endpoint_value = (endpoint or "").strip().rstrip("/")
    if not endpoint_value:
        raise MissingEndpointError("missing endpoint (pass --endpoint or env STUDIO_LOGIN_ENDPOINT)")
    if not endpoint_value.startswith("https://"):
        raise AuthInputError(f"endpoint must use https; got {endpoint_value!r}")
    return LoginRequestAuth(endpoint=endpoint_value, id_token=check_id_token_shape(id_token))
