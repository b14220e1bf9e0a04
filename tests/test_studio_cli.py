from __future__ import annotations

import base64
import json

import pytest
from typer.testing import CliRunner

import studio_cli.login_main as login_cli
from studio_cli import auth_inputs
from studio_cli.cli_shared import _presigned_url_endpoint, _token_groups


runner = CliRunner()


def _b64(obj: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(obj).encode("utf-8")).decode("ascii").rstrip("=")


def _jwt(claims: dict) -> str:
    return f"{_b64({'alg': 'RS256'})}.{_b64(claims)}.sig"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "STUDIO_LOGIN_ENDPOINT",
        "STUDIO_COGNITO_CLIENT_ID",
        "STUDIO_COGNITO_USERNAME",
        "STUDIO_COGNITO_PASSWORD",
        "STUDIO_ID_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


def test_claims_shows_username_and_groups() -> None:
    tok = _jwt({"cognito:username": "alice", "cognito:groups": ["team1", "team2"], "exp": 1700000000})

    result = runner.invoke(login_cli.app, ["--plain-json", "claims", "--id-token", tok])

    assert result.exit_code == 0
    parsed = json.loads(result.stdout)
    assert parsed["kind"] == "studio-login.claims.v1"
    assert parsed["username"] == "alice"
    assert parsed["groups"] == ["team1", "team2"]
    assert parsed["hasGroupsClaim"] is True
    assert parsed["exp"] == 1700000000


def test_claims_reports_missing_groups_claim(monkeypatch) -> None:
    monkeypatch.setenv("STUDIO_ID_TOKEN", _jwt({"username": "bob"}))

    result = runner.invoke(login_cli.app, ["claims"])

    assert result.exit_code == 0
    parsed = json.loads(result.stdout)
    assert parsed["groups"] == []
    assert parsed["hasGroupsClaim"] is False


def test_claims_rejects_non_jwt() -> None:
    assert login_cli.main(["claims", "--id-token", "not-a-token"]) == 2


def test_url_calls_endpoint_with_id_token(monkeypatch) -> None:
    tok = _jwt({"cognito:username": "alice"})
    seen: dict[str, object] = {}

    def fake_get(*, url, headers, timeout_seconds=30):
        seen["url"] = url
        seen["headers"] = headers
        return 200, json.dumps({"url": "https://studio.example/abc"}).encode("utf-8")

    monkeypatch.setattr(login_cli, "_http_get", fake_get)

    result = runner.invoke(
        login_cli.app,
        ["--plain-json", "url", "team1", "--endpoint", "https://api.example/prod/", "--id-token", tok],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"domain": "team1", "url": "https://studio.example/abc"}
    assert seen["url"] == "https://api.example/prod/domainName/team1/getPresignedUrl"
    assert seen["headers"]["Authorization"] == tok


def test_url_signs_in_when_no_token_given(monkeypatch) -> None:
    monkeypatch.setenv("STUDIO_LOGIN_ENDPOINT", "https://api.example/prod")
    monkeypatch.setenv("STUDIO_COGNITO_CLIENT_ID", "client-1")
    tok = _jwt({"cognito:username": "alice"})
    calls: list[dict[str, object]] = []

    def fake_sign_in(**kwargs):
        calls.append(kwargs)
        return tok

    monkeypatch.setattr(login_cli, "_cognito_id_token", fake_sign_in)
    monkeypatch.setattr(
        login_cli,
        "_http_get",
        lambda **kwargs: (200, b'{"url":"https://studio.example/xyz"}'),
    )

    result = runner.invoke(
        login_cli.app,
        ["--region", "eu-central-1", "url", "team1", "--username", "alice", "--password", "pw"],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout)["url"] == "https://studio.example/xyz"
    assert calls == [
        {"client_id": "client-1", "username": "alice", "password": "pw", "region": "eu-central-1"}
    ]


def test_url_surfaces_server_message_on_403(monkeypatch, capsys) -> None:
    monkeypatch.setattr(
        login_cli,
        "_http_get",
        lambda **kwargs: (403, b'{"message":"user not in group for requested tenant"}'),
    )

    rc = login_cli.main(
        ["url", "team9", "--endpoint", "https://api.example/prod", "--id-token", _jwt({"username": "alice"})]
    )

    assert rc == 1
    err = capsys.readouterr().err
    assert "status=403" in err
    assert "user not in group" in err


def test_url_requires_endpoint() -> None:
    rc = login_cli.main(["url", "team1", "--id-token", _jwt({"username": "alice"})])

    assert rc == 2


def test_url_requires_credentials_without_token() -> None:
    rc = login_cli.main(["url", "team1", "--endpoint", "https://api.example/prod"])

    assert rc == 2


def test_id_token_requires_client_id(monkeypatch) -> None:
    rc = login_cli.main(["id-token", "--username", "alice", "--password", "pw"])

    assert rc == 2


def test_id_token_prints_token(monkeypatch) -> None:
    monkeypatch.setattr(login_cli, "_cognito_id_token", lambda **kwargs: "a.b.c")

    result = runner.invoke(
        login_cli.app, ["id-token", "--username", "alice", "--password", "pw", "--client-id", "c1"]
    )

    assert result.exit_code == 0
    assert result.stdout.strip() == "a.b.c"


def test_version_flag() -> None:
    assert login_cli.main(["--version"]) == 0


def test_presigned_url_endpoint_quotes_domain() -> None:
    assert (
        _presigned_url_endpoint("https://api.example/prod/", "team 1/x")
        == "https://api.example/prod/domainName/team%201%2Fx/getPresignedUrl"
    )


@pytest.mark.parametrize(
    "raw,expected",
    [
        (["a", "b"], ["a", "b"]),
        ("a,b", ["a", "b"]),
        ("[a b]", ["a", "b"]),
    ],
)
def test_token_groups_shapes(raw, expected) -> None:
    assert _token_groups({"cognito:groups": raw}) == expected


def test_preflight_rejects_plain_http() -> None:
    with pytest.raises(auth_inputs.AuthInputError):
        auth_inputs.preflight_login_request(endpoint="http://api.example", id_token="a.b.c")


def test_resolve_basic_credentials_prefers_flags_over_env() -> None:
    env = {"STUDIO_COGNITO_USERNAME": "env-user", "STUDIO_COGNITO_PASSWORD": "env-pass"}

    def env_or_none(*names: str):
        for n in names:
            if env.get(n):
                return env[n]
        return None

    creds = auth_inputs.resolve_basic_credentials(username="flag-user", password=None, env_or_none=env_or_none)

    assert creds.username == "flag-user"
    assert creds.password == "env-pass"
