import json
import os
import re
import time
from datetime import datetime, timezone
from typing import Any

import boto3
from presigned_url_service import (
    DEFAULT_EXECUTION_ROLE_NAME_TEMPLATE,
    DEFAULT_LIST_DOMAINS_MAX_RESULTS,
    PresignedUrlService,
)
from sagemaker_adapter import SagemakerClientAdapter
from studio_login_model import AccessUrl, ErrorKind, IdentityClaims, LoginError


def _env_int(name: str, default: int | None) -> int | None:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


SCHEMA_VERSION = os.environ.get("SCHEMA_VERSION", "2026-10-01")
LIST_DOMAINS_MAX_RESULTS = _env_int("LIST_DOMAINS_MAX_RESULTS", DEFAULT_LIST_DOMAINS_MAX_RESULTS)
EXECUTION_ROLE_NAME_TEMPLATE = os.environ.get(
    "EXECUTION_ROLE_NAME_TEMPLATE", DEFAULT_EXECUTION_ROLE_NAME_TEMPLATE
)
PRESIGNED_URL_EXPIRES_SECONDS = _env_int("PRESIGNED_URL_EXPIRES_SECONDS", None)
SESSION_EXPIRATION_SECONDS = _env_int("SESSION_EXPIRATION_SECONDS", None)
DOMAIN_NAME_PATH_PARAMETER = os.environ.get("DOMAIN_NAME_PATH_PARAMETER", "domainName")
CORS_ALLOW_ORIGIN = os.environ.get("CORS_ALLOW_ORIGIN", "*")

GROUPS_CLAIM = "cognito:groups"
LAMBDA_ARN_RE = re.compile(r"^arn:[^:]+:lambda:([^:]*):(\d+):")

ERROR_RESPONSES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.NO_AUTHORIZATION: (401, "no authorization given"),
    ErrorKind.USER_NAME_MISSING: (400, "no user name in token"),
    ErrorKind.USER_NOT_IN_ANY_GROUP: (400, "no groups in token"),
    ErrorKind.DOMAIN_NAME_MISSING: (400, "no tenant name provided"),
    ErrorKind.USER_NOT_AUTHORIZED_FOR_TENANT: (403, "user not in group for requested tenant"),
    ErrorKind.TENANT_NOT_FOUND: (404, "could not find tenant"),
    ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR: (500, "unrecoverable error from provisioning API"),
}

_sagemaker_client = None


class UnmappedLoginError(Exception):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _aws_region() -> str | None:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")


def _sagemaker(region: str | None):
    global _sagemaker_client
    if _sagemaker_client is None:
        _sagemaker_client = boto3.client("sagemaker", region_name=region)
    return _sagemaker_client


def _region_and_account(context: Any) -> tuple[str, str]:
    # arn:aws:lambda:<region>:<account-id>:function:<name>
    arn = str(getattr(context, "invoked_function_arn", "") or "")
    match = LAMBDA_ARN_RE.match(arn)
    if match:
        return match.group(1), match.group(2)
    return _aws_region() or "", os.environ.get("AWS_ACCOUNT_ID", "")


def _request_id(event: dict[str, Any]) -> str:
    rc = event.get("requestContext") or {}
    if not isinstance(rc, dict):
        return ""
    return str(rc.get("requestId") or "")


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {
            "content-type": "application/json",
            "cache-control": "no-store",
            "Access-Control-Allow-Origin": CORS_ALLOW_ORIGIN,
        },
        "body": json.dumps(body),
    }


def _claims(event: dict[str, Any]) -> dict[str, Any] | None:
    rc = event.get("requestContext") or {}
    if not isinstance(rc, dict):
        return None
    auth = rc.get("authorizer")
    if not isinstance(auth, dict):
        return None
    claims = auth.get("claims")
    if isinstance(claims, dict):
        return claims
    jwt = auth.get("jwt")
    if isinstance(jwt, dict) and isinstance(jwt.get("claims"), dict):
        return jwt["claims"]
    return None


def _parse_groups(raw: Any) -> frozenset[str]:
    # REST authorizers pass "a,b"; HTTP API JWT authorizers pass "[a b]".
    if isinstance(raw, (list, tuple, set, frozenset)):
        values = [str(v) for v in raw]
    else:
        values = re.split(r"[,\s]+", str(raw).strip().strip("[]"))
    return frozenset(v.strip() for v in values if v and v.strip())


def extract_identity(event: dict[str, Any]) -> IdentityClaims:
    claims = _claims(event)
    if claims is None:
        raise LoginError(ErrorKind.NO_AUTHORIZATION, "no authorizer claims on request")

    user_name = str(claims.get("username") or claims.get("cognito:username") or "").strip()
    if not user_name:
        raise LoginError(ErrorKind.USER_NAME_MISSING, "claims carry no username")

    if GROUPS_CLAIM not in claims or claims[GROUPS_CLAIM] is None:
        raise LoginError(ErrorKind.USER_NOT_IN_ANY_GROUP, f"claims carry no {GROUPS_CLAIM}")

    return IdentityClaims(user_name=user_name, groups=_parse_groups(claims[GROUPS_CLAIM]))


def extract_domain_name(event: dict[str, Any]) -> str:
    params = event.get("pathParameters")
    if not isinstance(params, dict):
        raise LoginError(ErrorKind.DOMAIN_NAME_MISSING, "request has no path parameters")
    domain_name = str(params.get(DOMAIN_NAME_PATH_PARAMETER) or "")
    if not domain_name:
        raise LoginError(ErrorKind.DOMAIN_NAME_MISSING, f"missing path parameter {DOMAIN_NAME_PATH_PARAMETER}")
    return domain_name


def to_response(outcome: AccessUrl | LoginError) -> dict[str, Any]:
    if isinstance(outcome, AccessUrl):
        return _response(200, {"url": outcome.url})
    if isinstance(outcome, LoginError) and outcome.kind in ERROR_RESPONSES:
        status_code, message = ERROR_RESPONSES[outcome.kind]
        return _response(status_code, {"message": message})
    raise UnmappedLoginError(f"no response mapping for {outcome!r}")


def _service(region: str, account_id: str) -> PresignedUrlService:
    return PresignedUrlService(
        SagemakerClientAdapter(_sagemaker(region or None)),
        account_id=account_id,
        list_domains_max_results=LIST_DOMAINS_MAX_RESULTS or DEFAULT_LIST_DOMAINS_MAX_RESULTS,
        execution_role_name_template=EXECUTION_ROLE_NAME_TEMPLATE,
        url_expires_seconds=PRESIGNED_URL_EXPIRES_SECONDS,
        session_expiration_seconds=SESSION_EXPIRATION_SECONDS,
    )


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    start = time.time()
    request_id = _request_id(event)

    wide_event: dict[str, Any] = {
        "event": "studio_login_create_presigned_url",
        "schema_version": SCHEMA_VERSION,
        "request_id": request_id,
        "ts": _now_iso(),
    }

    try:
        try:
            claims = extract_identity(event)
            wide_event["user_name"] = claims.user_name
            domain_name = extract_domain_name(event)
            wide_event["domain_name"] = domain_name

            region, account_id = _region_and_account(context)
            result = _service(region, account_id).create_presigned_url_for_user(claims, domain_name)
        except LoginError as e:
            wide_event["outcome"] = "rejected"
            wide_event["error_kind"] = e.kind.value
            wide_event["error_detail"] = e.detail
            return to_response(e)

        wide_event["outcome"] = "success"
        wide_event["domain_id"] = result.tenant.id
        wide_event["profile_created"] = result.profile_created
        wide_event["profile_status"] = result.profile_status
        return to_response(result.access_url)
    except UnmappedLoginError as exc:
        wide_event["outcome"] = "error"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        return _response(
            500,
            {
                "errorCode": "UNMAPPED_ERROR_KIND",
                "message": "Internal error",
                "requestId": request_id,
            },
        )
    except Exception as exc:
        wide_event["outcome"] = "error"
        wide_event["error"] = {"type": type(exc).__name__, "message": str(exc)}
        return _response(
            500,
            {
                "errorCode": "INTERNAL_ERROR",
                "message": "Failed to create presigned url",
                "requestId": request_id,
            },
        )
    finally:
        wide_event["duration_ms"] = int((time.time() - start) * 1000)
        print(json.dumps(wide_event, separators=(",", ":"), sort_keys=True))
