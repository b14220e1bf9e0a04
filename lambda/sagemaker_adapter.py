from __future__ import annotations

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from studio_login_model import (
    SagemakerResourceInUse,
    SagemakerResourceNotFound,
    SagemakerUnrecoverableError,
)

RESOURCE_NOT_FOUND_CODES = {"ResourceNotFound", "ResourceNotFoundException"}
RESOURCE_IN_USE_CODES = {"ResourceInUse", "ResourceInUseException"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code") or "")


class SagemakerClientAdapter:
    """Low-level SageMaker calls used by the presigned URL service.

    Every failure is turned into one of the ``SagemakerClientError`` subclasses
    so no botocore detail escapes this class.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def list_domains(self, max_results: int) -> list[dict[str, Any]]:
        domains: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {"MaxResults": max_results}
        while True:
            try:
                out = self._client.list_domains(**kwargs)
            except (ClientError, BotoCoreError) as e:
                raise SagemakerUnrecoverableError(f"list_domains failed: {e}") from e
            page = out.get("Domains") or []
            domains.extend(d for d in page if isinstance(d, dict))
            next_token = str(out.get("NextToken") or "")
            if not next_token:
                return domains
            kwargs["NextToken"] = next_token

    def describe_user_profile(self, domain_id: str, user_name: str) -> dict[str, Any]:
        try:
            return self._client.describe_user_profile(
                DomainId=domain_id,
                UserProfileName=user_name,
            )
        except ClientError as e:
            if _error_code(e) in RESOURCE_NOT_FOUND_CODES:
                raise SagemakerResourceNotFound(f"user profile {user_name!r} not found") from e
            raise SagemakerUnrecoverableError(f"describe_user_profile failed: {e}") from e
        except BotoCoreError as e:
            raise SagemakerUnrecoverableError(f"describe_user_profile failed: {e}") from e

    def create_user_profile(
        self,
        domain_id: str,
        user_name: str,
        user_settings: dict[str, Any],
        tags: list[dict[str, str]],
    ) -> dict[str, Any]:
        try:
            return self._client.create_user_profile(
                DomainId=domain_id,
                UserProfileName=user_name,
                UserSettings=user_settings,
                Tags=tags,
            )
        except ClientError as e:
            if _error_code(e) in RESOURCE_IN_USE_CODES:
                raise SagemakerResourceInUse(f"user profile {user_name!r} already exists") from e
            raise SagemakerUnrecoverableError(f"create_user_profile failed: {e}") from e
        except BotoCoreError as e:
            raise SagemakerUnrecoverableError(f"create_user_profile failed: {e}") from e

    def describe_domain(self, domain_id: str) -> dict[str, Any]:
        try:
            return self._client.describe_domain(DomainId=domain_id)
        except (ClientError, BotoCoreError) as e:
            raise SagemakerUnrecoverableError(f"describe_domain failed: {e}") from e

    def create_presigned_domain_url(
        self,
        domain_id: str,
        user_name: str,
        *,
        expires_in_seconds: int | None = None,
        session_expiration_seconds: int | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {"DomainId": domain_id, "UserProfileName": user_name}
        if expires_in_seconds:
            kwargs["ExpiresInSeconds"] = expires_in_seconds
        if session_expiration_seconds:
            kwargs["SessionExpirationDurationInSeconds"] = session_expiration_seconds
        try:
            out = self._client.create_presigned_domain_url(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise SagemakerUnrecoverableError(f"create_presigned_domain_url failed: {e}") from e
        url = str(out.get("AuthorizedUrl") or "")
        if not url:
            raise SagemakerUnrecoverableError("create_presigned_domain_url returned no AuthorizedUrl")
        return url
