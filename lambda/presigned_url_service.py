from __future__ import annotations

from typing import Any

from studio_login_model import (
    AccessUrl,
    ErrorKind,
    IdentityClaims,
    LoginError,
    LoginResult,
    SagemakerClientError,
    SagemakerResourceInUse,
    SagemakerResourceNotFound,
    TenantRef,
    UserProfileRef,
)

DEFAULT_LIST_DOMAINS_MAX_RESULTS = 10
DEFAULT_EXECUTION_ROLE_NAME_TEMPLATE = "{domain_name}-sagemaker-role"

# DefaultUserSettings keys carried over onto a new user profile.
COPIED_USER_SETTINGS_KEYS = (
    "SecurityGroups",
    "SharingSettings",
    "JupyterServerAppSettings",
    "KernelGatewayAppSettings",
    "TensorBoardAppSettings",
    "RStudioServerProAppSettings",
    "RSessionAppSettings",
    "CanvasAppSettings",
)


def user_in_group_for_domain(claims: IdentityClaims, domain_name: str) -> bool:
    """Group-as-tenant-scope: a Cognito group name grants access to the domain of the same name."""
    return domain_name in claims.groups


class PresignedUrlService:
    """Authorizes a caller for a Studio domain, ensures their profile and mints a presigned URL.

    Nothing is cached between calls: the domain id and the profile are looked up
    again on every request.
    """

    def __init__(
        self,
        adapter: Any,
        *,
        account_id: str,
        list_domains_max_results: int = DEFAULT_LIST_DOMAINS_MAX_RESULTS,
        execution_role_name_template: str = DEFAULT_EXECUTION_ROLE_NAME_TEMPLATE,
        url_expires_seconds: int | None = None,
        session_expiration_seconds: int | None = None,
    ) -> None:
        self._adapter = adapter
        self._account_id = account_id
        self._list_domains_max_results = list_domains_max_results
        self._execution_role_name_template = execution_role_name_template
        self._url_expires_seconds = url_expires_seconds
        self._session_expiration_seconds = session_expiration_seconds

    def create_presigned_url_for_user(self, claims: IdentityClaims, domain_name: str) -> LoginResult:
        self.assert_user_in_group_for_domain(claims, domain_name)
        tenant = self.find_domain_with_name(domain_name)
        profile, created = self.ensure_user_profile(tenant, claims.user_name)
        access_url = self.create_presigned_url(tenant.id, claims.user_name)
        return LoginResult(
            access_url=access_url,
            tenant=tenant,
            profile_created=created,
            profile_status=profile.status,
        )

    def assert_user_in_group_for_domain(self, claims: IdentityClaims, domain_name: str) -> None:
        if not user_in_group_for_domain(claims, domain_name):
            raise LoginError(
                ErrorKind.USER_NOT_AUTHORIZED_FOR_TENANT,
                f"user {claims.user_name!r} not in group {domain_name!r}",
            )

    def find_domain_with_name(self, domain_name: str) -> TenantRef:
        try:
            domains = self._adapter.list_domains(self._list_domains_max_results)
        except SagemakerClientError as e:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, str(e)) from e

        if not domains:
            raise LoginError(ErrorKind.TENANT_NOT_FOUND, "no domains listed")

        match = next((d for d in domains if d.get("DomainName") == domain_name), None)
        if match is None:
            raise LoginError(ErrorKind.TENANT_NOT_FOUND, f"no domain named {domain_name!r}")

        domain_id = str(match.get("DomainId") or "")
        if not domain_id:
            raise LoginError(
                ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR,
                f"domain {domain_name!r} listed without DomainId",
            )
        return TenantRef(name=domain_name, id=domain_id)

    def ensure_user_profile(self, tenant: TenantRef, user_name: str) -> tuple[UserProfileRef, bool]:
        """Return the user's profile in ``tenant``, creating it when absent.

        An existing profile is accepted whatever its status. A freshly created
        profile is returned as ``Pending``; the service does not wait for it to
        reach ``InService``.
        """

        try:
            out = self._adapter.describe_user_profile(tenant.id, user_name)
        except SagemakerResourceNotFound:
            self._create_user_profile(tenant, user_name)
            return UserProfileRef(tenant_id=tenant.id, user_name=user_name, status="Pending"), True
        except SagemakerClientError as e:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, str(e)) from e

        status = str((out or {}).get("Status") or "")
        return UserProfileRef(tenant_id=tenant.id, user_name=user_name, status=status), False

    def execution_role_arn(self, domain_name: str) -> str:
        if not self._account_id:
            raise LoginError(
                ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR,
                "account id unavailable for execution role",
            )
        role_name = self._execution_role_name_template.format(domain_name=domain_name)
        return f"arn:aws:iam::{self._account_id}:role/{role_name}"

    def _create_user_profile(self, tenant: TenantRef, user_name: str) -> None:
        try:
            domain = self._adapter.describe_domain(tenant.id)
        except SagemakerClientError as e:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, str(e)) from e

        domain_name = str(domain.get("DomainName") or tenant.name)
        defaults = domain.get("DefaultUserSettings") or {}
        user_settings: dict[str, Any] = {"ExecutionRole": self.execution_role_arn(domain_name)}
        for key in COPIED_USER_SETTINGS_KEYS:
            if defaults.get(key) is not None:
                user_settings[key] = defaults[key]

        try:
            self._adapter.create_user_profile(
                tenant.id,
                user_name,
                user_settings,
                [{"Key": "Domain", "Value": domain_name}],
            )
        except SagemakerResourceInUse:
            # A concurrent first request created it between describe and create.
            return
        except SagemakerClientError as e:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, str(e)) from e

    def create_presigned_url(self, domain_id: str, user_name: str) -> AccessUrl:
        try:
            url = self._adapter.create_presigned_domain_url(
                domain_id,
                user_name,
                expires_in_seconds=self._url_expires_seconds,
                session_expiration_seconds=self._session_expiration_seconds,
            )
        except SagemakerClientError as e:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, str(e)) from e
        if not url:
            raise LoginError(ErrorKind.UNRECOVERABLE_PROVISIONING_ERROR, "empty presigned url")
        return AccessUrl(url=url)
