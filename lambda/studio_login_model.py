from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

STATUS_IN_SERVICE = "InService"


class ErrorKind(str, Enum):
    NO_AUTHORIZATION = "NoAuthorization"
    USER_NAME_MISSING = "UserNameMissing"
    USER_NOT_IN_ANY_GROUP = "UserNotInAnyGroup"
    DOMAIN_NAME_MISSING = "DomainNameMissing"
    USER_NOT_AUTHORIZED_FOR_TENANT = "UserNotAuthorizedForTenant"
    TENANT_NOT_FOUND = "TenantNotFound"
    UNRECOVERABLE_PROVISIONING_ERROR = "UnrecoverableProvisioningError"


class LoginError(Exception):
    """Caller-visible failure of the presigned URL flow.

    ``detail`` is for the log line only and is never sent back to the caller.
    """

    def __init__(self, kind: ErrorKind, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail


class SagemakerClientError(Exception):
    pass


class SagemakerResourceNotFound(SagemakerClientError):
    pass


class SagemakerResourceInUse(SagemakerClientError):
    pass


class SagemakerUnrecoverableError(SagemakerClientError):
    pass


@dataclass(frozen=True)
class IdentityClaims:
    user_name: str
    groups: frozenset[str]


@dataclass(frozen=True)
class TenantRef:
    name: str
    id: str


@dataclass(frozen=True)
class UserProfileRef:
    tenant_id: str
    user_name: str
    status: str

    @property
    def is_in_service(self) -> bool:
        return self.status == STATUS_IN_SERVICE


@dataclass(frozen=True)
class AccessUrl:
    url: str


@dataclass(frozen=True)
class LoginResult:
    access_url: AccessUrl
    tenant: TenantRef
    profile_created: bool
    profile_status: str
