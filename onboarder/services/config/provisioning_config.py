from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar

# APIs every new project gets unless the request names its own list.
ESSENTIAL_APIS: tuple[str, ...] = (
    "serviceusage.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "cloudbilling.googleapis.com",
    "aiplatform.googleapis.com",
)

BILLING_LINK_PERMISSION = "billing.resourceAssociations.create"
VERTEX_AI_USER_ROLE = "roles/aiplatform.user"
SERVICE_ACCOUNT_USER_ROLE = "roles/iam.serviceAccountUser"


@dataclass(frozen=True)
class ProvisioningConfig:
    """Configuration for the project provisioning workflow.

    This is service wiring, not an API request schema: it decides how long to wait
    for IAM propagation, which APIs are enabled by default and which roles the
    grantee receives.
    """

    _DEFAULT_PROPAGATION_WAIT_SECONDS: ClassVar[float] = 10.0
    propagation_wait_seconds: float = _DEFAULT_PROPAGATION_WAIT_SECONDS
    default_apis: tuple[str, ...] = ESSENTIAL_APIS
    grantee_roles: tuple[str, ...] = (VERTEX_AI_USER_ROLE,)
    billing_permission: str = BILLING_LINK_PERMISSION
    visibility_timeout_seconds: float = 120.0
    visibility_poll_seconds: float = 2.0

    @staticmethod
    def from_env() -> "ProvisioningConfig":
        defaults = ProvisioningConfig()
        return ProvisioningConfig(
            propagation_wait_seconds=_float_from_env(
                "PROVISIONING_PROPAGATION_WAIT_SECONDS", defaults.propagation_wait_seconds, allow_zero=True
            ),
            default_apis=_list_from_env("PROVISIONING_DEFAULT_APIS", defaults.default_apis),
            grantee_roles=_list_from_env("PROVISIONING_GRANTEE_ROLES", defaults.grantee_roles),
            billing_permission=(os.getenv("PROVISIONING_BILLING_PERMISSION") or "").strip()
            or defaults.billing_permission,
            visibility_timeout_seconds=_float_from_env(
                "PROVISIONING_VISIBILITY_TIMEOUT_SECONDS", defaults.visibility_timeout_seconds
            ),
            visibility_poll_seconds=_float_from_env(
                "PROVISIONING_VISIBILITY_POLL_SECONDS", defaults.visibility_poll_seconds
            ),
        )


@dataclass(frozen=True)
class ServiceAccountConfig:
    """Naming used for auto-created Vertex AI service accounts."""

    account_id_prefix: str = "onboard-vertex"
    display_name: str = "Onboarder Vertex SA"

    @staticmethod
    def from_env() -> "ServiceAccountConfig":
        defaults = ServiceAccountConfig()
        return ServiceAccountConfig(
            account_id_prefix=(os.getenv("SERVICE_ACCOUNT_ID_PREFIX") or "").strip() or defaults.account_id_prefix,
            display_name=(os.getenv("SERVICE_ACCOUNT_DISPLAY_NAME") or "").strip() or defaults.display_name,
        )


def _float_from_env(name: str, default: float, *, allow_zero: bool = False) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}; must be a number") from exc
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"Invalid {name}; must be positive")
    return value


def _list_from_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    items = tuple(item.strip() for item in raw.split(",") if item.strip())
    return items or default
