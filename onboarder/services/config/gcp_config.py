from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class GcpConfig:
    """Runtime configuration for Google Cloud REST calls.

    Each base URL includes scheme and host, without a trailing slash, e.g.
    "https://cloudresourcemanager.googleapis.com". They can be pointed at an
    emulator or a local fake server.
    """

    resource_manager_url: str = "https://cloudresourcemanager.googleapis.com"
    service_usage_url: str = "https://serviceusage.googleapis.com"
    billing_url: str = "https://cloudbilling.googleapis.com"
    iam_url: str = "https://iam.googleapis.com"
    _DEFAULT_TIMEOUT_SECONDS: ClassVar[float] = 30.0
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS

    @staticmethod
    def from_env() -> "GcpConfig":
        defaults = GcpConfig()

        timeout_raw = os.getenv("GCP_TIMEOUT_SECONDS")
        timeout_seconds = GcpConfig._DEFAULT_TIMEOUT_SECONDS
        if timeout_raw:
            try:
                timeout_seconds = float(timeout_raw)
            except ValueError as exc:
                raise ValueError("Invalid GCP_TIMEOUT_SECONDS; must be a number") from exc
            if timeout_seconds <= 0:
                raise ValueError("Invalid GCP_TIMEOUT_SECONDS; must be positive")

        return GcpConfig(
            resource_manager_url=_url_from_env("GCP_RESOURCE_MANAGER_URL", defaults.resource_manager_url),
            service_usage_url=_url_from_env("GCP_SERVICE_USAGE_URL", defaults.service_usage_url),
            billing_url=_url_from_env("GCP_BILLING_URL", defaults.billing_url),
            iam_url=_url_from_env("GCP_IAM_URL", defaults.iam_url),
            timeout_seconds=timeout_seconds,
        )

    @staticmethod
    def for_base_url(base_url: str, *, timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS) -> "GcpConfig":
        """Route every API to one host (local fakes, emulators)."""

        cleaned = base_url.rstrip("/")
        return GcpConfig(
            resource_manager_url=cleaned,
            service_usage_url=cleaned,
            billing_url=cleaned,
            iam_url=cleaned,
            timeout_seconds=timeout_seconds,
        )


def _url_from_env(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value.rstrip("/") if value else default
