from __future__ import annotations

import logging

from onboarder.services.gcp_service import GcpRestClient


logger = logging.getLogger(__name__)


class ServiceUsageService(GcpRestClient):
    """Service Usage API: enabling and inspecting APIs on a project."""

    def _service_url(self, project_id: str, service_name: str) -> str:
        return f"{self._config.service_usage_url}/v1/projects/{project_id}/services/{service_name}"

    async def enable_service(self, *, token: str, project_id: str, service_name: str) -> None:
        logger.info("Enabling API (project_id=%s, service=%s)", project_id, service_name)
        await self._request_json(
            method="POST",
            url=f"{self._service_url(project_id, service_name)}:enable",
            token=token,
            body={},
            action=f"enable API {service_name}",
        )

    async def service_enabled(self, *, token: str, project_id: str, service_name: str) -> bool:
        data = await self._request_json(
            method="GET",
            url=self._service_url(project_id, service_name),
            token=token,
            action=f"check API {service_name}",
        )
        return data.get("state") == "ENABLED"

    async def list_enabled_services(self, *, token: str, project_id: str) -> list[str]:
        """Return service identifiers such as ``aiplatform.googleapis.com``."""

        data = await self._request_json(
            method="GET",
            url=f"{self._config.service_usage_url}/v1/projects/{project_id}/services",
            token=token,
            params={"filter": "state:ENABLED"},
            action=f"list enabled services for {project_id}",
        )
        # Names look like "projects/123456/services/aiplatform.googleapis.com".
        names = (str(s.get("name") or "").rsplit("/", 1)[-1] for s in data.get("services") or [])
        return [name for name in names if name]
