from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from onboarder.models.project import GcpProject
from onboarder.services.gcp_service import GcpRestClient, GcpServiceError


logger = logging.getLogger(__name__)


class ProjectsService(GcpRestClient):
    """Cloud Resource Manager calls for projects."""

    async def list_projects(self, *, token: str) -> list[GcpProject]:
        url = f"{self._config.resource_manager_url}/v1/projects"
        projects: list[GcpProject] = []
        page_token: Optional[str] = None

        while True:
            params = {"pageToken": page_token} if page_token else None
            data = await self._request_json(method="GET", url=url, token=token, params=params, action="list projects")
            projects.extend(GcpProject.from_api(p) for p in data.get("projects") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                return projects

    async def project_id_available(self, *, token: str, project_id: str) -> bool:
        """Return True if none of the caller's projects already uses ``project_id``."""

        projects = await self.list_projects(token=token)
        return not any(p.project_id == project_id for p in projects)

    async def create_project(self, *, token: str, project_id: str, display_name: str) -> GcpProject:
        logger.info("Creating project (project_id=%s)", project_id)
        data = await self._request_json(
            method="POST",
            url=f"{self._config.resource_manager_url}/v3/projects",
            token=token,
            body={"projectId": project_id, "displayName": display_name},
            action=f"create project {project_id}",
        )

        # v3 returns a long-running Operation. A finished operation can still carry
        # an error instead of a response.
        error: dict[str, Any] = data.get("error") or {}
        if error:
            raise GcpServiceError(
                f"Failed to create project {project_id}: operation error "
                f"{error.get('code')} {error.get('message') or ''}".strip()
            )

        # The project fields are only present once it is done, so fall back to what we asked for.
        response: dict[str, Any] = data.get("response") or {}
        # "projects/<number>"
        number = str(response.get("name") or "").rsplit("/", 1)[-1]
        return GcpProject(
            project_id=project_id,
            name=display_name,
            project_number=number or None,
            create_time=response.get("createTime"),
            lifecycle_state=response.get("state") or "ACTIVE",
        )

    async def delete_project(self, *, token: str, project_id: str) -> None:
        # Deletion is asynchronous on Google's side; the project enters DELETE_REQUESTED.
        logger.info("Requesting deletion of project (project_id=%s)", project_id)
        await self._request_json(
            method="DELETE",
            url=f"{self._config.resource_manager_url}/v1/projects/{project_id}",
            token=token,
            action=f"delete project {project_id}",
        )

    async def wait_until_visible(
        self,
        *,
        token: str,
        project_id: str,
        timeout_seconds: float,
        poll_interval_seconds: float,
    ) -> GcpProject:
        """Poll the project list until ``project_id`` shows up, or give up at the deadline."""

        deadline = time.monotonic() + timeout_seconds
        attempts = 0
        while True:
            attempts += 1
            try:
                for project in await self.list_projects(token=token):
                    if project.project_id == project_id:
                        logger.info("Project visible after %d poll(s) (project_id=%s)", attempts, project_id)
                        return project
            except GcpServiceError as exc:
                # Listing right after creation can briefly fail while IAM catches up.
                logger.warning("Project visibility poll failed (project_id=%s): %s", project_id, exc)

            if time.monotonic() + poll_interval_seconds > deadline:
                break
            await asyncio.sleep(poll_interval_seconds)

        raise GcpServiceError(
            f"Timed out waiting for project to become visible: {project_id} "
            f"(attempts={attempts}, timeout={timeout_seconds}s)"
        )
