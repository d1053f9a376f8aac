from __future__ import annotations

from onboarder.models.project import GcpProject
from onboarder.services.billing_service import BillingService
from onboarder.services.iam_service import IamService
from onboarder.services.projects_service import ProjectsService
from onboarder.services.service_usage_service import ServiceUsageService


class GcpProvisioningBackend:
    """Maps the project workflow's remote operations onto Google Cloud REST calls."""

    def __init__(
        self,
        *,
        projects: ProjectsService,
        service_usage: ServiceUsageService,
        billing: BillingService,
        iam: IamService,
    ) -> None:
        self._projects = projects
        self._service_usage = service_usage
        self._billing = billing
        self._iam = iam

    async def check_availability(self, *, token: str, resource_id: str) -> bool:
        return await self._projects.project_id_available(token=token, project_id=resource_id)

    async def create_resource(self, *, token: str, resource_id: str, display_name: str) -> GcpProject:
        return await self._projects.create_project(token=token, project_id=resource_id, display_name=display_name)

    async def enable_capability(self, *, token: str, resource_id: str, capability: str) -> None:
        await self._service_usage.enable_service(token=token, project_id=resource_id, service_name=capability)

    async def check_permission(self, *, token: str, permission: str, target: str) -> bool:
        granted = await self._billing.test_permissions(token=token, resource=target, permissions=[permission])
        return permission in granted

    async def link_resource(self, *, token: str, resource_id: str, parent_account_id: str) -> None:
        await self._billing.link_project(token=token, project_id=resource_id, billing_account_name=parent_account_id)

    async def grant_role(self, *, token: str, resource_id: str, identity: str, role: str) -> None:
        await self._iam.add_project_binding(token=token, project_id=resource_id, role=role, member=identity)

    async def delete_resource(self, *, token: str, resource_id: str) -> None:
        await self._projects.delete_project(token=token, project_id=resource_id)
