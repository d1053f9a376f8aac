"""Plain helpers shared by the test modules."""

from __future__ import annotations

from typing import Optional

from onboarder.models.iam import ServiceAccount
from onboarder.services.config import ProvisioningConfig
from onboarder.services.setup.project_setup_service import (
    InMemoryProvisioningBackend,
    ProjectSetupService,
    ProvisioningRequest,
)

OK_ACCOUNT = "billingAccounts/0123AB-4567CD-89EF01"
NO_PERMISSION_ACCOUNT = "billingAccounts/AAAAAA-BBBBBB-CCCCCC"
CLOSED_ACCOUNT = "billingAccounts/DDDDDD-EEEEEE-FFFFFF"
BROKEN_ACCOUNT = "billingAccounts/111111-222222-333333"
BILLING_ACCOUNT = OK_ACCOUNT
CAPABILITIES = ("a.googleapis.com", "b.googleapis.com", "c.googleapis.com")


class SleepRecorder:
    """Stands in for asyncio.sleep so the propagation wait is instant and observable."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_request(**overrides) -> ProvisioningRequest:
    fields = {
        "resource_id": "acme-ml-sandbox",
        "display_name": "Acme ML Sandbox",
        "parent_account_id": BILLING_ACCOUNT,
        "capabilities_to_enable": CAPABILITIES,
        "grantee_identity": "user:alice@example.com",
    }
    fields.update(overrides)
    return ProvisioningRequest(**fields)


def make_service(
    backend: Optional[InMemoryProvisioningBackend] = None,
    *,
    roles: tuple[str, ...] = ("roles/aiplatform.user",),
    wait_seconds: float = 5.0,
) -> tuple[ProjectSetupService, InMemoryProvisioningBackend, SleepRecorder]:
    backend = backend or InMemoryProvisioningBackend()
    sleep = SleepRecorder()
    service = ProjectSetupService(
        backend=backend,
        config=ProvisioningConfig(propagation_wait_seconds=wait_seconds, grantee_roles=roles),
        sleep=sleep,
    )
    return service, backend, sleep


class FakeIam:
    """Records IAM calls made by the service-account workflow; fails the named ones."""

    def __init__(self, *, fail_on=()) -> None:
        self.fail_on = set(fail_on)
        self.calls: list[tuple] = []

    def _record(self, *call) -> None:
        self.calls.append(call)
        if call[0] in self.fail_on:
            raise RuntimeError(f"{call[0]} failed")

    async def create_service_account(self, *, token, project_id, account_id, display_name):
        self._record("create", account_id, display_name)
        return ServiceAccount(
            name=f"projects/{project_id}/serviceAccounts/{account_id}@{project_id}.iam.gserviceaccount.com",
            project_id=project_id,
            email=f"{account_id}@{project_id}.iam.gserviceaccount.com",
            display_name=display_name,
        )

    async def delete_service_account(self, *, token, project_id, email):
        self._record("delete", email)

    async def add_project_binding(self, *, token, project_id, role, member):
        self._record("project_binding", role, member)

    async def add_service_account_binding(self, *, token, project_id, email, role, member):
        self._record("sa_binding", email, role, member)
