from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol

from onboarder.models.project import GcpProject
from onboarder.services.config import ProvisioningConfig
from onboarder.services.setup.progress import ProgressSink
from onboarder.services.setup.saga import (
    PermissionMissingError,
    ProvisioningOutcome,
    ProvisioningValidationError,
    ResourceUnavailableError,
    SagaExecutor,
    Step,
    WorkflowState,
)


logger = logging.getLogger(__name__)

CHECK_AVAILABILITY = "check_availability"
CREATE_PROJECT = "create_project"
PROPAGATION_WAIT = "propagation_wait"
ENABLE_APIS = "enable_apis"
VERIFY_BILLING_PERMISSION = "verify_billing_permission"
LINK_BILLING = "link_billing"
GRANT_ROLES = "grant_roles"

PROJECT_STEPS: tuple[str, ...] = (
    CHECK_AVAILABILITY,
    CREATE_PROJECT,
    PROPAGATION_WAIT,
    ENABLE_APIS,
    VERIFY_BILLING_PERMISSION,
    LINK_BILLING,
    GRANT_ROLES,
)

PROJECT_ID_RE = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")
DISPLAY_NAME_RE = re.compile(r"^[A-Za-z0-9 '\"!-]{4,30}$")
BILLING_ACCOUNT_RE = re.compile(r"^billingAccounts/[0-9A-Fa-f]{6}-[0-9A-Fa-f]{6}-[0-9A-Fa-f]{6}$")
MEMBER_RE = re.compile(r"^(user|serviceAccount|group|domain):\S+$")


def validate_project_id(project_id: str) -> None:
    if not PROJECT_ID_RE.match(project_id or ""):
        raise ProvisioningValidationError(
            f"Invalid project id {project_id!r}: 6-30 lowercase letters, digits or hyphens, "
            "starting with a letter and not ending with a hyphen"
        )


@dataclass(frozen=True)
class ProvisioningRequest:
    resource_id: str
    display_name: str
    parent_account_id: str
    capabilities_to_enable: tuple[str, ...]
    grantee_identity: str

    @staticmethod
    def create(
        *,
        resource_id: str,
        display_name: str,
        parent_account_id: str,
        capabilities_to_enable: Iterable[str],
        grantee_identity: str,
    ) -> "ProvisioningRequest":
        """Build and validate a request from user input."""

        request = ProvisioningRequest(
            resource_id=resource_id.strip(),
            display_name=display_name.strip(),
            parent_account_id=parent_account_id.strip(),
            capabilities_to_enable=tuple(c.strip() for c in capabilities_to_enable),
            grantee_identity=grantee_identity.strip(),
        )
        request.validate()
        return request

    def validate(self) -> None:
        validate_project_id(self.resource_id)

        problems: list[str] = []
        if not DISPLAY_NAME_RE.match(self.display_name or ""):
            problems.append(
                f"display name {self.display_name!r} must be 4-30 letters, digits, spaces, quotes, "
                "hyphens or exclamation points"
            )
        if not BILLING_ACCOUNT_RE.match(self.parent_account_id or ""):
            problems.append(
                f"billing account {self.parent_account_id!r} must look like billingAccounts/XXXXXX-XXXXXX-XXXXXX"
            )
        if any(not c or any(ch.isspace() for ch in c) for c in self.capabilities_to_enable):
            problems.append("capability identifiers must be non-blank and contain no whitespace")
        if len(set(self.capabilities_to_enable)) != len(self.capabilities_to_enable):
            problems.append("capability identifiers must not repeat")
        if not MEMBER_RE.match(self.grantee_identity or ""):
            problems.append(
                f"grantee {self.grantee_identity!r} must be an IAM member such as user:alice@example.com"
            )

        if problems:
            raise ProvisioningValidationError(f"Invalid provisioning request: {'; '.join(problems)}")


# ── Remote operations ────────────────────────────────────────────────


class ProvisioningBackend(Protocol):
    """Remote operations the project workflow depends on."""

    async def check_availability(self, *, token: str, resource_id: str) -> bool:
        ...

    async def create_resource(self, *, token: str, resource_id: str, display_name: str) -> Any:
        ...

    async def enable_capability(self, *, token: str, resource_id: str, capability: str) -> None:
        ...

    async def check_permission(self, *, token: str, permission: str, target: str) -> bool:
        ...

    async def link_resource(self, *, token: str, resource_id: str, parent_account_id: str) -> None:
        ...

    async def grant_role(self, *, token: str, resource_id: str, identity: str, role: str) -> None:
        ...

    async def delete_resource(self, *, token: str, resource_id: str) -> None:
        ...


# ── In-memory implementation (testing) ───────────────────────────────


class InMemoryProvisioningBackend:
    """Test backend that records calls and fails on request.

    ``fail_on`` maps an operation name to the call argument that should fail, or to
    ``True`` to fail every call, e.g. ``{"enable_capability": "b.googleapis.com"}``.
    """

    def __init__(
        self,
        *,
        existing: Iterable[str] = (),
        fail_on: Optional[dict[str, Any]] = None,
        granted_permissions: Optional[Iterable[str]] = None,
    ) -> None:
        self.existing = set(existing)
        self.fail_on = dict(fail_on or {})
        self.granted_permissions = None if granted_permissions is None else set(granted_permissions)
        self.calls: list[tuple[str, str]] = []

    def _record(self, operation: str, arg: str) -> None:
        self.calls.append((operation, arg))
        target = self.fail_on.get(operation)
        if target is True or (target is not None and target == arg):
            raise RuntimeError(f"{operation} failed for {arg}")

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    async def check_availability(self, *, token: str, resource_id: str) -> bool:
        self._record("check_availability", resource_id)
        return resource_id not in self.existing

    async def create_resource(self, *, token: str, resource_id: str, display_name: str) -> GcpProject:
        self._record("create_resource", resource_id)
        self.existing.add(resource_id)
        return GcpProject(project_id=resource_id, name=display_name, lifecycle_state="ACTIVE")

    async def enable_capability(self, *, token: str, resource_id: str, capability: str) -> None:
        self._record("enable_capability", capability)

    async def check_permission(self, *, token: str, permission: str, target: str) -> bool:
        self._record("check_permission", permission)
        return self.granted_permissions is None or permission in self.granted_permissions

    async def link_resource(self, *, token: str, resource_id: str, parent_account_id: str) -> None:
        self._record("link_resource", parent_account_id)

    async def grant_role(self, *, token: str, resource_id: str, identity: str, role: str) -> None:
        self._record("grant_role", role)

    async def delete_resource(self, *, token: str, resource_id: str) -> None:
        self._record("delete_resource", resource_id)
        self.existing.discard(resource_id)


# ── Orchestrator ─────────────────────────────────────────────────────


class ProjectSetupService:
    """Creates a billing-linked project with APIs enabled and roles granted.

    Every step after ``create_project`` is covered by the ``delete_project``
    compensation, so a run either completes or leaves nothing behind (or says,
    via ``CleanupFailure``, that it could not).
    """

    def __init__(
        self,
        *,
        backend: ProvisioningBackend,
        config: ProvisioningConfig,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> ProvisioningConfig:
        return self._config

    async def provision(
        self,
        request: ProvisioningRequest,
        *,
        token: str,
        progress: Optional[ProgressSink] = None,
    ) -> ProvisioningOutcome:
        request.validate()
        if not token:
            raise ProvisioningValidationError("An access token is required to provision a project")

        logger.info(
            "Provisioning project %s (billing=%s, apis=%d, grantee=%s)",
            request.resource_id,
            request.parent_account_id,
            len(request.capabilities_to_enable),
            request.grantee_identity,
        )
        state = WorkflowState(resource_id=request.resource_id)
        outcome = await SagaExecutor(workflow="project-setup").run(
            self._steps(request, token=token),
            state=state,
            progress=progress,
        )
        logger.info(
            "Provisioning of %s finished: %s (%d/%d steps)",
            request.resource_id,
            outcome.status.value,
            len(outcome.completed_steps),
            len(PROJECT_STEPS),
        )
        return outcome

    def _steps(self, request: ProvisioningRequest, *, token: str) -> tuple[Step, ...]:
        backend = self._backend
        project_id = request.resource_id

        async def check_availability(state: WorkflowState) -> None:
            if not await backend.check_availability(token=token, resource_id=project_id):
                raise ResourceUnavailableError(project_id)

        async def create_project(state: WorkflowState) -> None:
            state.resource = await backend.create_resource(
                token=token, resource_id=project_id, display_name=request.display_name
            )

        async def delete_project(state: WorkflowState) -> None:
            await backend.delete_resource(token=token, resource_id=project_id)

        async def propagation_wait(state: WorkflowState) -> None:
            await self._sleep(self._config.propagation_wait_seconds)

        async def enable_apis(state: WorkflowState) -> None:
            for capability in request.capabilities_to_enable:
                await backend.enable_capability(token=token, resource_id=project_id, capability=capability)

        async def verify_billing_permission(state: WorkflowState) -> None:
            permission = self._config.billing_permission
            target = request.parent_account_id
            if not await backend.check_permission(token=token, permission=permission, target=target):
                raise PermissionMissingError(permission, target)

        async def link_billing(state: WorkflowState) -> None:
            await backend.link_resource(
                token=token, resource_id=project_id, parent_account_id=request.parent_account_id
            )

        async def grant_roles(state: WorkflowState) -> None:
            for role in self._config.grantee_roles:
                await backend.grant_role(
                    token=token, resource_id=project_id, identity=request.grantee_identity, role=role
                )

        return (
            Step(CHECK_AVAILABILITY, check_availability),
            Step(
                CREATE_PROJECT,
                create_project,
                compensation=delete_project,
                compensation_name="delete_project",
                creates_resource=True,
            ),
            Step(PROPAGATION_WAIT, propagation_wait),
            Step(ENABLE_APIS, enable_apis),
            Step(VERIFY_BILLING_PERMISSION, verify_billing_permission),
            Step(LINK_BILLING, link_billing),
            Step(GRANT_ROLES, grant_roles),
        )
