from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Callable, Optional, Protocol

from onboarder.models.iam import ServiceAccount
from onboarder.services.config import SERVICE_ACCOUNT_USER_ROLE, VERTEX_AI_USER_ROLE, ServiceAccountConfig
from onboarder.services.setup.progress import ProgressSink
from onboarder.services.setup.project_setup_service import validate_project_id
from onboarder.services.setup.saga import (
    ProvisioningOutcome,
    ProvisioningValidationError,
    SagaExecutor,
    Step,
    WorkflowState,
)


logger = logging.getLogger(__name__)

CREATE_SERVICE_ACCOUNT = "create_service_account"
GRANT_VERTEX_ROLE = "grant_vertex_role"
GRANT_SERVICE_ACCOUNT_USER = "grant_service_account_user"

SERVICE_ACCOUNT_STEPS: tuple[str, ...] = (
    CREATE_SERVICE_ACCOUNT,
    GRANT_VERTEX_ROLE,
    GRANT_SERVICE_ACCOUNT_USER,
)

_MAX_ACCOUNT_ID_LENGTH = 30


class ServiceAccountBackend(Protocol):
    """The subset of ``IamService`` the service-account workflow needs."""

    async def create_service_account(
        self, *, token: str, project_id: str, account_id: str, display_name: str
    ) -> ServiceAccount:
        ...

    async def delete_service_account(self, *, token: str, project_id: str, email: str) -> None:
        ...

    async def add_project_binding(self, *, token: str, project_id: str, role: str, member: str) -> None:
        ...

    async def add_service_account_binding(
        self, *, token: str, project_id: str, email: str, role: str, member: str
    ) -> None:
        ...


def generate_account_id(prefix: str) -> str:
    """``<prefix>-<last 6 digits of epoch ms>-<3 random chars>``, capped at 30 characters."""

    stamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(3))
    return f"{prefix}-{stamp}-{suffix}"[:_MAX_ACCOUNT_ID_LENGTH].rstrip("-")


class ServiceAccountSetupService:
    def __init__(
        self,
        *,
        iam: ServiceAccountBackend,
        config: ServiceAccountConfig,
        account_id_factory: Callable[[str], str] = generate_account_id,
    ) -> None:
        self._iam = iam
        self._config = config
        self._account_id_factory = account_id_factory

    def display_name_for(self, user_email: str) -> str:
        username = user_email.split("@", 1)[0]
        return f"{self._config.display_name} ({username})" if username else self._config.display_name

    async def create_vertex_service_account(
        self,
        *,
        token: str,
        project_id: str,
        user_email: str,
        progress: Optional[ProgressSink] = None,
    ) -> ProvisioningOutcome:
        """Create a service account usable for Vertex AI and let ``user_email`` act as it."""

        validate_project_id(project_id)
        if not user_email or "@" not in user_email:
            raise ProvisioningValidationError("A user email is required to grant service account access")
        if not token:
            raise ProvisioningValidationError("An access token is required to create a service account")

        account_id = self._account_id_factory(self._config.account_id_prefix)
        display_name = self.display_name_for(user_email)
        iam = self._iam

        async def create_account(state: WorkflowState) -> None:
            account = await iam.create_service_account(
                token=token, project_id=project_id, account_id=account_id, display_name=display_name
            )
            state.resource = account
            state.resource_id = account.email

        async def delete_account(state: WorkflowState) -> None:
            await iam.delete_service_account(token=token, project_id=project_id, email=state.resource.email)

        async def grant_vertex_role(state: WorkflowState) -> None:
            await iam.add_project_binding(
                token=token, project_id=project_id, role=VERTEX_AI_USER_ROLE, member=state.resource.member
            )

        async def grant_service_account_user(state: WorkflowState) -> None:
            await iam.add_service_account_binding(
                token=token,
                project_id=project_id,
                email=state.resource.email,
                role=SERVICE_ACCOUNT_USER_ROLE,
                member=f"user:{user_email}",
            )

        steps = (
            Step(
                CREATE_SERVICE_ACCOUNT,
                create_account,
                compensation=delete_account,
                compensation_name="delete_service_account",
                creates_resource=True,
            ),
            Step(GRANT_VERTEX_ROLE, grant_vertex_role),
            Step(GRANT_SERVICE_ACCOUNT_USER, grant_service_account_user),
        )

        logger.info("Creating Vertex AI service account %s in %s", account_id, project_id)
        return await SagaExecutor(workflow="service-account-setup").run(
            steps,
            state=WorkflowState(resource_id=account_id),
            progress=progress,
        )
