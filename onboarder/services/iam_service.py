from __future__ import annotations

import logging
from typing import Any

from onboarder.models.iam import ServiceAccount
from onboarder.services.gcp_service import GcpRestClient


logger = logging.getLogger(__name__)

Policy = dict[str, Any]


class IamService(GcpRestClient):
    """IAM policies and service accounts.

    Role grants are read-modify-write on the resource policy: fetch the policy, add
    the member to the role's binding (creating the binding if needed) and write it
    back with ``updateMask=bindings``. The policy etag makes a concurrent edit fail
    instead of being overwritten.
    """

    def _project_url(self, project_id: str) -> str:
        return f"{self._config.resource_manager_url}/v3/projects/{project_id}"

    def _service_account_url(self, project_id: str, email: str) -> str:
        return f"{self._config.iam_url}/v1/projects/{project_id}/serviceAccounts/{email}"

    async def get_project_policy(self, *, token: str, project_id: str) -> Policy:
        return await self._request_json(
            method="POST",
            url=f"{self._project_url(project_id)}:getIamPolicy",
            token=token,
            body={"options": {"requestedPolicyVersion": 3}},
            action=f"get IAM policy for {project_id}",
        )

    async def set_project_policy(self, *, token: str, project_id: str, policy: Policy) -> Policy:
        return await self._request_json(
            method="POST",
            url=f"{self._project_url(project_id)}:setIamPolicy",
            token=token,
            body={"policy": policy, "updateMask": "bindings"},
            action=f"set IAM policy for {project_id}",
        )

    async def add_project_binding(self, *, token: str, project_id: str, role: str, member: str) -> None:
        policy = await self.get_project_policy(token=token, project_id=project_id)
        if not add_member(policy, role=role, member=member):
            logger.info("Member already bound (project_id=%s, role=%s)", project_id, role)
            return
        logger.info("Granting role on project (project_id=%s, role=%s, member=%s)", project_id, role, member)
        await self.set_project_policy(token=token, project_id=project_id, policy=policy)

    async def list_service_accounts(self, *, token: str, project_id: str) -> list[ServiceAccount]:
        data = await self._request_json(
            method="GET",
            url=f"{self._config.iam_url}/v1/projects/{project_id}/serviceAccounts",
            token=token,
            action=f"list service accounts for {project_id}",
        )
        return [ServiceAccount.from_api(a) for a in data.get("accounts") or []]

    async def create_service_account(
        self, *, token: str, project_id: str, account_id: str, display_name: str
    ) -> ServiceAccount:
        logger.info("Creating service account (project_id=%s, account_id=%s)", project_id, account_id)
        data = await self._request_json(
            method="POST",
            url=f"{self._config.iam_url}/v1/projects/{project_id}/serviceAccounts",
            token=token,
            body={"accountId": account_id, "serviceAccount": {"displayName": display_name}},
            action=f"create service account {account_id}",
        )
        return ServiceAccount.from_api(data)

    async def delete_service_account(self, *, token: str, project_id: str, email: str) -> None:
        logger.info("Deleting service account (project_id=%s, email=%s)", project_id, email)
        await self._request_json(
            method="DELETE",
            url=self._service_account_url(project_id, email),
            token=token,
            action=f"delete service account {email}",
        )

    async def add_service_account_binding(
        self, *, token: str, project_id: str, email: str, role: str, member: str
    ) -> None:
        url = self._service_account_url(project_id, email)
        policy = await self._request_json(
            method="POST",
            url=f"{url}:getIamPolicy",
            token=token,
            body={"options": {"requestedPolicyVersion": 3}},
            action=f"get IAM policy for {email}",
        )
        if not add_member(policy, role=role, member=member):
            return
        logger.info("Granting role on service account (email=%s, role=%s, member=%s)", email, role, member)
        await self._request_json(
            method="POST",
            url=f"{url}:setIamPolicy",
            token=token,
            body={"policy": policy, "updateMask": "bindings"},
            action=f"set IAM policy for {email}",
        )

    async def list_service_accounts_with_role(self, *, token: str, project_id: str, role: str) -> list[ServiceAccount]:
        """Enabled service accounts in the project that hold ``role`` on the project."""

        policy = await self.get_project_policy(token=token, project_id=project_id)
        emails = {
            member.split(":", 1)[1]
            for member in members_for_role(policy, role)
            if member.startswith("serviceAccount:")
        }
        if not emails:
            return []

        accounts = await self.list_service_accounts(token=token, project_id=project_id)
        return [a for a in accounts if a.email in emails and not a.disabled]


def members_for_role(policy: Policy, role: str) -> list[str]:
    members: list[str] = []
    for binding in policy.get("bindings") or []:
        if binding.get("role") == role:
            members.extend(binding.get("members") or [])
    return members


def add_member(policy: Policy, *, role: str, member: str) -> bool:
    """Add ``member`` to the unconditional binding for ``role``. Returns False if already present."""

    bindings: list[dict[str, Any]] = policy.setdefault("bindings", [])
    for binding in bindings:
        if binding.get("role") != role or binding.get("condition"):
            continue
        members: list[str] = binding.setdefault("members", [])
        if member in members:
            return False
        members.append(member)
        return True

    bindings.append({"role": role, "members": [member]})
    return True
