from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from onboarder.models.billing import BillingAccount
from onboarder.models.project import BillingProjectInfo
from onboarder.services.config import BILLING_LINK_PERMISSION
from onboarder.services.gcp_service import GcpRestClient, GcpServiceError


logger = logging.getLogger(__name__)


class BillingService(GcpRestClient):
    """Cloud Billing API calls."""

    async def list_billing_accounts(self, *, token: str) -> list[BillingAccount]:
        data = await self._request_json(
            method="GET",
            url=f"{self._config.billing_url}/v1/billingAccounts",
            token=token,
            action="list billing accounts",
        )
        return [BillingAccount.from_api(a) for a in data.get("billingAccounts") or []]

    async def test_permissions(self, *, token: str, resource: str, permissions: list[str]) -> list[str]:
        """Return the subset of ``permissions`` the caller holds on ``resource``."""

        data = await self._request_json(
            method="POST",
            url=f"{self._config.billing_url}/v1/{resource}:testIamPermissions",
            token=token,
            body={"permissions": permissions},
            action=f"test permissions on {resource}",
        )
        return [str(p) for p in data.get("permissions") or []]

    async def billing_accounts_with_create_permission(
        self,
        *,
        token: str,
        permission: str = BILLING_LINK_PERMISSION,
    ) -> list[BillingAccount]:
        """Open billing accounts the caller can link projects to.

        A failed permission check for one account drops that account instead of
        failing the whole listing.
        """

        accounts = [a for a in await self.list_billing_accounts(token=token) if a.open]
        if not accounts:
            logger.info("No open billing accounts found")
            return []

        async def _check(account: BillingAccount) -> Optional[BillingAccount]:
            try:
                granted = await self.test_permissions(token=token, resource=account.name, permissions=[permission])
            except GcpServiceError as exc:
                logger.warning("Permission check failed for billing account %s: %s", account.name, exc)
                return None
            return account if permission in granted else None

        checked = await asyncio.gather(*(_check(a) for a in accounts))
        allowed = [a for a in checked if a is not None]
        logger.info("Found %d billing account(s) with %s", len(allowed), permission)
        return allowed

    async def link_project(self, *, token: str, project_id: str, billing_account_name: str) -> dict[str, Any]:
        logger.info("Linking project to billing account (project_id=%s, account=%s)", project_id, billing_account_name)
        return await self._request_json(
            method="PUT",
            url=f"{self._config.billing_url}/v1/projects/{project_id}/billingInfo",
            token=token,
            body={"billingAccountName": billing_account_name, "billingEnabled": True},
            action=f"link billing account {billing_account_name} to {project_id}",
        )

    async def get_project_billing_info(self, *, token: str, project_id: str) -> BillingProjectInfo:
        data = await self._request_json(
            method="GET",
            url=f"{self._config.billing_url}/v1/projects/{project_id}/billingInfo",
            token=token,
            action=f"get billing info for {project_id}",
        )
        return BillingProjectInfo.from_api(data)

    async def list_projects_for_billing_account(
        self, *, token: str, billing_account_name: str
    ) -> list[BillingProjectInfo]:
        data = await self._request_json(
            method="GET",
            url=f"{self._config.billing_url}/v1/{billing_account_name}/projects",
            token=token,
            action=f"list projects for {billing_account_name}",
        )
        return [BillingProjectInfo.from_api(p) for p in data.get("projectBillingInfo") or []]
