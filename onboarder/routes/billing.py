from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from onboarder.models.billing import BillingAccountListResponse
from onboarder.models.project import BillingProjectInfo
from onboarder.services.billing_service import BillingService
from onboarder.services.dependencies import get_access_token, get_billing_service

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/accounts", response_model=BillingAccountListResponse)
async def list_linkable_billing_accounts(
    token: str = Depends(get_access_token),
    billing: BillingService = Depends(get_billing_service),
) -> BillingAccountListResponse:
    accounts = await billing.billing_accounts_with_create_permission(token=token)
    return BillingAccountListResponse(count=len(accounts), billing_accounts=accounts)


@router.get("/accounts/{account_id}/projects", response_model=list[BillingProjectInfo])
async def list_billing_account_projects(
    account_id: str = Path(..., description="Billing account id, XXXXXX-XXXXXX-XXXXXX"),
    token: str = Depends(get_access_token),
    billing: BillingService = Depends(get_billing_service),
) -> list[BillingProjectInfo]:
    projects = await billing.list_projects_for_billing_account(
        token=token, billing_account_name=f"billingAccounts/{account_id}"
    )
    return [p for p in projects if p.billing_enabled]
