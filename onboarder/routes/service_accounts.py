from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from onboarder.models.iam import ServiceAccountListResponse
from onboarder.models.provisioning import CreateServiceAccountRequest, ProvisioningOutcomeResponse
from onboarder.services.config import VERTEX_AI_USER_ROLE
from onboarder.services.dependencies import (
    get_access_token,
    get_iam_service,
    get_service_account_setup_service,
)
from onboarder.services.iam_service import IamService
from onboarder.services.setup import RecordingProgressSink
from onboarder.services.setup.service_account_setup_service import ServiceAccountSetupService

router = APIRouter(prefix="/projects/{project_id}/service-accounts", tags=["service-accounts"])


@router.get("", response_model=ServiceAccountListResponse)
async def list_vertex_service_accounts(
    project_id: str = Path(..., description="GCP project id"),
    token: str = Depends(get_access_token),
    iam: IamService = Depends(get_iam_service),
) -> ServiceAccountListResponse:
    accounts = await iam.list_service_accounts_with_role(token=token, project_id=project_id, role=VERTEX_AI_USER_ROLE)
    return ServiceAccountListResponse(count=len(accounts), service_accounts=accounts)


@router.post("", response_model=ProvisioningOutcomeResponse)
async def create_vertex_service_account(
    payload: CreateServiceAccountRequest,
    project_id: str = Path(..., description="GCP project id"),
    token: str = Depends(get_access_token),
    setup: ServiceAccountSetupService = Depends(get_service_account_setup_service),
) -> ProvisioningOutcomeResponse:
    recorder = RecordingProgressSink()
    outcome = await setup.create_vertex_service_account(
        token=token,
        project_id=project_id,
        user_email=payload.user_email,
        progress=recorder,
    )
    return ProvisioningOutcomeResponse.from_outcome(outcome, events=recorder.events)
