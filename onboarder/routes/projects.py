from __future__ import annotations

from fastapi import APIRouter, Depends

from onboarder.models.project import ProjectListResponse
from onboarder.models.provisioning import ProvisioningOutcomeResponse, ProvisionProjectRequest
from onboarder.services.dependencies import get_access_token, get_project_setup_service, get_projects_service
from onboarder.services.projects_service import ProjectsService
from onboarder.services.setup import LoggingProgressSink, RecordingProgressSink
from onboarder.services.setup.progress import fan_out
from onboarder.services.setup.project_setup_service import ProjectSetupService, ProvisioningRequest

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    token: str = Depends(get_access_token),
    projects: ProjectsService = Depends(get_projects_service),
) -> ProjectListResponse:
    items = await projects.list_projects(token=token)
    return ProjectListResponse(count=len(items), projects=items)


@router.post("/provision", response_model=ProvisioningOutcomeResponse)
async def provision_project(
    payload: ProvisionProjectRequest,
    token: str = Depends(get_access_token),
    setup: ProjectSetupService = Depends(get_project_setup_service),
) -> ProvisioningOutcomeResponse:
    request = ProvisioningRequest.create(
        resource_id=payload.project_id,
        display_name=payload.display_name,
        parent_account_id=payload.billing_account_name,
        capabilities_to_enable=payload.apis if payload.apis is not None else setup.config.default_apis,
        grantee_identity=payload.grantee,
    )

    recorder = RecordingProgressSink()
    outcome = await setup.provision(
        request,
        token=token,
        progress=fan_out(recorder, LoggingProgressSink(workflow="project-setup")),
    )
    return ProvisioningOutcomeResponse.from_outcome(outcome, events=recorder.events)
