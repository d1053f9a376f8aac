from __future__ import annotations

import aiohttp
from fastapi import FastAPI, HTTPException, Request
from starlette import status

from onboarder.services.billing_service import BillingService
from onboarder.services.config import GcpConfig, ProvisioningConfig, ServiceAccountConfig
from onboarder.services.iam_service import IamService
from onboarder.services.projects_service import ProjectsService
from onboarder.services.service_usage_service import ServiceUsageService
from onboarder.services.setup.gcp_backend import GcpProvisioningBackend
from onboarder.services.setup.project_setup_service import ProjectSetupService
from onboarder.services.setup.service_account_setup_service import ServiceAccountSetupService


def get_http_session_from_app(app: FastAPI) -> aiohttp.ClientSession:
    session = getattr(app.state, "http_session", None)
    if session is None:
        raise RuntimeError("HTTP session not initialized (app.state.http_session)")
    if not isinstance(session, aiohttp.ClientSession):
        raise RuntimeError("Unexpected http_session type")
    return session


def get_http_session(request: Request) -> aiohttp.ClientSession:
    return get_http_session_from_app(request.app)


def get_access_token(request: Request) -> str:
    """Bearer token from the Authorization header. Sign-in happens elsewhere."""

    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def get_projects_service(request: Request) -> ProjectsService:
    return ProjectsService(GcpConfig.from_env(), session=get_http_session(request))


def get_service_usage_service(request: Request) -> ServiceUsageService:
    return ServiceUsageService(GcpConfig.from_env(), session=get_http_session(request))


def get_billing_service(request: Request) -> BillingService:
    return BillingService(GcpConfig.from_env(), session=get_http_session(request))


def get_iam_service(request: Request) -> IamService:
    return IamService(GcpConfig.from_env(), session=get_http_session(request))


def build_project_setup_service(
    session: aiohttp.ClientSession,
    *,
    gcp: GcpConfig,
    provisioning: ProvisioningConfig,
) -> ProjectSetupService:
    """Wire the project workflow to live GCP services (API and CLI share this)."""

    backend = GcpProvisioningBackend(
        projects=ProjectsService(gcp, session=session),
        service_usage=ServiceUsageService(gcp, session=session),
        billing=BillingService(gcp, session=session),
        iam=IamService(gcp, session=session),
    )
    return ProjectSetupService(backend=backend, config=provisioning)


def get_project_setup_service(request: Request) -> ProjectSetupService:
    return build_project_setup_service(
        get_http_session(request),
        gcp=GcpConfig.from_env(),
        provisioning=ProvisioningConfig.from_env(),
    )


def get_service_account_setup_service(request: Request) -> ServiceAccountSetupService:
    return ServiceAccountSetupService(iam=get_iam_service(request), config=ServiceAccountConfig.from_env())
