from contextlib import asynccontextmanager
from http import HTTPStatus
import logging

import aiohttp
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from onboarder.routes.billing import router as billing_router
from onboarder.routes.projects import router as projects_router
from onboarder.routes.service_accounts import router as service_accounts_router
from onboarder.services.gcp_service import GcpServiceError
from onboarder.services.setup import ProvisioningValidationError


def _ensure_logging() -> None:
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    else:
        root.setLevel(logging.INFO)
        for handler in root.handlers:
            handler.setFormatter(formatter)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_logging()
    async with aiohttp.ClientSession() as session:
        app.state.http_session = session
        yield
    app.state.http_session = None


app = FastAPI(lifespan=lifespan)

app.include_router(projects_router)
app.include_router(service_accounts_router)
app.include_router(billing_router)


@app.exception_handler(GcpServiceError)
async def gcp_service_error_handler(request: Request, exc: GcpServiceError) -> JSONResponse:
    """Map Google Cloud service-layer failures to a consistent HTTP response.

    Returns:
        502 Bad Gateway with a JSON body: {"detail": "..."}
    """
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(ProvisioningValidationError)
async def provisioning_validation_error_handler(request: Request, exc: ProvisioningValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.get("/")
async def root():
    return {"message": "GCP onboarder is running."}
