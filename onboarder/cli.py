"""Typer command line for operators: provision a project and inspect accounts.

The access token is obtained elsewhere (e.g. ``gcloud auth print-access-token``)
and passed with ``--token`` or ``GCP_ACCESS_TOKEN``.
"""

from __future__ import annotations

import asyncio
import logging
from enum import IntEnum
from typing import Optional

import aiohttp
import typer

from onboarder.services.billing_service import BillingService
from onboarder.services.config import GcpConfig, ProvisioningConfig
from onboarder.services.dependencies import build_project_setup_service
from onboarder.services.gcp_service import GcpServiceError
from onboarder.services.projects_service import ProjectsService
from onboarder.services.setup import ProvisioningOutcome, ProvisioningValidationError, TqdmProgressSink
from onboarder.services.setup.project_setup_service import ProvisioningRequest


class ExitCode(IntEnum):
    OK = 0
    FAILED = 1
    VALIDATION = 2


app = typer.Typer(help="Google Cloud onboarding: projects, billing and service accounts.")

TOKEN_OPTION = typer.Option(
    ...,
    "--token",
    envvar="GCP_ACCESS_TOKEN",
    help="OAuth access token with cloud-platform and cloud-billing scopes.",
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every remote call.")) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@app.command()
def provision(
    project_id: str = typer.Argument(..., help="New project id."),
    name: str = typer.Option(..., "--name", help="Project display name."),
    billing_account: str = typer.Option(..., "--billing-account", help="billingAccounts/XXXXXX-XXXXXX-XXXXXX"),
    grantee: str = typer.Option(..., "--grantee", help="IAM member to receive roles, e.g. user:me@example.com"),
    api: Optional[list[str]] = typer.Option(None, "--api", help="API to enable (repeatable)."),
    wait_visible: bool = typer.Option(False, "--wait-visible", help="Wait until the project shows up in listings."),
    token: str = TOKEN_OPTION,
) -> None:
    """Create a project, enable APIs, link billing and grant roles (rolled back on failure)."""

    provisioning = ProvisioningConfig.from_env()
    try:
        request = ProvisioningRequest.create(
            resource_id=project_id,
            display_name=name,
            parent_account_id=billing_account,
            capabilities_to_enable=api or provisioning.default_apis,
            grantee_identity=grantee,
        )
    except ProvisioningValidationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=ExitCode.VALIDATION)

    outcome = asyncio.run(
        _provision(request, token=token, gcp=GcpConfig.from_env(), provisioning=provisioning, wait_visible=wait_visible)
    )

    typer.echo(f"{outcome.status.value}: {outcome.resource_id}")
    typer.echo(f"completed steps: {', '.join(outcome.completed_steps) or '-'}")
    if outcome.error is not None:
        typer.echo(f"error: {outcome.error_message}", err=True)
    if outcome.requires_manual_intervention:
        typer.echo(f"Project {outcome.resource_id} could not be deleted; remove it manually.", err=True)

    if isinstance(outcome.error, ProvisioningValidationError):
        raise typer.Exit(code=ExitCode.VALIDATION)
    raise typer.Exit(code=ExitCode.OK if outcome.succeeded else ExitCode.FAILED)


async def _provision(
    request: ProvisioningRequest,
    *,
    token: str,
    gcp: GcpConfig,
    provisioning: ProvisioningConfig,
    wait_visible: bool,
) -> ProvisioningOutcome:
    bar = TqdmProgressSink(desc=f"Provisioning {request.resource_id}")
    async with aiohttp.ClientSession() as session:
        setup = build_project_setup_service(session, gcp=gcp, provisioning=provisioning)
        completed: Optional[int] = None
        try:
            outcome = await setup.provision(request, token=token, progress=bar)
            completed = len(outcome.completed_steps)
        finally:
            bar.finish(completed=completed)

        if wait_visible and outcome.succeeded:
            try:
                await ProjectsService(gcp, session=session).wait_until_visible(
                    token=token,
                    project_id=request.resource_id,
                    timeout_seconds=provisioning.visibility_timeout_seconds,
                    poll_interval_seconds=provisioning.visibility_poll_seconds,
                )
            except GcpServiceError as exc:
                typer.echo(f"warning: {exc}", err=True)
    return outcome


@app.command("billing-accounts")
def billing_accounts(token: str = TOKEN_OPTION) -> None:
    """List open billing accounts you can link projects to."""

    async def _list():
        async with aiohttp.ClientSession() as session:
            return await BillingService(GcpConfig.from_env(), session=session).billing_accounts_with_create_permission(
                token=token
            )

    try:
        accounts = asyncio.run(_list())
    except GcpServiceError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=ExitCode.FAILED)

    if not accounts:
        typer.echo("No billing accounts found with billing.resourceAssociations.create.")
    for account in accounts:
        suffix = " (sub-account)" if account.is_sub_account else ""
        typer.echo(f"{account.name}\t{account.display_name}{suffix}")


@app.command()
def projects(token: str = TOKEN_OPTION) -> None:
    """List projects visible to the token."""

    async def _list():
        async with aiohttp.ClientSession() as session:
            return await ProjectsService(GcpConfig.from_env(), session=session).list_projects(token=token)

    try:
        items = asyncio.run(_list())
    except GcpServiceError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=ExitCode.FAILED)

    for project in items:
        typer.echo(f"{project.project_id}\t{project.name}\t{project.lifecycle_state or ''}")


if __name__ == "__main__":
    app()
