"""Fixtures: an in-process fake of the Google Cloud REST APIs the services call."""

from __future__ import annotations

import copy
import itertools
from typing import Any, Optional

import aiohttp
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from onboarder.services.config import GcpConfig

from support import BROKEN_ACCOUNT, CLOSED_ACCOUNT, NO_PERMISSION_ACCOUNT, OK_ACCOUNT


_PAGE_SIZE = 2


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": {"code": status, "message": message}}, status=status)


class FakeGcp:
    """Resource Manager, Service Usage, Billing and IAM backed by dicts.

    ``failures`` maps ``"METHOD /path"`` to an HTTP status returned instead of the
    normal response. ``requests`` records ``(method, path)`` for every call.
    """

    def __init__(self) -> None:
        self.config: Optional[GcpConfig] = None
        self.requests: list[tuple[str, str]] = []
        self.authorizations: list[Optional[str]] = []
        self.failures: dict[str, int] = {}
        # "METHOD /path" -> (status, raw body) for error bodies that are not JSON
        self.raw_failures: dict[str, tuple[int, bytes]] = {}
        # project id -> google.rpc.Status returned inside a finished create operation
        self.create_errors: dict[str, dict[str, Any]] = {}
        self._numbers = itertools.count(1001)

        self.projects: dict[str, dict[str, Any]] = {}
        for project_id in ("existing-project-1", "existing-project-2", "existing-project-3"):
            self._add_project(project_id, project_id.replace("-", " ").title())
        self.deleted: list[str] = []
        self.enabled_services: dict[str, set[str]] = {}
        self.policies: dict[str, dict[str, Any]] = {}
        self.service_accounts: dict[str, list[dict[str, Any]]] = {}

        self.billing_accounts = [
            {"name": OK_ACCOUNT, "displayName": "Main", "open": True},
            {"name": NO_PERMISSION_ACCOUNT, "displayName": "Read only", "open": True},
            {"name": CLOSED_ACCOUNT, "displayName": "Closed", "open": False},
            {
                "name": BROKEN_ACCOUNT,
                "displayName": "Reseller sub-account",
                "open": True,
                "masterBillingAccount": "billingAccounts/999999-999999-999999",
            },
        ]
        self.granted_accounts = {OK_ACCOUNT, BROKEN_ACCOUNT}
        self.failures[f"POST /v1/{BROKEN_ACCOUNT}:testIamPermissions"] = 500
        self.billing_info: dict[str, dict[str, Any]] = {
            "existing-project-1": {"billingAccountName": OK_ACCOUNT, "billingEnabled": True},
            "existing-project-2": {"billingAccountName": OK_ACCOUNT, "billingEnabled": False},
        }

    def requested(self, method: str, path: str) -> bool:
        return (method, path) in self.requests

    def _add_project(self, project_id: str, display_name: str) -> dict[str, Any]:
        project = {
            "projectId": project_id,
            "name": display_name,
            "projectNumber": str(next(self._numbers)),
            "lifecycleState": "ACTIVE",
            "createTime": "2026-01-01T00:00:00Z",
        }
        self.projects[project_id] = project
        return project

    def make_app(self) -> web.Application:
        fake = self

        @web.middleware
        async def record(request: web.Request, handler):
            fake.requests.append((request.method, request.path))
            fake.authorizations.append(request.headers.get("Authorization"))
            status = fake.failures.get(f"{request.method} {request.path}")
            if status:
                return _error(status, "injected failure")
            raw = fake.raw_failures.get(f"{request.method} {request.path}")
            if raw is not None:
                return web.Response(status=raw[0], body=raw[1], content_type="text/plain")
            return await handler(request)

        app = web.Application(middlewares=[record])
        app.router.add_get("/v1/projects", self.list_projects)
        app.router.add_post("/v3/projects", self.create_project)
        app.router.add_delete("/v1/projects/{project_id}", self.delete_project)
        app.router.add_post("/v3/projects/{target}", self.project_policy)
        app.router.add_post("/v1/projects/{project_id}/services/{target}", self.enable_service)
        app.router.add_get("/v1/projects/{project_id}/services/{target}", self.get_service)
        app.router.add_get("/v1/projects/{project_id}/services", self.list_services)
        app.router.add_get("/v1/billingAccounts", self.list_billing_accounts)
        app.router.add_post("/v1/billingAccounts/{target}", self.test_billing_permissions)
        app.router.add_get("/v1/billingAccounts/{account}/projects", self.list_billing_account_projects)
        app.router.add_put("/v1/projects/{project_id}/billingInfo", self.update_billing_info)
        app.router.add_get("/v1/projects/{project_id}/billingInfo", self.get_billing_info)
        app.router.add_get("/v1/projects/{project_id}/serviceAccounts", self.list_service_accounts)
        app.router.add_post("/v1/projects/{project_id}/serviceAccounts", self.create_service_account)
        app.router.add_delete("/v1/projects/{project_id}/serviceAccounts/{email}", self.delete_service_account)
        app.router.add_post("/v1/projects/{project_id}/serviceAccounts/{target}", self.service_account_policy)
        return app

    # Resource Manager

    async def list_projects(self, request: web.Request) -> web.Response:
        offset = int(request.query.get("pageToken") or 0)
        items = list(self.projects.values())
        page = items[offset : offset + _PAGE_SIZE]
        body: dict[str, Any] = {"projects": page}
        if offset + _PAGE_SIZE < len(items):
            body["nextPageToken"] = str(offset + _PAGE_SIZE)
        return web.json_response(body)

    async def create_project(self, request: web.Request) -> web.Response:
        body = await request.json()
        project_id = body["projectId"]
        if project_id in self.projects or project_id in self.deleted:
            return _error(409, f"Project {project_id} already exists")
        operation_error = self.create_errors.get(project_id)
        if operation_error is not None:
            # The operation finished but the project was never created.
            return web.json_response({"name": "operations/cp.failed", "done": True, "error": operation_error})
        project = self._add_project(project_id, body.get("displayName") or project_id)
        return web.json_response(
            {
                "name": f"operations/cp.{project['projectNumber']}",
                "done": True,
                "response": {
                    "name": f"projects/{project['projectNumber']}",
                    "projectId": project_id,
                    "displayName": project["name"],
                    "state": "ACTIVE",
                    "createTime": project["createTime"],
                },
            }
        )

    async def delete_project(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        if self.projects.pop(project_id, None) is None:
            return _error(404, f"Project {project_id} not found")
        self.deleted.append(project_id)
        return web.json_response({})

    async def project_policy(self, request: web.Request) -> web.Response:
        project_id, _, verb = request.match_info["target"].rpartition(":")
        if project_id not in self.projects:
            return _error(404, f"Project {project_id} not found")
        return await self._policy(request, f"projects/{project_id}", verb)

    async def _policy(self, request: web.Request, resource: str, verb: str) -> web.Response:
        if verb == "getIamPolicy":
            policy = self.policies.get(resource) or {"version": 1, "etag": "BwE=", "bindings": []}
            return web.json_response(copy.deepcopy(policy))
        if verb == "setIamPolicy":
            body = await request.json()
            self.policies[resource] = body["policy"]
            return web.json_response(body["policy"])
        return _error(400, f"Unknown method {verb}")

    # Service Usage

    async def enable_service(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        service, _, verb = request.match_info["target"].rpartition(":")
        if verb != "enable":
            return _error(400, f"Unknown method {verb}")
        self.enabled_services.setdefault(project_id, set()).add(service)
        return web.json_response({"name": f"operations/acf.{service}", "done": True})

    async def get_service(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        service = request.match_info["target"]
        state = "ENABLED" if service in self.enabled_services.get(project_id, set()) else "DISABLED"
        return web.json_response({"name": f"projects/1/services/{service}", "state": state})

    async def list_services(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        services = sorted(self.enabled_services.get(project_id, set()))
        return web.json_response(
            {"services": [{"name": f"projects/1/services/{s}", "state": "ENABLED"} for s in services]}
        )

    # Billing

    async def list_billing_accounts(self, request: web.Request) -> web.Response:
        return web.json_response({"billingAccounts": self.billing_accounts})

    async def test_billing_permissions(self, request: web.Request) -> web.Response:
        account_id, _, verb = request.match_info["target"].rpartition(":")
        if verb != "testIamPermissions":
            return _error(400, f"Unknown method {verb}")
        body = await request.json()
        if f"billingAccounts/{account_id}" not in self.granted_accounts:
            # The real API omits the field when nothing is granted.
            return web.json_response({})
        return web.json_response({"permissions": body.get("permissions") or []})

    async def list_billing_account_projects(self, request: web.Request) -> web.Response:
        account = f"billingAccounts/{request.match_info['account']}"
        infos = [
            {"name": f"projects/{pid}/billingInfo", "projectId": pid, **info}
            for pid, info in self.billing_info.items()
            if info.get("billingAccountName") == account
        ]
        return web.json_response({"projectBillingInfo": infos})

    async def update_billing_info(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        if project_id not in self.projects:
            return _error(404, f"Project {project_id} not found")
        body = await request.json()
        self.billing_info[project_id] = {
            "billingAccountName": body.get("billingAccountName"),
            "billingEnabled": bool(body.get("billingEnabled")),
        }
        return web.json_response({"name": f"projects/{project_id}/billingInfo", **self.billing_info[project_id]})

    async def get_billing_info(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        info = self.billing_info.get(project_id) or {"billingAccountName": "", "billingEnabled": False}
        return web.json_response({"name": f"projects/{project_id}/billingInfo", **info})

    # IAM

    async def list_service_accounts(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        return web.json_response({"accounts": self.service_accounts.get(project_id, [])})

    async def create_service_account(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        body = await request.json()
        email = f"{body['accountId']}@{project_id}.iam.gserviceaccount.com"
        account = {
            "name": f"projects/{project_id}/serviceAccounts/{email}",
            "projectId": project_id,
            "uniqueId": str(next(self._numbers)),
            "email": email,
            "displayName": (body.get("serviceAccount") or {}).get("displayName"),
        }
        self.service_accounts.setdefault(project_id, []).append(account)
        return web.json_response(account)

    async def delete_service_account(self, request: web.Request) -> web.Response:
        project_id = request.match_info["project_id"]
        email = request.match_info["email"]
        accounts = self.service_accounts.get(project_id, [])
        remaining = [a for a in accounts if a["email"] != email]
        if len(remaining) == len(accounts):
            return _error(404, f"Service account {email} not found")
        self.service_accounts[project_id] = remaining
        return web.json_response({})

    async def service_account_policy(self, request: web.Request) -> web.Response:
        email, _, verb = request.match_info["target"].rpartition(":")
        return await self._policy(request, f"serviceAccounts/{email}", verb)


@pytest_asyncio.fixture
async def fake_gcp():
    fake = FakeGcp()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.config = GcpConfig.for_base_url(str(server.make_url("/")), timeout_seconds=5)
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def http_session():
    async with aiohttp.ClientSession() as session:
        yield session
