from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class GcpProject(BaseModel):
    project_id: str = Field(..., description="Globally unique project id")
    name: str = ""
    project_number: Optional[str] = None
    create_time: Optional[str] = None
    lifecycle_state: Optional[str] = None

    @staticmethod
    def from_api(obj: dict[str, Any]) -> "GcpProject":
        """Build from a Resource Manager v1 project or a v3 create response."""

        return GcpProject(
            project_id=str(obj.get("projectId") or ""),
            name=str(obj.get("name") or obj.get("displayName") or ""),
            project_number=obj.get("projectNumber"),
            create_time=obj.get("createTime"),
            lifecycle_state=obj.get("lifecycleState") or obj.get("state"),
        )


class ProjectListResponse(BaseModel):
    count: int
    projects: list[GcpProject]


class BillingProjectInfo(BaseModel):
    project_id: str
    billing_account_name: Optional[str] = None
    billing_enabled: bool = False

    @staticmethod
    def from_api(obj: dict[str, Any]) -> "BillingProjectInfo":
        project_id = obj.get("projectId")
        if not project_id:
            # "projects/<id>/billingInfo" or "projects/<id>"
            parts = str(obj.get("name") or "").split("/")
            project_id = parts[1] if len(parts) > 1 else ""
        return BillingProjectInfo(
            project_id=str(project_id),
            billing_account_name=obj.get("billingAccountName") or None,
            billing_enabled=bool(obj.get("billingEnabled", False)),
        )
