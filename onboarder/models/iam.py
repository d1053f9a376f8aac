from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ServiceAccount(BaseModel):
    name: str = ""
    project_id: str = ""
    unique_id: str = ""
    email: str
    display_name: Optional[str] = None
    disabled: bool = False

    @property
    def member(self) -> str:
        return f"serviceAccount:{self.email}"

    @staticmethod
    def from_api(obj: dict[str, Any]) -> "ServiceAccount":
        return ServiceAccount(
            name=str(obj.get("name") or ""),
            project_id=str(obj.get("projectId") or ""),
            unique_id=str(obj.get("uniqueId") or ""),
            email=str(obj.get("email") or ""),
            display_name=obj.get("displayName"),
            disabled=bool(obj.get("disabled", False)),
        )


class ServiceAccountListResponse(BaseModel):
    count: int
    service_accounts: list[ServiceAccount]
