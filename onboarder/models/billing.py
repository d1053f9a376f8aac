from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class BillingAccount(BaseModel):
    name: str = Field(..., description="billingAccounts/XXXXXX-XXXXXX-XXXXXX")
    display_name: str = ""
    open: bool = False
    master_billing_account: Optional[str] = None

    @property
    def is_sub_account(self) -> bool:
        return bool(self.master_billing_account)

    @staticmethod
    def from_api(obj: dict[str, Any]) -> "BillingAccount":
        return BillingAccount(
            name=str(obj.get("name") or ""),
            display_name=str(obj.get("displayName") or ""),
            open=bool(obj.get("open", False)),
            master_billing_account=obj.get("masterBillingAccount") or None,
        )


class BillingAccountListResponse(BaseModel):
    count: int
    billing_accounts: list[BillingAccount]
