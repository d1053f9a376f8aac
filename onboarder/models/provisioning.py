from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from onboarder.services.setup import ProgressEvent, ProvisioningOutcome


class ProvisionProjectRequest(BaseModel):
    project_id: str = Field(..., description="New project id (6-30 chars)")
    display_name: str
    billing_account_name: str = Field(..., description="billingAccounts/XXXXXX-XXXXXX-XXXXXX")
    grantee: str = Field(..., description="IAM member receiving project roles, e.g. user:alice@example.com")
    apis: Optional[list[str]] = Field(default=None, description="APIs to enable; defaults to the essential set")


class CreateServiceAccountRequest(BaseModel):
    user_email: str


class ProgressEventModel(BaseModel):
    step_name: str
    step_index: int
    total_steps: int
    percent: int

    @staticmethod
    def from_event(event: ProgressEvent) -> "ProgressEventModel":
        return ProgressEventModel(
            step_name=event.step_name,
            step_index=event.step_index,
            total_steps=event.total_steps,
            percent=event.percent,
        )


class ProvisioningOutcomeResponse(BaseModel):
    status: str
    resource_id: str
    completed_steps: list[str]
    error: Optional[str] = None
    manual_intervention_required: bool = False
    progress: list[ProgressEventModel] = Field(default_factory=list)

    @staticmethod
    def from_outcome(
        outcome: ProvisioningOutcome, *, events: Optional[list[ProgressEvent]] = None
    ) -> "ProvisioningOutcomeResponse":
        return ProvisioningOutcomeResponse(
            status=outcome.status.value,
            resource_id=outcome.resource_id,
            completed_steps=list(outcome.completed_steps),
            error=outcome.error_message,
            manual_intervention_required=outcome.requires_manual_intervention,
            progress=[ProgressEventModel.from_event(e) for e in events or []],
        )
