"""Setup (provisioning) services.

This package contains the workflows that *provision* Google Cloud resources for a
user: a billing-linked project with APIs enabled, and a Vertex AI service account.
Both run as a step table with compensating cleanup (see ``saga``).
"""

from onboarder.services.setup.progress import (
    LoggingProgressSink,
    ProgressEvent,
    ProgressSink,
    RecordingProgressSink,
    TqdmProgressSink,
)
from onboarder.services.setup.saga import (
    CleanupFailure,
    PermissionMissingError,
    ProvisioningError,
    ProvisioningOutcome,
    ProvisioningStatus,
    ProvisioningValidationError,
    ResourceUnavailableError,
    StepFailure,
)

__all__ = [
    "CleanupFailure",
    "LoggingProgressSink",
    "PermissionMissingError",
    "ProgressEvent",
    "ProgressSink",
    "ProvisioningError",
    "ProvisioningOutcome",
    "ProvisioningStatus",
    "ProvisioningValidationError",
    "RecordingProgressSink",
    "ResourceUnavailableError",
    "StepFailure",
    "TqdmProgressSink",
]
