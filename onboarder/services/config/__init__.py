"""Configuration package (Facade).

Re-exports the public config types so the rest of the codebase imports from a
single, stable path:

	from onboarder.services.config import GcpConfig, ProvisioningConfig
"""

from onboarder.services.config.gcp_config import GcpConfig
from onboarder.services.config.provisioning_config import (
	BILLING_LINK_PERMISSION,
	ESSENTIAL_APIS,
	SERVICE_ACCOUNT_USER_ROLE,
	VERTEX_AI_USER_ROLE,
	ProvisioningConfig,
	ServiceAccountConfig,
)

__all__ = [
	"BILLING_LINK_PERMISSION",
	"ESSENTIAL_APIS",
	"GcpConfig",
	"ProvisioningConfig",
	"SERVICE_ACCOUNT_USER_ROLE",
	"ServiceAccountConfig",
	"VERTEX_AI_USER_ROLE",
]
