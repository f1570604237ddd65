"""Deployment platform clients exposed through the ``DeploymentProvider`` capability."""

from typing import Dict, Type

import httpx

from .base import DeploymentProvider, DeploymentRecord, DeploymentStatus, TargetSummary
from .render import RenderProvider
from .vercel import VercelProvider

PROVIDER_TYPES: Dict[str, Type[DeploymentProvider]] = {
    VercelProvider.platform: VercelProvider,
    RenderProvider.platform: RenderProvider,
}


def default_providers(transport: httpx.BaseTransport | None = None) -> Dict[str, DeploymentProvider]:
    """Instantiate one client per registered platform."""

    return {platform: provider_type(transport=transport) for platform, provider_type in PROVIDER_TYPES.items()}


__all__ = [
    "DeploymentProvider",
    "DeploymentRecord",
    "DeploymentStatus",
    "PROVIDER_TYPES",
    "RenderProvider",
    "TargetSummary",
    "VercelProvider",
    "default_providers",
]
