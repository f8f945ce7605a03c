"""
Registry module: Tracked AI services and their static configuration.

This module contains:
- services.py: Service enum, free-tier rate limits, and per-token pricing

Public API:
- AIService: Enum of tracked AI backends
- ServiceMetadata: Pydantic model for service configuration
- ServiceRegistry: Central registry class
- get_service_registry: Singleton accessor function
"""

from usage_monitor.registry.services import (
    FREE_TIER_PERIOD_DAYS,
    AIService,
    ServiceMetadata,
    ServiceRegistry,
    get_service_registry,
)

__all__ = [
    "FREE_TIER_PERIOD_DAYS",
    "AIService",
    "ServiceMetadata",
    "ServiceRegistry",
    "get_service_registry",
]
