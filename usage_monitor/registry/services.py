"""
Service Registry

This module defines the AI backends whose telemetry is tracked:
- Groq (fast inference): free tier capped at 30 requests/minute
- Hugging Face (hosted inference): free tier of roughly 1,000 requests/day

Each service entry includes:
- Display name and description
- The vendor rate limit the free tier is derived from
- Per-token pricing (currently zero for every service)

Free-tier limits are derived from the rate limits, extrapolated to a 30-day
month. Changing a vendor's rate limit or price means editing this module;
the aggregation and projection logic never hardcodes either.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


FREE_TIER_PERIOD_DAYS = 30


class AIService(str, Enum):
    """AI backends tracked by the monitor."""

    GROQ = "groq"  # Fast inference
    HUGGINGFACE = "huggingface"  # Hosted inference


class ServiceMetadata(BaseModel):
    """
    Static configuration for a tracked AI backend.

    Exactly one of requests_per_minute / requests_per_day describes the
    free-tier rate limit; the monthly quota is extrapolated from it.
    """

    service: AIService = Field(
        ...,
        description="Service identifier",
    )

    display_name: str = Field(
        ...,
        description="Human-readable service name",
    )

    description: str = Field(
        default="",
        description="What the service is used for",
    )

    requests_per_minute: int | None = Field(
        default=None,
        gt=0,
        description="Free-tier rate limit in requests per minute",
    )

    requests_per_day: int | None = Field(
        default=None,
        gt=0,
        description="Free-tier rate limit in requests per day",
    )

    cost_per_1k_tokens: float = Field(
        default=0.0,
        ge=0,
        description="Cost in USD per 1,000 tokens",
    )

    @model_validator(mode="after")
    def validate_rate_limit(self) -> "ServiceMetadata":
        """Require exactly one rate limit definition."""
        if (self.requests_per_minute is None) == (self.requests_per_day is None):
            raise ValueError(
                "exactly one of requests_per_minute or requests_per_day must be set"
            )
        return self

    @property
    def free_limit(self) -> int:
        """Free-tier request quota over a 30-day month."""
        if self.requests_per_minute is not None:
            return self.requests_per_minute * 60 * 24 * FREE_TIER_PERIOD_DAYS
        return self.requests_per_day * FREE_TIER_PERIOD_DAYS


class ServiceRegistry:
    """
    Central registry of tracked AI backends.

    Attributes:
        _services: Dictionary mapping services to their metadata
    """

    def __init__(self) -> None:
        self._services: dict[AIService, ServiceMetadata] = {}
        self._initialize_services()

    def _initialize_services(self) -> None:
        """Register all tracked services with their metadata."""

        # 30 req/min = 43,200/day = 1,296,000/month
        self._register(
            ServiceMetadata(
                service=AIService.GROQ,
                display_name="Groq",
                description="Fast inference for discovery and classification",
                requests_per_minute=30,
                cost_per_1k_tokens=0.0,
            )
        )

        # Varies by model; 1,000/day = 30,000/month is the conservative figure
        self._register(
            ServiceMetadata(
                service=AIService.HUGGINGFACE,
                display_name="Hugging Face Inference",
                description="Hosted inference for sentiment and content analysis",
                requests_per_day=1000,
                cost_per_1k_tokens=0.0,
            )
        )

    def _register(self, metadata: ServiceMetadata) -> None:
        """Register a service in the registry."""
        self._services[metadata.service] = metadata

    def get_service(self, service: AIService | str) -> ServiceMetadata | None:
        """
        Retrieve service metadata.

        Args:
            service: Service enum member or its string value

        Returns:
            ServiceMetadata if found, None otherwise
        """
        try:
            return self._services.get(AIService(service))
        except ValueError:
            return None

    def list_services(self) -> list[ServiceMetadata]:
        """Return all registered services in registration order."""
        return list(self._services.values())

    def free_limit(self, service: AIService | str) -> int:
        """
        Monthly free-tier request quota for a service.

        Raises:
            KeyError: If the service is not registered
        """
        metadata = self.get_service(service)
        if metadata is None:
            raise KeyError(f"Unknown service: {service}")
        return metadata.free_limit


_registry_instance: ServiceRegistry | None = None


def get_service_registry() -> ServiceRegistry:
    """
    Get the global service registry instance.

    The registry holds static configuration only, so sharing one
    instance across the process is safe.

    Returns:
        The singleton ServiceRegistry instance
    """
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = ServiceRegistry()
    return _registry_instance
