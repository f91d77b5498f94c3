"""Dependencies for FastAPI routes."""

from fxrates.services.freshness import FreshnessPolicy
from fxrates.services.rate_providers import RateProvider, get_rate_provider


def get_freshness_policy() -> FreshnessPolicy:
    """Freshness policy built from settings, overridable in tests."""
    return FreshnessPolicy.from_settings()


def get_provider() -> RateProvider:
    """Rate provider named by the RATE_PROVIDER setting."""
    return get_rate_provider()
