"""Factory for creating route providers and the aggregator from settings."""

import logging
from typing import Optional

from crosspay.config import Settings, get_settings
from crosspay.routing.across import AcrossProvider
from crosspay.routing.aggregator import RouteAggregator
from crosspay.routing.base import ProviderId, RouteProvider
from crosspay.routing.lifi import LiFiProvider
from crosspay.routing.oneinch import OneInchProvider
from crosspay.routing.socket_tech import SocketProvider
from crosspay.routing.squid import SquidProvider

logger = logging.getLogger(__name__)


def create_provider(
    provider_id: ProviderId, settings: Optional[Settings] = None
) -> RouteProvider:
    """Create one provider configured from settings."""
    settings = settings or get_settings()
    timeout = settings.quote_timeout_seconds

    if provider_id == ProviderId.SQUID:
        return SquidProvider(
            integrator_id=settings.squid_integrator_id,
            testnet=settings.testnet,
            slippage=settings.default_slippage,
            timeout=timeout,
        )
    elif provider_id == ProviderId.LIFI:
        return LiFiProvider(
            api_key=settings.lifi_api_key,
            integrator=settings.lifi_integrator,
            slippage=settings.default_slippage,
            max_routes=settings.max_routes_per_provider,
            timeout=timeout,
        )
    elif provider_id == ProviderId.ACROSS:
        return AcrossProvider(
            integrator_id=settings.across_integrator_id,
            testnet=settings.testnet,
            slippage=settings.default_slippage,
            timeout=timeout,
        )
    elif provider_id == ProviderId.SOCKET:
        return SocketProvider(
            api_key=settings.socket_api_key,
            max_routes=settings.max_routes_per_provider,
            timeout=timeout,
        )
    elif provider_id == ProviderId.ONEINCH:
        return OneInchProvider(
            api_key=settings.oneinch_api_key or None,
            slippage=settings.default_slippage,
            timeout=timeout,
        )
    raise ValueError(f"Unknown provider: {provider_id}")


def create_providers(settings: Optional[Settings] = None) -> list[RouteProvider]:
    """Create all enabled providers, in configured order."""
    settings = settings or get_settings()
    providers = []

    for name in settings.provider_ids:
        try:
            provider_id = ProviderId(name)
        except ValueError:
            logger.warning(f"Ignoring unknown provider in ENABLED_PROVIDERS: {name}")
            continue
        providers.append(create_provider(provider_id, settings))

    logger.info(f"Enabled providers: {', '.join(p.name for p in providers) or 'none'}")
    return providers


def create_aggregator(settings: Optional[Settings] = None) -> RouteAggregator:
    """Create an aggregator with all enabled providers."""
    settings = settings or get_settings()
    return RouteAggregator(
        providers=create_providers(settings),
        timeout=settings.quote_timeout_seconds,
    )


# Global aggregator instance
_aggregator: Optional[RouteAggregator] = None


def get_aggregator() -> RouteAggregator:
    """Get or create the global aggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = create_aggregator()
    return _aggregator


def reset_aggregator() -> None:
    """Reset the global aggregator (for testing)."""
    global _aggregator
    _aggregator = None
