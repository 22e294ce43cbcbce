"""Application configuration using pydantic-settings.

Provider credentials, quoting limits, settlement polling budget and
per-chain RPC endpoints are all read from environment variables (or .env).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    testnet: bool = Field(default=False, description="Use provider testnet endpoints")

    # ======================
    # Routing providers
    # ======================
    enabled_providers: str = Field(
        default="squid,lifi,across,socket,1inch",
        description="Comma-separated provider ids, in tie-break order",
    )
    squid_integrator_id: str = Field(default="", description="Squid Router integrator id")
    lifi_api_key: str = Field(default="", description="LI.FI API key (optional)")
    lifi_integrator: str = Field(default="crosspay", description="LI.FI integrator string")
    across_integrator_id: str = Field(default="", description="Across integrator id")
    socket_api_key: str = Field(default="", description="Socket API key")
    oneinch_api_key: str = Field(default="", description="1inch API key")

    # ======================
    # Quoting
    # ======================
    quote_timeout_seconds: float = Field(
        default=20.0, description="Per-provider quote timeout"
    )
    max_routes_per_provider: int = Field(
        default=3, description="Routes kept from multi-route providers"
    )
    default_slippage: float = Field(
        default=0.005, description="Default slippage tolerance (0.5%)"
    )

    # ======================
    # Execution
    # ======================
    settlement_poll_interval: float = Field(
        default=5.0, description="Seconds between settlement status polls"
    )
    settlement_max_attempts: int = Field(
        default=60, description="Settlement status polls before timing out"
    )
    confirmation_timeout: int = Field(
        default=120, description="Seconds to wait for a transaction receipt"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    rpc_urls: dict[int, str] = Field(
        default_factory=lambda: {
            1: "https://eth.llamarpc.com",
            10: "https://mainnet.optimism.io",
            56: "https://bsc-dataseed.binance.org",
            137: "https://polygon-rpc.com",
            8453: "https://mainnet.base.org",
            42161: "https://arb1.arbitrum.io/rpc",
            43114: "https://api.avax.network/ext/bc/C/rpc",
        },
        description="RPC URL per EVM chain id",
    )

    @property
    def provider_ids(self) -> list[str]:
        """Parse enabled providers into an ordered list."""
        if not self.enabled_providers:
            return []
        return [p.strip().lower() for p in self.enabled_providers.split(",") if p.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain_id: int) -> Optional[str]:
        """Get RPC URL for a chain id."""
        return self.rpc_urls.get(chain_id)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "testnet": self.testnet,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "providers": {
                "enabled": self.provider_ids,
                "squid": "***" if self.squid_integrator_id else "(not set)",
                "lifi": "***" if self.lifi_api_key else "(not set)",
                "across": "***" if self.across_integrator_id else "(not set)",
                "socket": "***" if self.socket_api_key else "(not set)",
                "1inch": "***" if self.oneinch_api_key else "(not set)",
            },
            "quoting": {
                "timeout_seconds": self.quote_timeout_seconds,
                "max_routes_per_provider": self.max_routes_per_provider,
                "slippage": self.default_slippage,
            },
            "settlement": {
                "poll_interval": self.settlement_poll_interval,
                "max_attempts": self.settlement_max_attempts,
            },
            "chains": sorted(self.rpc_urls),
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
