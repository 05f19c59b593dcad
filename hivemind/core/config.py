"""
Application configuration and settings management.

This module loads configuration from environment variables and provides
a centralized settings object for the entire application.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    AGENT_ACTIVATION_DELAY_SECONDS,
    DEFAULT_APP_PORT,
    DEFAULT_ETH_PRICE_USD,
    DEFAULT_RATE_LIMIT_REQUESTS_PER_MINUTE,
    OPENSEA_TIMEOUT_SECONDS,
    SWARM_CONSENSUS_THRESHOLD,
    SWARM_MAX_AGENTS,
    SWARM_MONITOR_INTERVAL_SECONDS,
    SWARM_TASK_TIMEOUT_SECONDS,
    X402_GET_PRICE_ATOMIC,
    X402_MAX_TIMEOUT_SECONDS,
    X402_POST_PRICE_ATOMIC,
)

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Hive Mind"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = Field(default="development", description="deployment environment")

    # API Server
    host: str = "0.0.0.0"
    port: int = DEFAULT_APP_PORT
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list.

        Args:
            v: CORS origins as string (comma-separated) or list

        Returns:
            list[str]: List of CORS origin URLs
        """
        if isinstance(v, str):
            if not v.strip():
                return list(DEFAULT_CORS_ORIGINS)
            return [origin.strip() for origin in v.split(",")]
        return v

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///:memory:",
        description="Database connection URL (PostgreSQL or SQLite)"
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Only PostgreSQL and SQLite URLs are supported."""
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("database_url must be a PostgreSQL or SQLite URL")
        return v

    # Redis Configuration (optional, in-memory cache is used when unreachable)
    redis_url: str | None = Field(
        default=None,
        description="Redis connection URL (optional)"
    )

    # Rate Limiting
    rate_limit_requests_per_minute: int = DEFAULT_RATE_LIMIT_REQUESTS_PER_MINUTE

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Flare FTSO (Coston2 testnet)
    flare_rpc_url: str = "https://coston2-api.flare.network/ext/C/rpc"
    ftso_registry_address: str = "0xaD67FE66660Fb8dFE9d6b1b4240d8650e30F6019"
    ftso_price_submitter_address: str = "0x1000000000000000000000000000000000000003"
    ftso_price_feeds: dict[str, str] = Field(
        default_factory=lambda: {
            "FLR/USD": "0x0142E7fCaB3AB2b5E3E3D7a55b4f7f7b8E0fF9e4b",
            "XRP/USD": "0x38F8e3b67FA8329FE4BaA1775e5480C99B56E5eB",
            "BTC/USD": "0x3BfC20e5A9aFb3e0E5F5d3E3e8Dbb5d3DCb7F341",
            "ETH/USD": "0x264c10B127CdAb4e13E5D89b6c6f5bFFC0e5fC66",
        },
        description="FTSO feed contract per trading pair",
    )

    # x402 Configuration
    x402_network: str = "base-sepolia"
    x402_resource_url: str = "https://api.hivemind.network/x402/protected"
    x402_resource_wallet: str = Field(
        default="0xC8973d8f3cd4Ee6bd5358AcDbE9a4CA517BDd129",
        description="Wallet receiving payments for protected resources",
    )
    x402_asset_address: str = Field(
        default="0x6B5f6d625aa0fBA745759Ad0495017735cB72af7",
        description="MockUSDC on Base Sepolia",
    )
    x402_get_price_atomic: str = X402_GET_PRICE_ATOMIC
    x402_post_price_atomic: str = X402_POST_PRICE_ATOMIC
    x402_max_timeout_seconds: int = X402_MAX_TIMEOUT_SECONDS
    x402_facilitator_url: str = "https://facilitator.x402.org"
    x402_bazaar_url: str = "https://bazaar.x402.org"

    # Agent wallet (development only)
    agent_wallet_private_key: str | None = Field(
        default=None,
        description="Private key used to sign outgoing x402 payments"
    )

    # Coordinator contract networks
    localhost_rpc_url: str = "http://127.0.0.1:8545"
    base_sepolia_rpc_url: str = "https://sepolia.base.org"
    arbitrum_sepolia_rpc_url: str = "https://sepolia-rollup.arbitrum.io/rpc"
    optimism_sepolia_rpc_url: str = "https://sepolia.optimism.io"
    ethereum_rpc_url: str = "https://eth.llamarpc.com"
    coordinator_address_localhost: str = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    coordinator_address_base_sepolia: str = ZERO_ADDRESS
    payment_token_address_localhost: str = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
    payment_token_address_base_sepolia: str = "0x6B5f6d625aa0fBA745759Ad0495017735cB72af7"

    # PYUSD cross-chain payments
    pyusd_address_base: str = ZERO_ADDRESS
    pyusd_address_arb: str = ZERO_ADDRESS
    orchestrator_address_base: str = ZERO_ADDRESS
    orchestrator_address_arb: str = ZERO_ADDRESS
    orchestrator_address_eth: str = ZERO_ADDRESS

    # LayerZero quoting
    eth_price_usd: float = DEFAULT_ETH_PRICE_USD

    # OpenSea MCP
    opensea_api_key: str | None = None
    opensea_mcp_url: str = "https://mcp.opensea.io/sse"
    opensea_timeout_seconds: float = OPENSEA_TIMEOUT_SECONDS

    # Agent spawning
    agent_activation_delay_seconds: float = AGENT_ACTIVATION_DELAY_SECONDS

    # Swarm coordination
    swarm_consensus_threshold: float = SWARM_CONSENSUS_THRESHOLD
    swarm_task_timeout_seconds: int = SWARM_TASK_TIMEOUT_SECONDS
    swarm_monitor_interval_seconds: int = SWARM_MONITOR_INTERVAL_SECONDS
    swarm_max_agents: int = SWARM_MAX_AGENTS
    swarm_topology: str = "hierarchical"

    # Agent node (capability server)
    agent_node_id: str = "hivemind-node-1"
    agent_node_vote: str = "yes"

    # Agent wallet keystore
    wallet_keystore_password: str = Field(
        default="hivemind-dev-keystore",
        description="Passphrase encrypting stored agent wallets"
    )
    wallet_keystore_iterations: int = 262144

    @property
    def effective_database_url(self) -> str:
        """Get the database URL rewritten for its async driver."""
        url = self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
