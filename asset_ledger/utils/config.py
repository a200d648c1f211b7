"""Configuration management for the asset ledger."""

import re
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

NETWORKS: dict[str, dict[str, Any]] = {
    "sepolia": {
        "chain_id": 11155111,
        "name": "Sepolia Test Network",
        "rpc_url": "https://sepolia.infura.io/v3/",
        "explorer_url": "https://sepolia.etherscan.io",
    },
    "goerli": {
        "chain_id": 5,
        "name": "Goerli Test Network",
        "rpc_url": "https://goerli.infura.io/v3/",
        "explorer_url": "https://goerli.etherscan.io",
    },
    "polygon_mumbai": {
        "chain_id": 80001,
        "name": "Polygon Mumbai Testnet",
        "rpc_url": "https://rpc-mumbai.maticvigil.com/",
        "explorer_url": "https://mumbai.polygonscan.com",
    },
    "localhost": {
        "chain_id": 31337,
        "name": "Localhost",
        "rpc_url": "http://127.0.0.1:8545/",
        "explorer_url": None,
    },
}


class LedgerConfig(BaseSettings):
    """Registry contract and JSON-RPC endpoint configuration."""

    network: str = Field(default="localhost", description="Network key in NETWORKS")
    rpc_url: str | None = Field(
        default=None, description="JSON-RPC endpoint, overrides the network default"
    )
    contract_address: str = Field(
        default="", description="Address of the deployed asset registry"
    )
    timeout: int = Field(default=30, gt=0, description="Request timeout in seconds")
    max_concurrency: int = Field(
        default=8, ge=1, description="Assets fetched concurrently during bulk loads"
    )
    usage_page_size: int = Field(
        default=10, ge=1, description="Usage entries fetched concurrently per page"
    )
    from_block: int = Field(
        default=0, ge=0, description="First block scanned for permission events"
    )

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        """Only networks with known chain metadata are accepted."""
        key = v.strip().lower()
        if key not in NETWORKS:
            raise ValueError(
                f"Unknown network {v!r}. Expected one of: {', '.join(NETWORKS)}"
            )
        return key

    @field_validator("contract_address")
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        """Reject malformed addresses early; an empty value is checked on use."""
        v = v.strip()
        if v and not ADDRESS_PATTERN.match(v):
            raise ValueError(
                f"Contract address {v!r} is not a 20-byte hex address. "
                "Set LEDGER_CONTRACT_ADDRESS to the deployed registry address."
            )
        return v

    @property
    def endpoint(self) -> str:
        """Effective JSON-RPC endpoint."""
        return self.rpc_url or NETWORKS[self.network]["rpc_url"]

    @property
    def chain_id(self) -> int:
        """Chain id of the configured network."""
        return NETWORKS[self.network]["chain_id"]

    def require_contract_address(self) -> str:
        """Return the contract address or fail with a configuration error."""
        if not self.contract_address:
            raise ConfigurationError(
                "Contract address not configured. "
                "Set LEDGER_CONTRACT_ADDRESS in the environment or .env file."
            )
        return self.contract_address

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", extra="ignore")


class CacheConfig(BaseSettings):
    """Local fallback cache configuration."""

    enabled: bool = Field(default=True, description="Use the fallback cache")
    directory: Path = Field(
        default=Path("./.asset-cache"), description="Directory for cached views"
    )

    model_config = SettingsConfigDict(env_prefix="CACHE_", env_file=".env", extra="ignore")


class GatewayConfig(BaseSettings):
    """Content gateway used to build download links."""

    url: str = Field(
        default="https://gateway.pinata.cloud/ipfs/",
        description="Gateway prefix that a CID is appended to",
    )

    model_config = SettingsConfigDict(env_prefix="GATEWAY_", env_file=".env", extra="ignore")


class AppConfig(BaseSettings):
    """Main application configuration."""

    log_level: str = Field(default="INFO", description="Logging level")
    development: bool = Field(default=False, description="Development mode")
    retry_attempts: int = Field(
        default=3, ge=1, description="Attempts for a transient bulk load failure"
    )
    retry_backoff: float = Field(
        default=1.0, ge=0, description="Base delay in seconds between attempts"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


class Settings:
    """Global settings manager."""

    def __init__(self) -> None:
        """Initialize settings."""
        try:
            self.app = AppConfig()
            self.ledger = LedgerConfig()
            self.cache = CacheConfig()
            self.gateway = GatewayConfig()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global settings
    settings = None
