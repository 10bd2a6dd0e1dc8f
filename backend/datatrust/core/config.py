"""
Application configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from datatrust.core.errors import ConfigurationMissingError

DEFAULT_ABI_DIR = Path(__file__).resolve().parent.parent / "contracts" / "abi"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Chain endpoints and contract addresses are configuration values, never
    constants; ``require_chain_config`` is the single startup check for them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Core Application Settings
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API Configuration
    api_v1_prefix: str = "/api/v1"
    project_name: str = "DataTrust Ledger"
    version: str = "0.1.0"

    # CORS settings
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:3000",
        ]
    )

    # ==========================================================================
    # Chain Node Configuration
    # ==========================================================================
    chain_rpc_url: str = Field(default="", description="JSON-RPC endpoint of the chain node")
    chain_id: int | None = Field(
        default=None,
        ge=1,
        description="Chain id used when signing; fetched from the node when unset",
    )
    chain_explorer_url: str = Field(
        default="https://sepolia.etherscan.io",
        description="Block explorer base URL used to build transaction links",
    )
    chain_abi_dir: Path = Field(
        default=DEFAULT_ABI_DIR,
        description="Directory holding one <ContractName>.json artifact per contract",
    )

    # Contract addresses
    institution_registry_address: str = Field(default="")
    data_vault_address: str = Field(default="")
    access_control_address: str = Field(default="")
    audit_trail_address: str = Field(default="")

    server_private_key: SecretStr | None = Field(
        default=None,
        description="Server-held signing key, used only for facilitated institution registration",
    )

    # ==========================================================================
    # Chain Tuning
    # ==========================================================================
    chain_rpc_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Deadline applied to every single RPC operation"
    )
    chain_read_concurrency: int = Field(
        default=8, ge=1, le=100, description="Ceiling on concurrent per-id reads in list queries"
    )
    chain_log_chunk_size: int = Field(
        default=5000, ge=1, description="Number of blocks requested per eth_getLogs call"
    )
    chain_from_block: int = Field(
        default=0, ge=0, description="First block scanned by projections (contract deployment)"
    )
    chain_gas_limit_multiplier: float = Field(
        default=1.2, ge=1.0, le=5.0, description="Head-room applied on top of the gas estimate"
    )
    chain_list_timeout_seconds: float | None = Field(
        default=60.0,
        gt=0,
        description="Default whole-operation deadline for list reads (None disables it)",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def contract_addresses(self) -> dict[str, str]:
        """Contract name to configured address."""
        return {
            "InstitutionRegistry": self.institution_registry_address,
            "DataVaultContract": self.data_vault_address,
            "AccessControlContract": self.access_control_address,
            "AuditTrailContract": self.audit_trail_address,
        }

    def explorer_tx_url(self, tx_hash: str) -> str:
        """Build the block-explorer link for a submitted transaction."""
        return f"{self.chain_explorer_url.rstrip('/')}/tx/{tx_hash}"

    def require_chain_config(self) -> None:
        """Raise ConfigurationMissingError naming every absent chain setting."""
        missing: list[str] = []
        if not self.chain_rpc_url.strip():
            missing.append("chain_rpc_url")
        field_names = {
            "InstitutionRegistry": "institution_registry_address",
            "DataVaultContract": "data_vault_address",
            "AccessControlContract": "access_control_address",
            "AuditTrailContract": "audit_trail_address",
        }
        for contract, address in self.contract_addresses.items():
            if not address.strip():
                missing.append(field_names[contract])
        if missing:
            raise ConfigurationMissingError(
                f"Missing required chain configuration: {', '.join(missing)}"
            )

    def require_server_key(self) -> SecretStr:
        """Return the server signing key or fail when it is not configured."""
        if self.server_private_key is None or not self.server_private_key.get_secret_value():
            raise ConfigurationMissingError("server_private_key is not configured")
        return self.server_private_key

    # ==========================================================================
    # Production Safety Checks
    # ==========================================================================

    @model_validator(mode="after")
    def _validate_production_settings(self) -> Self:
        """Enforce critical settings in production/staging."""
        if self.environment in ("production", "staging") and self.debug:
            raise ValueError(f"debug must be False in {self.environment} environment")
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated environment variable parsing.
    """
    return Settings()
