from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Protocol deployment
    protocol_version: Literal["1.0.0", "1.1.0", "1.2.0"] = Field(
        default="1.1.0",
        description="Contract set used for validators, policies and the Smart Sessions module",
        validation_alias=AliasChoices("protocol_version", "brewit_version", "PROTOCOL_VERSION"),
    )

    # RPC
    rpc_urls: Dict[int, str] = Field(
        default_factory=dict,
        description="JSON-RPC endpoint per chain ID",
    )
    request_timeout_seconds: float = Field(default=30.0, description="Request timeout")
    multicall3_address: str = Field(
        default="0xcA11bde05977b3631167028862bE2a173976CA11",
        description="Multicall3 deployment used for batched reads",
    )

    def rpc_url_for(self, chain_id: int) -> Optional[str]:
        return self.rpc_urls.get(int(chain_id))

    @property
    def has_rpc_urls(self) -> bool:
        return bool(self.rpc_urls)


# Global settings instance
settings = Settings()
