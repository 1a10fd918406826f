"""Config file."""
from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("address-indexer", alias="PROJECT_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # BLOCKCHAIN READER
    rpc_url: AnyHttpUrl = Field("https://cloudflare-eth.com", alias="RPC_URL")
    rpc_timeout_seconds: float = Field(30, alias="RPC_TIMEOUT_SECONDS")
    reader_backend: str = Field("web3", alias="READER_BACKEND")

    # INDEXING ENGINE
    lookback_blocks: int = Field(20, alias="LOOKBACK_BLOCKS")
    poll_interval_seconds: float = Field(15, alias="POLL_INTERVAL_SECONDS")
    max_concurrent_backfills: int = Field(4, alias="MAX_CONCURRENT_BACKFILLS")
    retry_skipped_blocks: bool = Field(True, alias="RETRY_SKIPPED_BLOCKS")
    max_skipped_blocks: int = Field(1000, alias="MAX_SKIPPED_BLOCKS")

    # HTTP
    http_host: str = Field("0.0.0.0", alias="HTTP_HOST")
    http_port: int = Field(8080, alias="HTTP_PORT")
    shutdown_grace_seconds: float = Field(5, alias="SHUTDOWN_GRACE_SECONDS")

    @model_validator(mode="after")
    def check_engine_bounds(self) -> "Settings":
        if self.lookback_blocks < 0:
            raise ValueError("LOOKBACK_BLOCKS must be non-negative")
        if self.poll_interval_seconds <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be positive")
        if self.max_concurrent_backfills <= 0:
            raise ValueError("MAX_CONCURRENT_BACKFILLS must be positive")
        if self.max_skipped_blocks < 0:
            raise ValueError("MAX_SKIPPED_BLOCKS must be non-negative")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


settings: Settings = Settings()
