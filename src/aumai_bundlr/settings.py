"""Environment-driven settings for aumai-bundlr.

Every field can be overridden via an ``AUMAI_BUNDLR_*`` environment variable
or a ``.env`` file in the working directory::

    export AUMAI_BUNDLR_HOST=node1.example.net
    export AUMAI_BUNDLR_CURRENCY=arweave
    export AUMAI_BUNDLR_CONCURRENCY=10
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from aumai_bundlr.models import ApiConfig, UploadConfig


class UploaderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AUMAI_BUNDLR_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Node
    protocol: str = "https"
    host: str = "localhost"
    port: int = 443
    timeout: float = 30.0
    currency: str = "arweave"

    # Upload behaviour
    chunking_threshold: int = 50_000_000
    force_chunking: bool = False
    concurrency: int = 5
    retry_attempts: int = 3

    log_level: str = "WARNING"

    def api_config(self) -> ApiConfig:
        return ApiConfig(
            protocol=self.protocol,
            host=self.host,
            port=self.port,
            timeout=self.timeout,
        )

    def upload_config(self) -> UploadConfig:
        return UploadConfig(
            chunking_threshold=self.chunking_threshold,
            force_chunking=self.force_chunking,
            concurrency=self.concurrency,
            retry_attempts=self.retry_attempts,
        )


__all__ = ["UploaderSettings"]
