"""Server configuration and logging setup."""

import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_PAGE_PREFIX,
    MAX_DAYS_PER_REQUEST,
    MUTATION_DELAY_SECONDS,
    OURA_API_BASE,
    ROAM_API_BASE,
    YIELD_BATCH_SIZE,
)
from .models import OuraConfiguration, RoamConfiguration

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ServerConfig(BaseSettings):
    """Settings read from ``OURA_SYNC_*`` environment variables (or ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix="OURA_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    oura_token: SecretStr | None = None
    oura_base_url: str = OURA_API_BASE

    roam_graph: str = ""
    roam_token: SecretStr = SecretStr("")
    roam_base_url: str = ROAM_API_BASE

    page_prefix: str = DEFAULT_PAGE_PREFIX
    days_to_sync: int = 7
    enable_debug_logs: bool = False
    auto_sync_on_start: bool = True

    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=5, ge=1)
    settle_delay: float = Field(default=MUTATION_DELAY_SECONDS, ge=0)
    yield_batch_size: int = Field(default=YIELD_BATCH_SIZE, ge=1)
    max_days_per_request: int = Field(default=MAX_DAYS_PER_REQUEST, ge=1)

    @field_validator("days_to_sync")
    @classmethod
    def _at_least_one_day(cls, value: int) -> int:
        return max(value, 1)

    @field_validator("page_prefix")
    @classmethod
    def _default_prefix(cls, value: str) -> str:
        return value.strip() or DEFAULT_PAGE_PREFIX

    @field_validator("oura_token")
    @classmethod
    def _blank_token_is_missing(cls, value: SecretStr | None) -> SecretStr | None:
        if value is None or not value.get_secret_value().strip():
            return None
        return SecretStr(value.get_secret_value().strip())

    def get_oura_config(self) -> OuraConfiguration:
        if self.oura_token is None:
            raise ValueError("OURA_SYNC_OURA_TOKEN is not set")
        return OuraConfiguration(
            token=self.oura_token,
            base_url=self.oura_base_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

    def get_roam_config(self) -> RoamConfiguration:
        return RoamConfiguration(
            graph=self.roam_graph,
            token=self.roam_token,
            base_url=self.roam_base_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )


def setup_logging(debug: bool = False) -> None:
    """Log to stderr; the MCP stdio transport owns stdout."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    set_debug_logging(debug)


def set_debug_logging(enabled: bool) -> None:
    """Toggle DEBUG output for this package only."""
    logging.getLogger("ouraring_sync").setLevel(logging.DEBUG if enabled else logging.INFO)
