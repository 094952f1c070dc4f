"""Market data settings read from environment variables."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

PLACEHOLDER_BASE_URL = "https://ysl-price-cache.YOUR-SUBDOMAIN.workers.dev"

PRICE_TTL_MS = 120_000  # 2 minutes
REGISTRY_TTL_MS = 300_000  # 5 minutes
FETCH_TIMEOUT_SECONDS = 10.0
AUTO_REFRESH_SECONDS = 300.0  # matches the worker's cron


class MarketSettings(BaseSettings):
    """Runtime settings for the market data layer.

    - PRICE_CACHE_URL           base URL of the price-cache worker
    - MARKET_FETCH_TIMEOUT      seconds before a remote call is abandoned
    - MARKET_PRICE_TTL_MS       price snapshot freshness window
    - MARKET_REGISTRY_TTL_MS    registry freshness window
    - MARKET_AUTO_REFRESH_SECONDS  background refresh period

    Numbers that do not parse or are not positive keep their default.
    """

    base_url: str = Field(default=PLACEHOLDER_BASE_URL, validation_alias="PRICE_CACHE_URL")
    fetch_timeout: float = Field(default=FETCH_TIMEOUT_SECONDS, gt=0)
    price_ttl_ms: float = Field(default=PRICE_TTL_MS, gt=0)
    registry_ttl_ms: float = Field(default=REGISTRY_TTL_MS, gt=0)
    auto_refresh_interval: float = Field(
        default=AUTO_REFRESH_SECONDS, gt=0, validation_alias="MARKET_AUTO_REFRESH_SECONDS"
    )

    model_config = {
        "env_prefix": "MARKET_",
        "case_sensitive": False,
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @field_validator(
        "fetch_timeout", "price_ttl_ms", "registry_ttl_ms", "auto_refresh_interval", mode="wrap"
    )
    @classmethod
    def _default_on_invalid(cls, value: Any, handler, info: ValidationInfo) -> float:
        try:
            return handler(value)
        except ValidationError:
            default = cls.model_fields[info.field_name].default
            logger.warning("Ignoring %s=%r: not a positive number, using %s", info.field_name, value, default)
            return default

    @classmethod
    def from_env(cls) -> MarketSettings:
        return cls()

    @property
    def is_remote_configured(self) -> bool:
        """False when the URL is empty or still the deployment placeholder."""
        url = self.base_url.strip()
        return bool(url) and "YOUR-SUBDOMAIN" not in url
