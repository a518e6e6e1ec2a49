"""Remote application config: fetch, validate, cache, and fall back.

The server's /api/config response is untrusted input. Anything that fails to
arrive or to validate is replaced by a static fallback, and the client keeps
working in a degraded mode flagged by ``environment_badge``.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx
import structlog
from pydantic import ValidationError

from shared.app_config import AppConfig, FeatureFlags, SupabaseConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.client.settings import ClientSettings

logger = structlog.get_logger()

CONFIG_PATH = "/api/config"


class ConfigLoadFailure(Exception):
    """The remote config could not be fetched or did not validate."""


class ConfigLoader:
    """Loads AppConfig once per cache window; concurrent callers share one fetch."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: ClientSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._settings = settings
        self._base_url = settings.api_base_url.rstrip("/")
        self._clock = clock
        self._config: AppConfig | None = None
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            raise RuntimeError("Config not loaded yet. Call load() first.")
        return self._config

    def _is_fresh(self) -> bool:
        if self._config is None or self._loaded_at is None:
            return False
        return self._clock() - self._loaded_at < self._settings.config_cache_seconds

    async def load(self) -> AppConfig:
        if self._is_fresh():
            return self.config
        async with self._lock:
            if self._is_fresh():
                return self.config
            try:
                config = await self._fetch()
                logger.info("configuration loaded", environment=config.environment, domain=config.domain)
            except ConfigLoadFailure as e:
                logger.warning("server config failed, using fallback", error=str(e))
                config = self.fallback_config()
            self._config = config
            self._loaded_at = self._clock()
            return config

    async def refresh(self) -> AppConfig:
        self._loaded_at = None
        return await self.load()

    async def _fetch(self) -> AppConfig:
        url = f"{self._base_url}{CONFIG_PATH}"
        try:
            response = await self._client.get(
                url,
                headers={"Accept": "application/json", "Cache-Control": "no-cache"},
                timeout=self._settings.request_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise ConfigLoadFailure(f"{type(e).__name__}: {e}") from e
        if not response.is_success:
            raise ConfigLoadFailure(f"HTTP {response.status_code}")
        try:
            return AppConfig.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ConfigLoadFailure(f"invalid configuration received: {e}") from e

    def fallback_config(self) -> AppConfig:
        hostname = urlparse(self._base_url).hostname or "localhost"
        production_domain = self._settings.production_domain
        is_production = hostname in {production_domain, f"www.{production_domain}"}
        return AppConfig(
            supabase=SupabaseConfig(
                url=self._settings.fallback_supabase_url,
                publishable_key=self._settings.fallback_supabase_key,
            ),
            environment="production-fallback" if is_production else "development-fallback",
            domain=hostname,
            features=FeatureFlags(
                analytics=is_production,
                debugging=not is_production,
                local_database=True,
                vercel_analytics=is_production,
            ),
            api_url=self._base_url,
            database="sqlite",
            fallback=True,
        )
