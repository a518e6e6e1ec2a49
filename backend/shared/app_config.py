"""Public application config served by /api/config and consumed by the client.

Wire names are camelCase; Python attributes are snake_case.
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SupabaseConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    anon_key: str | None = Field(default=None, alias="anonKey")
    publishable_key: str | None = Field(default=None, alias="publishableKey")

    @model_validator(mode="after")
    def _require_key(self) -> Self:
        if not (self.anon_key or self.publishable_key):
            raise ValueError("supabase config needs anonKey or publishableKey")
        return self

    @property
    def api_key(self) -> str:
        return self.publishable_key or self.anon_key or ""


class FeatureFlags(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    analytics: bool = False
    debugging: bool = False
    guest_mode: bool = Field(default=True, alias="guestMode")
    local_database: bool = Field(default=False, alias="localDatabase")
    vercel_analytics: bool = Field(default=False, alias="vercelAnalytics")
    universal_saving: bool = Field(default=True, alias="universalSaving")


class AppConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    supabase: SupabaseConfig
    environment: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    api_url: str | None = Field(default=None, alias="apiUrl")
    database: str = "supabase"
    fallback: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment.startswith("production")

    @property
    def environment_badge(self) -> str | None:
        """Badge text for the UI, or None when running normally in production."""
        if self.fallback:
            return f"FALLBACK - {self.environment}"
        if "development" in self.environment:
            return f"DEV MODE - {self.domain}"
        return None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
