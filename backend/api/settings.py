"""API server configuration via environment variables."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class ApiServerSettings(BaseSettings):
    model_config = {"env_prefix": "API_"}

    environment: Literal["development", "production"] = "development"
    domain: str = Field(default="localhost", min_length=1)
    api_url: str = Field(default="http://localhost:3000", min_length=1)

    # Public credentials handed to clients by /api/config.
    supabase_url: str | None = None
    supabase_anon_key: str | None = None

    database_path: str = Field(default="backend/data/lytic.db", min_length=1)
    log_dir: str = Field(default="backend/logs/api", min_length=1)
    max_request_body_size: int = Field(default=1_048_576, ge=1024)
    # Whether clients should also write straight into a local database.
    local_database: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
