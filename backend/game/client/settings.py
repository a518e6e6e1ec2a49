"""Game client configuration via environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings

from game.saving.queue import DEFAULT_QUEUE_CAPACITY


class ClientSettings(BaseSettings):
    model_config = {"env_prefix": "LYTIC_"}

    # Origin of the game's API server (config, save, sync and beacon endpoints).
    api_base_url: str = Field(default="http://localhost:3000", min_length=1)
    storage_dir: str = Field(default="backend/data/client", min_length=1)
    log_dir: str | None = None

    queue_capacity: int = Field(default=DEFAULT_QUEUE_CAPACITY, ge=1)
    startup_sync_delay_seconds: float = Field(default=2.0, ge=0)
    retry_sync_delay_seconds: float = Field(default=30.0, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    config_cache_seconds: float = Field(default=300.0, ge=0)

    guess_cooldown_seconds: float = Field(default=0.5, ge=0)
    # Whether repeating an earlier guess in the same game is rejected locally.
    reject_duplicate_guesses: bool = True

    user_agent: str = "lytic-client"
    screen_width: int | None = None
    screen_height: int | None = None

    # Used only when the server config cannot be fetched or fails validation.
    fallback_supabase_url: str = "https://cbwtexsbwzflmgbwzvpp.supabase.co"
    fallback_supabase_key: str = "sb_publishable_fkRPbjI9oLx6ylOBB9Ryqw__ig_qRqX"
    production_domain: str = "lytic.co.uk"
