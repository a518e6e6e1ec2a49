from __future__ import annotations

import contextlib
import json
import sqlite3
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from api.sanitize import InvalidPayloadError, as_int, sanitize_game_payload
from api.settings import ApiServerSettings
from shared.app_config import AppConfig, FeatureFlags, SupabaseConfig
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.dal.game_result_repository import InsertOutcome
from shared.dal.models import MAX_DIFFICULTY, MIN_DIFFICULTY, SyncReport
from shared.db import Database, SqliteGameResultRepository
from shared.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from shared.dal.game_result_repository import GameResultRepository
    from shared.dal.models import GameRecord

logger = structlog.get_logger()

MAX_SYNC_GAMES = 50
DEFAULT_LEADERBOARD_LIMIT = 10
MAX_LEADERBOARD_LIMIT = 50


class BadRequestError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


async def _read_json(request: Request) -> Any:
    settings: ApiServerSettings = request.app.state.settings
    raw_body = await request.body()
    if len(raw_body) > settings.max_request_body_size:
        raise BadRequestError("Request body too large", status_code=413)
    try:
        return json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise BadRequestError("Invalid request body") from e


def _require_session_id(data: Any) -> None:
    if not isinstance(data, dict) or not isinstance(data.get("session_id"), str) or not data["session_id"]:
        raise BadRequestError("session_id is required")


async def _insert(request: Request, record: GameRecord) -> JSONResponse:
    repository: GameResultRepository = request.app.state.repository
    try:
        outcome = await repository.insert_result(record)
    except sqlite3.Error:
        logger.exception("failed to save game", session_id=record.session_id)
        return JSONResponse({"error": "Failed to save game", "message": "Database error occurred"}, status_code=500)

    if outcome is InsertOutcome.DUPLICATE:
        logger.info("duplicate game session", session_id=record.session_id)
        return JSONResponse(
            {"error": "Duplicate game session", "session_id": record.session_id},
            status_code=409,
        )
    logger.info(
        "game saved",
        session_id=record.session_id,
        status=record.status,
        difficulty=record.difficulty,
        is_guest=record.is_guest,
    )
    return JSONResponse({"success": True, "session_id": record.session_id, "status": record.status})


async def config(request: Request) -> JSONResponse:
    settings: ApiServerSettings = request.app.state.settings
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.error("missing supabase credentials")
        return JSONResponse({"error": "Server configuration error - missing Supabase credentials"}, status_code=500)

    public_config = AppConfig(
        supabase=SupabaseConfig(url=settings.supabase_url, anon_key=settings.supabase_anon_key),
        environment=settings.environment,
        domain=settings.domain,
        features=FeatureFlags(
            analytics=settings.is_production,
            debugging=not settings.is_production,
            local_database=settings.local_database,
            vercel_analytics=settings.is_production,
        ),
        api_url=settings.api_url,
        database="sqlite" if settings.local_database else "supabase",
    )
    body = {**public_config.to_wire(), "timestamp": _now_iso(), "version": APP_VERSION}
    body.pop("fallback", None)
    cache_control = "public, max-age=300" if settings.is_production else "no-cache"
    return JSONResponse(body, headers={"Cache-Control": cache_control})


async def health(request: Request) -> JSONResponse:
    settings: ApiServerSettings = request.app.state.settings
    db: Database | None = request.app.state.db
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": _now_iso(),
            "environment": settings.environment,
            "domain": settings.domain,
            "database": "connected" if db is None or db.is_connected else "disconnected",
            "uptime": round(time.monotonic() - request.app.state.started_at, 1),
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
        },
    )


async def save_game(request: Request) -> JSONResponse:
    data = await _read_json(request)
    _require_session_id(data)
    difficulty = as_int(data.get("difficulty"))
    if difficulty is None or not (MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY):
        raise BadRequestError(f"difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
    try:
        record = sanitize_game_payload(data)
    except InvalidPayloadError as e:
        raise BadRequestError(str(e)) from e
    return await _insert(request, record)


async def save_abandoned_game(request: Request) -> JSONResponse:
    data = await _read_json(request)
    _require_session_id(data)
    try:
        record = sanitize_game_payload(data, abandoned=True)
    except InvalidPayloadError as e:
        raise BadRequestError(str(e)) from e
    return await _insert(request, record)


async def sync_backup_games(request: Request) -> JSONResponse:
    data = await _read_json(request)
    games = data.get("games") if isinstance(data, dict) else None
    if not isinstance(games, list):
        raise BadRequestError("games must be a list")
    if len(games) > MAX_SYNC_GAMES:
        raise BadRequestError(f"at most {MAX_SYNC_GAMES} games per sync")

    records: list[GameRecord] = []
    for game in games:
        try:
            records.append(sanitize_game_payload(game))
        except InvalidPayloadError as e:
            logger.warning("skipping invalid backup game", error=str(e))

    repository: GameResultRepository = request.app.state.repository
    try:
        synced = await repository.upsert_results(records) if records else 0
    except sqlite3.Error:
        logger.exception("backup sync failed", requested_count=len(games))
        return JSONResponse({"error": "Failed to sync games"}, status_code=500)

    logger.info("backup games synced", synced_count=synced, requested_count=len(games))
    return JSONResponse(SyncReport(synced_count=synced, requested_count=len(games)).model_dump())


async def stats(request: Request) -> JSONResponse:
    repository: GameResultRepository = request.app.state.repository
    user_id = request.query_params.get("user_id") or None
    try:
        game_stats = await repository.get_stats(user_id)
    except sqlite3.Error:
        logger.exception("failed to fetch statistics")
        return JSONResponse({"error": "Failed to fetch statistics"}, status_code=500)
    return JSONResponse(
        {
            **game_stats.model_dump(),
            "timestamp": _now_iso(),
            "user_filter": "applied" if user_id else "global",
        },
    )


async def leaderboard(request: Request) -> JSONResponse:
    repository: GameResultRepository = request.app.state.repository
    requested = as_int(request.query_params.get("limit")) or DEFAULT_LEADERBOARD_LIMIT
    limit = max(1, min(requested, MAX_LEADERBOARD_LIMIT))
    try:
        entries = await repository.get_leaderboard(limit)
    except sqlite3.Error:
        logger.exception("failed to fetch leaderboard")
        return JSONResponse({"error": "Failed to fetch leaderboard"}, status_code=500)
    return JSONResponse(
        {
            "leaderboard": [entry.model_dump(mode="json") for entry in entries],
            "count": len(entries),
            "timestamp": _now_iso(),
        },
    )


async def _bad_request(_request: Request, exc: BadRequestError) -> JSONResponse:
    return JSONResponse({"error": "Validation failed", "message": exc.message}, status_code=exc.status_code)


def create_app(
    settings: ApiServerSettings | None = None,
    repository: GameResultRepository | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ApiServerSettings()

    # When the app opens its own database, it owns the connection lifecycle.
    owned_db: Database | None = None
    if repository is None:
        owned_db = Database(settings.database_path)
        owned_db.connect()
        repository = SqliteGameResultRepository(owned_db)

    routes = [
        Route("/api/config", config, methods=["GET"]),
        Route("/api/health", health, methods=["GET"]),
        Route("/api/save-game", save_game, methods=["POST"]),
        Route("/api/save-abandoned-game", save_abandoned_game, methods=["POST"]),
        Route("/api/sync-backup-games", sync_backup_games, methods=["POST"]),
        Route("/api/stats", stats, methods=["GET"]),
        Route("/api/leaderboard", leaderboard, methods=["GET"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        if owned_db is not None:
            owned_db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={BadRequestError: _bad_request},  # type: ignore[dict-item]
    )
    app.state.settings = settings
    app.state.repository = repository
    app.state.db = owned_db
    app.state.started_at = time.monotonic()

    logger.info("api server ready", environment=settings.environment, database=settings.database_path)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = ApiServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
