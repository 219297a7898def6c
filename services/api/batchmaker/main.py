# Batch Maker Recipe Parser API Main Entry Point
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.orm import sessionmaker

from .core.ai_client import AIClient
from .core.auth import AuthVerifier
from .db import create_db_engine, create_session_factory
from .infra.redis_client import create_redis
from .routers.parse import router as parse_router
from .routers.ready import router as ready_router
from .services.connectivity import ConnectivityChecker
from .services.model_invoker import ModelInvoker
from .services.observer import LoggingObserver
from .services.page_fetcher import PageFetcher
from .services.rate_limiter import RateLimiter, RedisRateLimitStore, SqlRateLimitStore
from .services.recipe_parser import RecipeParserService
from .settings import Settings, get_settings

# Configure structured logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("batchmaker")


def build_parser_service(
    settings: Settings, ai_client: AIClient, session_factory: sessionmaker, redis=None
) -> RecipeParserService:
    """Wire the parse pipeline from settings."""
    if settings.rate_limit_backend == "redis":
        store = RedisRateLimitStore(redis)
    else:
        store = SqlRateLimitStore(session_factory)

    return RecipeParserService(
        invoker=ModelInvoker(ai_client, settings),
        rate_limiter=RateLimiter(
            store,
            per_hour=settings.rate_limit_per_hour,
            per_day=settings.rate_limit_per_day,
        ),
        connectivity=ConnectivityChecker(
            settings.connectivity_probe_url,
            timeout=settings.connectivity_timeout_seconds,
            enabled=settings.connectivity_check_enabled,
        ),
        fetcher=PageFetcher(
            settings.fetch_user_agent,
            timeout=settings.fetch_timeout_seconds,
            max_chars=settings.page_text_max_chars,
        ),
        observer=LoggingObserver(),
        retry_backoff_seconds=settings.retry_backoff_seconds,
        max_text_chars=settings.max_recipe_text_chars,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown: release connections owned by this app
    await app.state.redis.aclose()
    app.state.engine.dispose()
    logger.info("Parser shut down: redis closed, engine disposed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    # Rate limiter (per-IP)
    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.request_rate_limit])

    app = FastAPI(title="Batch Maker Recipe Parser API", version="0.1.0", lifespan=lifespan)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.engine = create_db_engine(settings.database_url)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.redis = create_redis(settings.redis_url)
    app.state.ai_client = AIClient(settings)
    app.state.auth_verifier = AuthVerifier(
        mode=settings.auth_mode,
        user_url=settings.auth_user_url,
        api_key=settings.auth_api_key,
    )
    app.state.parser_service = build_parser_service(
        settings, app.state.ai_client, app.state.session_factory, app.state.redis
    )

    logger.info(
        f"Parser ready: ai_mode={settings.ai_mode} rate_limit_backend={settings.rate_limit_backend} "
        f"auth_mode={settings.auth_mode}"
    )

    app.include_router(ready_router, prefix="/api", tags=["ready"])
    app.include_router(parse_router, prefix="/api", tags=["recipes"])
    return app


app = create_app()
