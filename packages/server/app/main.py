from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import redis.asyncio as redis
import os
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app import dependencies
from app.logging_config import setup_logging, get_logger

logger = get_logger(__name__)
from app.database import init_db_engine, close_db_engine, get_async_session
from app.migration_check import ensure_migrations
from app.models import ChannelPairingRequest
from app.routers import slack_access, slack_commands
from app.slack.config import slack_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - connect/disconnect Redis and database."""
    # Initialize logging first
    setup_logging()

    # Validate auth and Slack configuration
    from app.auth.config import auth_settings

    try:
        auth_settings.validate()
        if auth_settings.enabled:
            logger.info("Authentication is ENABLED")
        else:
            logger.warning("Authentication is DISABLED (AUTH_ENABLED=false)")
        slack_settings.validate()
    except RuntimeError as e:
        logger.critical(f"Configuration error: {e}")
        raise

    logger.info(
        f"Slack: dm_policy={slack_settings.dm_policy} "
        f"group_policy={slack_settings.group_policy} "
        f"channels={len(slack_settings.channels)} "
        f"native_commands={len(slack_settings.native_commands)}"
    )
    if not slack_settings.native_commands and not slack_settings.slash_command.enabled:
        logger.info("slack: slash commands disabled")

    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")

    # Initialize Redis with retry/reconnect settings
    dependencies.redis_client = redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        retry_on_timeout=True,
        health_check_interval=30,
    )

    try:
        await dependencies.redis_client.ping()
        logger.info(f"Connected to Redis at {redis_url}")
    except Exception as e:
        logger.warning(f"Could not connect to Redis: {e}")
        logger.warning("Slash commands will fail to dispatch until Redis is reachable")

    # Initialize async database engine
    try:
        await init_db_engine()
        logger.info("Database engine initialized")
    except Exception as e:
        logger.critical(f"Could not initialize database engine: {e}")
        raise

    # Verify database migrations are applied
    try:
        ensure_migrations()
    except Exception as e:
        logger.critical(f"Migration check failed: {e}")
        raise

    yield

    # Close async database engine
    try:
        await close_db_engine()
        logger.info("Database engine closed")
    except Exception as e:
        logger.error(f"Error closing database engine: {e}")

    if dependencies.redis_client:
        try:
            await dependencies.redis_client.aclose()
            logger.info("Disconnected from Redis")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")


app = FastAPI(
    title="Slashgate API",
    version="0.1.0",
    description="Slack slash-command authorization and agent routing",
    lifespan=lifespan,
)

# CORS
# CORS_ORIGINS env var controls allowed origins.
#   "*"              -> wildcard (allow any origin, credentials disabled)
#   unset / empty    -> wildcard (same default behaviour)
#   "http://a,https://b" -> explicit origin list (credentials enabled)
_cors_origins_env = os.getenv("CORS_ORIGINS", "*").strip()
if _cors_origins_env == "*":
    _cors_origins = ["*"]
    _cors_credentials = False
else:
    _cors_origins = [o.strip() for o in _cors_origins_env.split(",") if o.strip()]
    _cors_credentials = True

# Auth middleware - must be added BEFORE CORS so that CORS wraps it.
# Starlette middleware order is LIFO: last-added runs outermost.
from app.auth.middleware import AuthMiddleware

app.add_middleware(AuthMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return proper JSON response."""
    error_detail = str(exc)
    error_type = type(exc).__name__

    # Log the full traceback
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: {error_type}: {error_detail}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"{error_type}: {error_detail}",
            "type": error_type,
            "path": str(request.url.path),
        },
    )


app.include_router(slack_commands.router, prefix="/v1/slack", tags=["slack"])
app.include_router(slack_access.router, prefix="/v1/slack/access", tags=["slack-access"])


@app.get("/v1/status")
async def status(session: AsyncSession = Depends(get_async_session)):
    """Get API health status."""
    redis_ok = False
    if dependencies.redis_client:
        try:
            redis_ok = await dependencies.redis_client.ping()
        except Exception:
            pass

    pending_pairings = None
    try:
        result = await session.execute(
            select(func.count()).select_from(ChannelPairingRequest)
        )
        pending_pairings = result.scalar() or 0
    except Exception as e:
        logger.warning(f"Status: could not count pairing requests: {e}")

    return {
        "status": "ok",
        "version": app.version,
        "redis_connected": bool(redis_ok),
        "database_connected": pending_pairings is not None,
        "pending_pairings": pending_pairings,
        "slack": {
            "signing_configured": bool(slack_settings.signing_secret),
            "dm_policy": slack_settings.dm_policy,
            "group_policy": slack_settings.group_policy,
        },
    }
