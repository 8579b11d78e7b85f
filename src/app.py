import logging
from logging.handlers import TimedRotatingFileHandler

import asyncpg
from fastapi import FastAPI
from redis.asyncio import Redis

from src.config import Settings
from src.controller import router

settings = Settings()

# Logging
handlers: list[logging.Handler] = [logging.StreamHandler()]
if settings.log_file:
    handlers.append(
        TimedRotatingFileHandler(
            filename=settings.log_file,
            when="W0",
            interval=1,
            backupCount=4,
            encoding="utf-8",
        )
    )
logging.basicConfig(
    level=settings.log_level,
    format="%(levelname)s - %(asctime)s - %(message)s",
    handlers=handlers,
)
logger = logging.getLogger(__name__)

# Set up app
app = FastAPI(title="url-short - URL Shortener")
app.include_router(router)
app.state.settings = settings


# App lifecycle
@app.on_event("startup")
async def startup_event():
    app.state.db_pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    app.state.redis = Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.cache_timeout_seconds,
        socket_connect_timeout=settings.cache_timeout_seconds,
    )
    logger.info("Application started, postgres database and redis initialized")


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.db_pool.close()
    await app.state.redis.aclose()
    logger.info("Application shut down, postgres database and redis connections closed")
