import logging
from typing import Annotated, AsyncGenerator, Optional

from asyncpg import Connection, Pool
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis

from src.cache import RedisURLCache
from src.config import Settings
from src.exceptions import AuthenticationError
from src.models import User
from src.repository import PostgresURLStore, PostgresUserStore
from src.services import URLService, UserService

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db_pool(request: Request) -> AsyncGenerator[Pool, None]:
    yield request.app.state.db_pool


async def get_db_conn(
    pool: Annotated[Pool, Depends(get_db_pool)],
) -> AsyncGenerator[Connection, None]:
    async with pool.acquire() as conn:
        yield conn


async def get_redis(request: Request) -> AsyncGenerator[Redis, None]:
    yield request.app.state.redis


def get_url_service(
    conn: Annotated[Connection, Depends(get_db_conn)],
    redis: Annotated[Redis, Depends(get_redis)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> URLService:
    store = PostgresURLStore(conn, timeout=settings.db_timeout_seconds)
    return URLService(store, RedisURLCache(redis), settings)


def get_user_service(
    conn: Annotated[Connection, Depends(get_db_conn)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UserService:
    store = PostgresUserStore(conn, timeout=settings.db_timeout_seconds)
    return UserService(store, settings)


def get_bearer_token(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)
    ],
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No bearer token supplied",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_user(
    token: Annotated[str, Depends(get_bearer_token)],
    users: Annotated[UserService, Depends(get_user_service)],
) -> User:
    try:
        return await users.authenticate(token)
    except AuthenticationError as exc:
        logger.warning(f"Rejected bearer token: {exc.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
