import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Protocol

from asyncpg import Connection, InterfaceError, PostgresError, UniqueViolationError

from src.exceptions import DuplicateKeyError, NotFoundError, UnexpectedError
from src.models import URLRecord, User

logger = logging.getLogger(__name__)

URL_COLUMNS = "id, short_url, long_url, user_id, created_at, updated_at"
USER_COLUMNS = (
    "id, email, password, created_at, updated_at, "
    "refresh_token, refresh_token_revoke_date"
)


class URLStore(Protocol):
    async def create(self, owner_id: int, short_key: str, long_url: str) -> URLRecord: ...

    async def get_by_key(self, short_key: str) -> URLRecord: ...

    async def update(self, owner_id: int, short_key: str, long_url: str) -> URLRecord: ...

    async def delete(self, owner_id: int, short_key: str) -> None: ...


class UserStore(Protocol):
    async def create(self, email: str, password_hash: str) -> User: ...

    async def get_by_email(self, email: str) -> User: ...

    async def get_by_id(self, user_id: int) -> User: ...

    async def get_by_refresh_token(self, refresh_token: str) -> User: ...

    async def update_refresh_token(
        self, user_id: int, refresh_token: str, revoke_date: datetime
    ) -> None: ...

    async def update(self, user_id: int, email: str, password_hash: str) -> User: ...


@asynccontextmanager
async def translate_errors(
    operation: str, record_type: str, identifier: str
) -> AsyncIterator[None]:
    """Map asyncpg failures onto the service error kinds."""

    try:
        yield
    except UniqueViolationError as exc:
        logger.info(f"{operation}: unique constraint hit for {identifier}")
        raise DuplicateKeyError(record_type, identifier) from exc
    except (PostgresError, InterfaceError, OSError, asyncio.TimeoutError) as exc:
        logger.error(f"{operation} failed for {identifier}: {str(exc)}")
        raise UnexpectedError(operation, str(exc)) from exc


def _to_url_record(row) -> URLRecord:
    return URLRecord(
        id=row["id"],
        short_url=row["short_url"],
        long_url=row["long_url"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_user(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        refresh_token=row.get("refresh_token"),
        refresh_token_revoke_date=row.get("refresh_token_revoke_date"),
    )


class PostgresURLStore:
    def __init__(self, conn: Connection, timeout: Optional[float] = None):
        self.conn = conn
        self.timeout = timeout

    async def create(self, owner_id: int, short_key: str, long_url: str) -> URLRecord:
        async with translate_errors("Create URL", "Short URL", short_key):
            row = await self.conn.fetchrow(
                f"""
                INSERT INTO urls (short_url, long_url, user_id, created_at, updated_at)
                VALUES ($1, $2, $3, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                RETURNING {URL_COLUMNS}
                """,
                short_key,
                long_url,
                owner_id,
                timeout=self.timeout,
            )
        if row is None:
            raise UnexpectedError("Create URL", f"no row returned for {short_key}")
        return _to_url_record(row)

    async def get_by_key(self, short_key: str) -> URLRecord:
        async with translate_errors("Select URL", "Short URL", short_key):
            row = await self.conn.fetchrow(
                f"SELECT {URL_COLUMNS} FROM urls WHERE short_url = $1",
                short_key,
                timeout=self.timeout,
            )
        if row is None:
            raise NotFoundError("Short URL", short_key)
        return _to_url_record(row)

    async def update(self, owner_id: int, short_key: str, long_url: str) -> URLRecord:
        async with translate_errors("Update URL", "Short URL", short_key):
            row = await self.conn.fetchrow(
                f"""
                UPDATE urls
                SET long_url = $3, updated_at = CURRENT_TIMESTAMP
                WHERE short_url = $1 AND user_id = $2
                RETURNING {URL_COLUMNS}
                """,
                short_key,
                owner_id,
                long_url,
                timeout=self.timeout,
            )
        if row is None:
            raise NotFoundError("Short URL", short_key)
        return _to_url_record(row)

    async def delete(self, owner_id: int, short_key: str) -> None:
        async with translate_errors("Delete URL", "Short URL", short_key):
            row = await self.conn.fetchrow(
                "DELETE FROM urls WHERE short_url = $1 AND user_id = $2 RETURNING id",
                short_key,
                owner_id,
                timeout=self.timeout,
            )
        if row is None:
            raise NotFoundError("Short URL", short_key)


class PostgresUserStore:
    def __init__(self, conn: Connection, timeout: Optional[float] = None):
        self.conn = conn
        self.timeout = timeout

    async def _fetch_one(self, operation: str, identifier: str, query: str, *args) -> User:
        async with translate_errors(operation, "User", identifier):
            row = await self.conn.fetchrow(query, *args, timeout=self.timeout)
        if row is None:
            raise NotFoundError("User", identifier)
        return _to_user(row)

    async def create(self, email: str, password_hash: str) -> User:
        return await self._fetch_one(
            "Create user",
            email,
            f"""
            INSERT INTO users (email, password, created_at, updated_at)
            VALUES ($1, $2, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            RETURNING {USER_COLUMNS}
            """,
            email,
            password_hash,
        )

    async def get_by_email(self, email: str) -> User:
        return await self._fetch_one(
            "Select user",
            email,
            f"SELECT {USER_COLUMNS} FROM users WHERE email = $1",
            email,
        )

    async def get_by_id(self, user_id: int) -> User:
        return await self._fetch_one(
            "Select user",
            str(user_id),
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
            user_id,
        )

    async def get_by_refresh_token(self, refresh_token: str) -> User:
        return await self._fetch_one(
            "Select user",
            "refresh token",
            f"SELECT {USER_COLUMNS} FROM users WHERE refresh_token = $1",
            refresh_token,
        )

    async def update_refresh_token(
        self, user_id: int, refresh_token: str, revoke_date: datetime
    ) -> None:
        await self._fetch_one(
            "Update refresh token",
            str(user_id),
            f"""
            UPDATE users
            SET refresh_token = $2, refresh_token_revoke_date = $3
            WHERE id = $1
            RETURNING {USER_COLUMNS}
            """,
            user_id,
            refresh_token,
            revoke_date,
        )

    async def update(self, user_id: int, email: str, password_hash: str) -> User:
        return await self._fetch_one(
            "Update user",
            str(user_id),
            f"""
            UPDATE users
            SET email = $2, password = $3, updated_at = CURRENT_TIMESTAMP
            WHERE id = $1
            RETURNING {USER_COLUMNS}
            """,
            user_id,
            email,
            password_hash,
        )
