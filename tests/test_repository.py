import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from asyncpg import Connection, PostgresError, UniqueViolationError

from src.exceptions import DuplicateKeyError, NotFoundError, UnexpectedError
from src.repository import PostgresURLStore, PostgresUserStore

TEST_SLUG = "abc1234"
TEST_URL = "https://example.com"
TEST_OWNER = 7


# Fixtures
@pytest.fixture
def mock_conn():
    return AsyncMock(spec=Connection)


@pytest.fixture
def url_store(mock_conn):
    return PostgresURLStore(mock_conn, timeout=2.5)


@pytest.fixture
def user_store(mock_conn):
    return PostgresUserStore(mock_conn, timeout=2.5)


# Helper
def url_row(long_url=TEST_URL):
    now = datetime.now()
    return {
        "id": 1,
        "short_url": TEST_SLUG,
        "long_url": long_url,
        "user_id": TEST_OWNER,
        "created_at": now,
        "updated_at": now,
    }


def user_row(**overrides):
    now = datetime.now()
    row = {
        "id": 3,
        "email": "user@shortener.io",
        "password": "$2b$12$hash",
        "created_at": now,
        "updated_at": now,
        "refresh_token": None,
        "refresh_token_revoke_date": None,
    }
    row.update(overrides)
    return row


# Tests PostgresURLStore
async def test_create_returns_record(url_store, mock_conn):
    mock_conn.fetchrow.return_value = url_row()

    record = await url_store.create(TEST_OWNER, TEST_SLUG, TEST_URL)

    assert record.short_url == TEST_SLUG
    assert record.user_id == TEST_OWNER
    args = mock_conn.fetchrow.call_args
    assert args.args[1:] == (TEST_SLUG, TEST_URL, TEST_OWNER)
    assert args.kwargs["timeout"] == 2.5


async def test_create_unique_violation(url_store, mock_conn):
    mock_conn.fetchrow.side_effect = UniqueViolationError("duplicate key value")

    with pytest.raises(DuplicateKeyError) as exc_info:
        await url_store.create(TEST_OWNER, TEST_SLUG, TEST_URL)

    assert exc_info.value.identifier == TEST_SLUG


@pytest.mark.parametrize(
    "error",
    [PostgresError("boom"), OSError("connection reset"), asyncio.TimeoutError()],
)
async def test_get_by_key_driver_errors(url_store, mock_conn, error):
    mock_conn.fetchrow.side_effect = error

    with pytest.raises(UnexpectedError):
        await url_store.get_by_key(TEST_SLUG)


async def test_get_by_key_not_found(url_store, mock_conn):
    mock_conn.fetchrow.return_value = None

    with pytest.raises(NotFoundError):
        await url_store.get_by_key(TEST_SLUG)


async def test_update_is_owner_scoped(url_store, mock_conn):
    mock_conn.fetchrow.return_value = url_row("https://example.org")

    record = await url_store.update(TEST_OWNER, TEST_SLUG, "https://example.org")

    assert record.long_url == "https://example.org"
    query = mock_conn.fetchrow.call_args.args[0]
    assert "user_id = $2" in query
    assert "updated_at = CURRENT_TIMESTAMP" in query


async def test_update_missing_row(url_store, mock_conn):
    mock_conn.fetchrow.return_value = None

    with pytest.raises(NotFoundError):
        await url_store.update(TEST_OWNER, TEST_SLUG, TEST_URL)


async def test_delete_missing_row(url_store, mock_conn):
    mock_conn.fetchrow.return_value = None

    with pytest.raises(NotFoundError):
        await url_store.delete(TEST_OWNER, TEST_SLUG)


async def test_delete_success(url_store, mock_conn):
    mock_conn.fetchrow.return_value = {"id": 1}

    assert await url_store.delete(TEST_OWNER, TEST_SLUG) is None


# Tests PostgresUserStore
async def test_user_create_duplicate_email(user_store, mock_conn):
    mock_conn.fetchrow.side_effect = UniqueViolationError("duplicate key value")

    with pytest.raises(DuplicateKeyError):
        await user_store.create("user@shortener.io", "$2b$12$hash")


async def test_user_get_by_email(user_store, mock_conn):
    mock_conn.fetchrow.return_value = user_row()

    user = await user_store.get_by_email("user@shortener.io")

    assert user.id == 3
    assert user.password_hash == "$2b$12$hash"


async def test_user_get_by_refresh_token_not_found(user_store, mock_conn):
    mock_conn.fetchrow.return_value = None

    with pytest.raises(NotFoundError):
        await user_store.get_by_refresh_token("unknown")


async def test_user_update_refresh_token(user_store, mock_conn):
    revoke_date = datetime.now() + timedelta(days=60)
    mock_conn.fetchrow.return_value = user_row(
        refresh_token="abc", refresh_token_revoke_date=revoke_date
    )

    await user_store.update_refresh_token(3, "abc", revoke_date)

    assert mock_conn.fetchrow.call_args.args[1:] == (3, "abc", revoke_date)
