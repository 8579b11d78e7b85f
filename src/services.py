import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from src.auth import (
    decode_access_token,
    generate_refresh_token,
    hash_password,
    issue_access_token,
    verify_password,
)
from src.cache import URLCache
from src.config import Settings
from src.exceptions import (
    AuthenticationError,
    CacheError,
    DuplicateKeyError,
    KeySpaceExhausted,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from src.helpers import generate_key, is_http_url
from src.models import URLRecord, User
from src.repository import URLStore, UserStore

logger = logging.getLogger(__name__)


class URLService:
    """Creates, resolves, updates and deletes short URLs.

    The store is the source of truth. The cache is read-through on lookup,
    overwritten after every update and invalidated on delete; its failures
    are logged and never reach the caller.

    A lookup that reads the row just before a concurrent delete commits will
    still write the entry back, so a deleted key can keep redirecting for up
    to one cache TTL.
    """

    def __init__(self, store: URLStore, cache: URLCache, settings: Settings):
        self.store = store
        self.cache = cache
        self.cache_ttl = settings.cache_expiry_seconds
        self.start_probe = settings.key_start_probe
        self.max_probes = settings.max_key_probes
        self.max_create_attempts = settings.max_create_attempts

    async def resolve_unique_key(
        self, long_url: str, start_probe: Optional[int] = None
    ) -> Tuple[str, int]:
        """Return the first free key for ``long_url`` and the probe that produced it."""

        first = self.start_probe if start_probe is None else start_probe
        for probe in range(first, self.max_probes):
            key = generate_key(long_url, probe)
            try:
                await self.store.get_by_key(key)
            except NotFoundError:
                return key, probe
            logger.info(f"Key collision on probe {probe}: {key} already taken")

        logger.error(f"Key space exhausted for url: {long_url}")
        raise KeySpaceExhausted(long_url, max(self.max_probes - first, 0))

    async def create_short_url(self, owner_id: int, long_url: str) -> URLRecord:
        _require_url(long_url)

        probe = self.start_probe
        for attempt in range(1, self.max_create_attempts + 1):
            key, probe = await self.resolve_unique_key(long_url, probe)
            try:
                record = await self.store.create(owner_id, key, long_url)
            except DuplicateKeyError:
                logger.warning(
                    f"Key {key} was taken before insert (attempt {attempt}), "
                    f"retrying from probe {probe + 1}"
                )
                probe += 1
                continue

            await self._cache_set(record.short_url, record.long_url)
            logger.info(f"URL shortened: {record.long_url} -> {record.short_url}")
            return record

        logger.error(
            f"Could not insert a short key for url {long_url} "
            f"after {self.max_create_attempts} attempts"
        )
        raise UnexpectedError(
            "Create URL",
            f"duplicate keys on all {self.max_create_attempts} attempts for {long_url}",
        )

    async def get_long_url(self, short_key: str) -> str:
        if not short_key:
            raise ValidationError("short key", "must not be empty")

        try:
            cached_url = await self.cache.get(short_key)
        except CacheError as exc:
            logger.warning(f"Cache unavailable, falling back to store: {exc.message}")
            cached_url = None

        if isinstance(cached_url, str) and is_http_url(cached_url):
            logger.info(f"Cache hit - Redirecting: {short_key} -> {cached_url}")
            return cached_url
        if cached_url:
            logger.warning(f"Ignoring malformed cache entry for {short_key}")

        record = await self.store.get_by_key(short_key)
        await self._cache_set(short_key, record.long_url)
        logger.info(f"URL found and cached - Redirecting: {short_key} -> {record.long_url}")
        return record.long_url

    async def update_short_url(
        self, owner_id: int, short_key: str, long_url: str
    ) -> URLRecord:
        _require_url(long_url)

        record = await self.store.update(owner_id, short_key, long_url)
        await self._cache_set(record.short_url, record.long_url)
        logger.info(f"URL updated: {record.short_url} -> {record.long_url}")
        return record

    async def delete_short_url(self, owner_id: int, short_key: str) -> None:
        await self.store.delete(owner_id, short_key)
        try:
            await self.cache.delete(short_key)
        except CacheError as exc:
            logger.warning(f"Stale cache entry may remain until expiry: {exc.message}")
        logger.info(f"URL deleted: {short_key}")

    async def _cache_set(self, short_key: str, long_url: str) -> None:
        try:
            await self.cache.set(short_key, long_url, self.cache_ttl)
        except CacheError as exc:
            logger.warning(exc.message)


def _require_url(long_url: str) -> None:
    if not long_url:
        raise ValidationError("long url", "must not be empty")
    if not is_http_url(long_url):
        raise ValidationError("long url", f"{long_url} is not an http(s) URL")


class UserService:
    def __init__(self, store: UserStore, settings: Settings):
        self.store = store
        self.jwt_secret = settings.jwt_secret
        self.access_token_ttl = settings.access_token_ttl_seconds
        self.refresh_token_ttl = timedelta(days=settings.refresh_token_ttl_days)

    async def create_user(self, email: str, password: str) -> User:
        _require_credentials(email, password)
        user = await self.store.create(email, hash_password(password))
        logger.info(f"User created: {user.id}")
        return user

    async def login_user(self, email: str, password: str) -> Tuple[User, str, str]:
        """Check credentials and return the user with an access and a refresh token."""

        _require_credentials(email, password)
        try:
            user = await self.store.get_by_email(email)
        except NotFoundError as exc:
            logger.warning(f"Login attempt for unknown email: {email}")
            raise AuthenticationError("Invalid email or password") from exc

        if not verify_password(password, user.password_hash):
            logger.warning(f"Login attempt with wrong password for user {user.id}")
            raise AuthenticationError("Invalid email or password")

        refresh_token = generate_refresh_token()
        revoke_date = datetime.now(timezone.utc) + self.refresh_token_ttl
        await self.store.update_refresh_token(user.id, refresh_token, revoke_date)

        token = issue_access_token(user.id, self.jwt_secret, self.access_token_ttl)
        logger.info(f"User logged in: {user.id}")
        return user, token, refresh_token

    async def refresh_access_token(self, refresh_token: str) -> str:
        if not refresh_token:
            raise AuthenticationError("Missing refresh token")
        try:
            user = await self.store.get_by_refresh_token(refresh_token)
        except NotFoundError as exc:
            raise AuthenticationError("Unknown refresh token") from exc

        revoke_date = user.refresh_token_revoke_date
        if revoke_date is None or _as_utc(revoke_date) <= datetime.now(timezone.utc):
            logger.info(f"Expired refresh token used by user {user.id}")
            raise AuthenticationError("Refresh token expired, please login again")

        return issue_access_token(user.id, self.jwt_secret, self.access_token_ttl)

    async def update_user(self, user_id: int, email: str, password: str) -> User:
        _require_credentials(email, password)
        user = await self.store.update(user_id, email, hash_password(password))
        logger.info(f"User updated: {user.id}")
        return user

    async def authenticate(self, token: str) -> User:
        user_id = decode_access_token(token, self.jwt_secret)
        try:
            return await self.store.get_by_id(user_id)
        except NotFoundError as exc:
            raise AuthenticationError("Token subject no longer exists") from exc


def _require_credentials(email: str, password: str) -> None:
    if not email:
        raise ValidationError("email", "must not be empty")
    if not password:
        raise ValidationError("password", "must not be empty")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
