import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from src.exceptions import AuthenticationError

TOKEN_ISSUER = "url-short-auth"
TOKEN_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def issue_access_token(user_id: int, secret: str, ttl_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(claims, secret, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str, secret: str) -> int:
    """Return the user id carried by a valid access token."""

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[TOKEN_ALGORITHM],
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "iss", "sub"]},
        )
        return int(claims["sub"])
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid access token: {str(exc)}") from exc
    except ValueError as exc:
        raise AuthenticationError("Invalid access token subject") from exc


def generate_refresh_token() -> str:
    return secrets.token_hex(32)
