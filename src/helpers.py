import hashlib

from cachetools import LFUCache, cached
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

KEY_ALPHABET = "0123456789abcdef"
KEY_LENGTH = 7
PROBE_SALT = "Xa1"

http_url_adapter = TypeAdapter(HttpUrl)


@cached(LFUCache(maxsize=1000))
def generate_key(long_url: str, probe: int) -> str:
    """Derive the candidate short key for a long URL at a given probe.

    The salt is repeated ``probe`` times, so probe 0 hashes the bare URL.
    """

    digest = hashlib.md5((long_url + PROBE_SALT * probe).encode("utf-8")).hexdigest()
    return digest[:KEY_LENGTH]


def is_http_url(value: str) -> bool:
    """Same rule the HTTP layer applies to request bodies: http(s) with a host."""

    try:
        http_url_adapter.validate_python(value)
    except PydanticValidationError:
        return False
    return True
