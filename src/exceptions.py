from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DUPLICATE_KEY = "duplicate_key"
    UNAUTHORIZED = "unauthorized"
    KEY_SPACE_EXHAUSTED = "key_space_exhausted"
    UNEXPECTED = "unexpected"


class ServiceError(Exception):
    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(ServiceError):
    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, details: str):
        self.field = field
        self.details = details
        super().__init__(f"Invalid {field}: {details}")


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, record_type: str, identifier: str):
        self.record_type = record_type
        self.identifier = identifier
        super().__init__(f"{record_type} not found for identifier: {identifier}")


class DuplicateKeyError(ServiceError):
    kind = ErrorKind.DUPLICATE_KEY

    def __init__(self, record_type: str, identifier: str):
        self.record_type = record_type
        self.identifier = identifier
        super().__init__(f"{record_type} already exists for identifier: {identifier}")


class AuthenticationError(ServiceError):
    kind = ErrorKind.UNAUTHORIZED


class UnexpectedError(ServiceError):
    kind = ErrorKind.UNEXPECTED

    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Operation '{operation}' failed: {details}")


class KeySpaceExhausted(UnexpectedError):
    kind = ErrorKind.KEY_SPACE_EXHAUSTED

    def __init__(self, long_url: str, probes: int):
        self.long_url = long_url
        self.probes = probes
        super().__init__(
            "Key generation", f"key space exhausted after {probes} probes for {long_url}"
        )


class CacheError(Exception):
    """Raised by the cache adapter; never leaves the service layer."""

    def __init__(self, operation: str, key: str, details: str):
        self.operation = operation
        self.key = key
        self.message = f"Cache {operation} failed for {key}: {details}"
        super().__init__(self.message)
