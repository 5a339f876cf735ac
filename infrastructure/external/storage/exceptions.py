"""Storage client exceptions."""
from __future__ import annotations

from typing import Any, Optional

from domain.common.exceptions import BusinessException
from shared.codes.storage_codes import SERVICE_STATUS_TO_CODE, StorageCode


class StorageError(BusinessException):
    """Base storage exception."""

    def __init__(
        self,
        message: str,
        *,
        code: int = StorageCode.RESPONSE_ERROR,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            error_type=type(self).__name__,
            details=details,
        )


class InvalidArgumentError(StorageError):
    """Precondition violated; raised before any request is sent."""

    def __init__(self, message: str, *, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, code=StorageCode.INVALID_ARGUMENT, details=details)
        self.field = field


class LimitExceededError(InvalidArgumentError):
    """Too many operations in a single batch."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            f"batch operation count exceeds the limit of {limit}",
            field="operations",
            details={"count": count, "limit": limit},
        )
        self.code = StorageCode.LIMIT_EXCEEDED
        self.count = count
        self.limit = limit


class ResolutionError(StorageError):
    """Bucket zone lookup could not complete."""

    def __init__(self, bucket: str, reason: str):
        super().__init__(
            f"failed to resolve zone for bucket {bucket!r}: {reason}",
            code=StorageCode.RESOLUTION_FAILED,
            details={"bucket": bucket},
        )
        self.bucket = bucket
        self.reason = reason


class ResponseError(StorageError):
    """Non-2xx response from the service."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        body: Any = None,
    ):
        code = SERVICE_STATUS_TO_CODE.get(status_code, StorageCode.RESPONSE_ERROR)
        super().__init__(
            message,
            code=code,
            details={"status_code": status_code, "request_id": request_id},
        )
        self.status_code = status_code
        self.request_id = request_id
        self.body = body

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class AuthenticationError(ResponseError):
    """Bad or missing credentials."""
    pass


class NotFoundError(ResponseError):
    """Object or bucket does not exist."""
    pass


class AlreadyExistsError(ResponseError):
    """Destination object already exists."""
    pass


class RateLimitError(ResponseError):
    """Request rejected by rate limiting."""
    pass


class ServerError(ResponseError):
    """Service side failure."""
    pass


class RetryableResponseError(ResponseError):
    """Transient response that the transport may retry."""

    def __init__(self, message: str, status_code: Optional[int], request_id: Optional[str] = None,
                 body: Any = None, retry_after: Optional[float] = None):
        super().__init__(message, status_code=status_code, request_id=request_id, body=body)
        self.retry_after = retry_after


class TransportError(StorageError):
    """Timeout or network failure after retries were exhausted."""

    def __init__(self, message: str):
        super().__init__(message, code=StorageCode.TRANSPORT_ERROR)


class StreamDecodeError(StorageError):
    """Malformed record in a listing stream."""

    def __init__(self, message: str, *, line: Optional[str] = None, records_delivered: int = 0):
        super().__init__(
            message,
            code=StorageCode.STREAM_DECODE_ERROR,
            details={"records_delivered": records_delivered},
        )
        self.line = line
        self.records_delivered = records_delivered


STATUS_ERROR_MAP: dict[int, type[ResponseError]] = {
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    612: NotFoundError,
    631: NotFoundError,
    614: AlreadyExistsError,
    429: RateLimitError,
    573: RateLimitError,
    500: ServerError,
    502: ServerError,
    503: ServerError,
    504: ServerError,
    599: ServerError,
}


def error_for_status(status_code: int) -> type[ResponseError]:
    """Pick the ResponseError subclass for a status code."""
    if status_code in STATUS_ERROR_MAP:
        return STATUS_ERROR_MAP[status_code]
    if 500 <= status_code < 600:
        return ServerError
    return ResponseError
