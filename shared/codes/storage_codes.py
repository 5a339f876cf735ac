"""
Object storage specific codes and service status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class StorageCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Client-side preconditions (7xxxx)
    INVALID_ARGUMENT = 70000
    LIMIT_EXCEEDED = 70001

    # Region resolution (71xxx)
    RESOLUTION_FAILED = 71000

    # Service responses (72xxx)
    RESPONSE_ERROR = 72000
    UNAUTHORIZED = 72001
    NOT_FOUND = 72002
    ALREADY_EXISTS = 72003
    RATE_LIMITED = 72004
    SERVER_ERROR = 72005
    TRANSPORT_ERROR = 72006

    # Listing stream (73xxx)
    STREAM_DECODE_ERROR = 73000


# Service HTTP status -> StorageCode. The service uses 6xx codes for
# object level conditions on top of the standard ones.
SERVICE_STATUS_TO_CODE = {
    401: StorageCode.UNAUTHORIZED,
    403: StorageCode.UNAUTHORIZED,
    404: StorageCode.NOT_FOUND,
    612: StorageCode.NOT_FOUND,  # no such file or directory
    631: StorageCode.NOT_FOUND,  # no such bucket
    614: StorageCode.ALREADY_EXISTS,  # file exists
    429: StorageCode.RATE_LIMITED,
    573: StorageCode.RATE_LIMITED,  # too many requests
    500: StorageCode.SERVER_ERROR,
    502: StorageCode.SERVER_ERROR,
    503: StorageCode.SERVER_ERROR,
    504: StorageCode.SERVER_ERROR,
    599: StorageCode.SERVER_ERROR,
}
