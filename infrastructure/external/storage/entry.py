"""Entry encoding: the transport-safe token for a ``(bucket, key)`` pair."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Union

BytesLike = Union[str, bytes]

ENTRY_SEPARATOR = b":"


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def urlsafe_b64(data: BytesLike) -> str:
    """URL-safe base64 keeping the ``=`` padding."""
    return base64.urlsafe_b64encode(_to_bytes(data)).decode("ascii")


def encoded_entry(bucket: BytesLike, key: BytesLike) -> str:
    """Encode ``bucket:key``.

    The separator is joined on the raw bytes before encoding, so a key
    containing ``:`` (or any other byte) stays unambiguous.
    """
    return urlsafe_b64(_to_bytes(bucket) + ENTRY_SEPARATOR + _to_bytes(key))


def encoded_entry_without_key(bucket: BytesLike) -> str:
    """Encode a bucket alone, for operations addressing content by hash."""
    return urlsafe_b64(bucket)


def decode_entry(token: str) -> tuple[bytes, bytes]:
    """Reverse :func:`encoded_entry`.

    Bucket names never contain ``:``, so the first separator splits the pair.
    A token without separator decodes to ``(bucket, b"")``.
    """
    raw = base64.urlsafe_b64decode(token.encode("ascii"))
    bucket, _, key = raw.partition(ENTRY_SEPARATOR)
    return bucket, key


@dataclass(frozen=True)
class Entry:
    """Logical identity of a stored object. ``key`` may be empty."""

    bucket: str
    key: str = ""

    def encoded(self) -> str:
        return encoded_entry(self.bucket, self.key)

    def encoded_without_key(self) -> str:
        return encoded_entry_without_key(self.bucket)

    def __str__(self) -> str:
        return f"{self.bucket}:{self.key}"
