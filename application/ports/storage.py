"""Application-owned storage port abstraction (hexagonal architecture).

Defines the minimal capabilities the application relies on so callers
do not depend on the concrete bucket manager or credential storage.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Opaque signing capability: returns a token over the exact bytes given."""

    access_key: str

    def sign(self, data: bytes) -> str: ...


@runtime_checkable
class ObjectManagerPort(Protocol):
    async def stat(self, bucket: str, key: str, need_parts: bool = False) -> Any: ...

    async def delete(self, bucket: str, key: str) -> None: ...

    async def copy(
        self,
        src_bucket: str,
        src_key: str,
        dest_bucket: str,
        dest_key: str,
        force: bool = False,
    ) -> None: ...

    async def batch(self, operations: Sequence[str], bucket: Optional[str] = None) -> list[Any]: ...

    async def list_files(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        limit: int = 1000,
    ) -> Any: ...

    def make_private_url(self, domain: str, key: str, deadline: int) -> str: ...
