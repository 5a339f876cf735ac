"""Batch execution of management commands.

Commands come from the batchable builders in :mod:`.uris`. Results come
back as a JSON array whose position ``i`` belongs to command ``i``; there is
no operation id, so callers zip the two sequences.
"""
from __future__ import annotations

from typing import Optional, Sequence

from core.logging_config import get_logger
from .client import StorageHTTPClient
from .exceptions import InvalidArgumentError, LimitExceededError, ResponseError
from .models import BatchOpRet
from .region import RegionResolver

logger = get_logger(__name__)

MAX_BATCH_OPERATIONS = 1000


class BatchExecutor:
    def __init__(self, http: StorageHTTPClient, resolver: RegionResolver):
        self._http = http
        self._resolver = resolver

    async def execute(self, operations: Sequence[str], bucket: Optional[str] = None) -> list[BatchOpRet]:
        """Submit ``operations`` as one request.

        Per-item failures come back as non-2xx ``code`` entries; only
        transport or authentication failures raise.

        Args:
            operations: command strings, e.g. ``uri_delete(bucket, key)``
            bucket: route to this bucket's rs host instead of the central one

        Raises:
            LimitExceededError: more than 1000 operations, nothing is sent
        """
        if isinstance(operations, str):
            raise InvalidArgumentError("operations must be a sequence of command strings", field="operations")
        if len(operations) > MAX_BATCH_OPERATIONS:
            raise LimitExceededError(len(operations), MAX_BATCH_OPERATIONS)
        if not operations:
            return []

        if bucket:
            host = await self._resolver.rs_host(bucket)
        else:
            host = self._resolver.central_rs_host()

        form = [("op", op) for op in operations]
        logger.info("Submitting batch", count=len(operations), host=host)
        data = await self._http.call("POST", f"{host}/batch", data=form)

        if not isinstance(data, list):
            raise ResponseError("batch response is not a JSON array", body=data)
        if len(data) != len(operations):
            raise ResponseError(
                f"batch response has {len(data)} results for {len(operations)} operations",
                body=data,
            )

        results = [BatchOpRet.model_validate(item) for item in data]
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.info("Batch completed with failures", count=len(results), failed=failed)
        return results
