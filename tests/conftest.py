"""Pytest bootstrap configuration.

Ensure storage settings come from a known state before test collection
and module imports that depend on application settings.
"""
import os

os.environ.setdefault("STORAGE__ACCESS_KEY", "test-ak")
os.environ.setdefault("STORAGE__SECRET_KEY", "test-sk")

from typing import Callable, Optional

import httpx
import pytest

from infrastructure.external.storage.bucket_manager import BucketManager
from infrastructure.external.storage.config import StorageConfig
from infrastructure.external.storage.region import KNOWN_REGIONS, RegionID

ACCESS_KEY = "test-ak"
SECRET_KEY = "test-sk"


class Recorder:
    """Collects requests seen by a MockTransport handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def count(self) -> int:
        return len(self.requests)


def make_manager(handler, config: Optional[StorageConfig] = None) -> tuple[BucketManager, Recorder]:
    recorder = handler if isinstance(handler, Recorder) else Recorder(handler)
    if config is None:
        config = StorageConfig(
            access_key=ACCESS_KEY,
            secret_key=SECRET_KEY,
            zone=KNOWN_REGIONS[RegionID.Z0],
            max_retry_attempts=0,
            retry_delay=0,
        )
    return BucketManager(config, transport=httpx.MockTransport(recorder)), recorder


@pytest.fixture
def manager_factory():
    return make_manager
