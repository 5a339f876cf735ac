"""Object storage management client and lifecycle management."""
from typing import Optional
from functools import lru_cache

from core.config import settings
from core.logging_config import get_logger
from .bucket_manager import BucketManager
from .config import StorageConfig
from .region import known_zone

logger = get_logger(__name__)

# Global bucket manager instance
_bucket_manager: Optional[BucketManager] = None


@lru_cache
def get_storage_config() -> StorageConfig:
    """Get storage configuration from settings.

    Assembles StorageConfig from core.config.settings to maintain
    single source of truth for configuration. A configured ``region_id``
    becomes the static zone, which disables remote zone lookup.

    Returns:
        Storage configuration instance
    """
    s = settings.storage
    zone = known_zone(s.region_id) if s.region_id else None
    return StorageConfig(
        access_key=s.access_key,
        secret_key=s.secret_key,
        use_https=s.use_https,
        zone=zone,
        rs_host=s.rs_host,
        rsf_host=s.rsf_host,
        io_host=s.io_host,
        api_host=s.api_host,
        central_rs_host=s.central_rs_host,
        uc_host=s.uc_host,
        timeout=s.timeout,
        max_retry_attempts=s.max_retry_attempts,
        retry_delay=s.retry_delay,
        debug=s.debug or settings.DEBUG,
    )


async def init_bucket_manager(config: Optional[StorageConfig] = None) -> BucketManager:
    """Initialize the process-level bucket manager.

    Args:
        config: Explicit configuration; defaults to get_storage_config()
    """
    global _bucket_manager

    if _bucket_manager is not None:
        logger.warning("Bucket manager already initialized")
        return _bucket_manager

    try:
        config = config or get_storage_config()
        _bucket_manager = BucketManager(config)
        logger.info(
            "Bucket manager initialized",
            region=config.zone.region_id if config.zone else None,
            use_https=config.use_https,
        )
    except Exception as e:
        logger.error("Failed to initialize bucket manager", error=str(e))
        raise
    return _bucket_manager


def get_bucket_manager() -> BucketManager:
    """Get the bucket manager instance.

    Raises:
        RuntimeError: If the manager is not initialized
    """
    if _bucket_manager is None:
        raise RuntimeError(
            "Bucket manager not initialized. "
            "Call init_bucket_manager() during startup."
        )
    return _bucket_manager


async def shutdown_bucket_manager() -> None:
    """Close the bucket manager's HTTP client and drop the instance."""
    global _bucket_manager

    if _bucket_manager is None:
        return

    try:
        await _bucket_manager.close()
        logger.info("Bucket manager shutdown")
    finally:
        _bucket_manager = None


# Export public interface
__all__ = [
    # Lifecycle
    "init_bucket_manager",
    "get_bucket_manager",
    "shutdown_bucket_manager",

    # Configuration
    "get_storage_config",
    "StorageConfig",
    "Zone",
    "RegionID",
    "KNOWN_REGIONS",
    "RegionResolver",

    # Clients
    "BucketManager",
    "Credentials",
    "ListingEngine",
    "ListStream",
    "StreamState",
    "BatchExecutor",

    # Models
    "FileInfo",
    "FetchRet",
    "ListItem",
    "ListFilesResult",
    "ListRecord",
    "BatchOpRet",
    "DomainInfo",
    "AsyncFetchParam",
    "AsyncFetchRet",

    # Exceptions
    "StorageError",
    "InvalidArgumentError",
    "LimitExceededError",
    "ResolutionError",
    "ResponseError",
    "NotFoundError",
    "TransportError",
    "StreamDecodeError",

    # Builders
    "encoded_entry",
    "encoded_entry_without_key",
    "make_public_url",
    "make_private_url",
    "url_encode_query",
]

# Import models and exceptions for easier access
from .auth import Credentials
from .batch import BatchExecutor
from .entry import encoded_entry, encoded_entry_without_key
from .listing import ListingEngine, ListStream, StreamState
from .models import (
    AsyncFetchParam,
    AsyncFetchRet,
    BatchOpRet,
    DomainInfo,
    FetchRet,
    FileInfo,
    ListFilesResult,
    ListItem,
    ListRecord,
)
from .region import KNOWN_REGIONS, RegionID, RegionResolver, Zone
from .exceptions import (
    StorageError,
    InvalidArgumentError,
    LimitExceededError,
    ResolutionError,
    ResponseError,
    NotFoundError,
    TransportError,
    StreamDecodeError,
)
from .urls import make_private_url, make_public_url, url_encode_query
