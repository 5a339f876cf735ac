"""Storage configuration models."""
from typing import Optional
from pydantic import BaseModel, ConfigDict

from .region import Zone, known_zone

DEFAULT_RS_HOST = "rs.qiniu.com"
DEFAULT_UC_HOST = "uc.qbox.me"
# legacy mirror-source endpoint, always plain http
DEFAULT_PUB_HOST = "pu.qbox.me:10200"


class StorageConfig(BaseModel):
    """Storage configuration model."""
    model_config = ConfigDict(use_enum_values=True)

    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    use_https: bool = False
    # Static zone: when set, remote resolution is skipped entirely
    zone: Optional[Zone] = None

    # Per-role host overrides; checked on every call, never cached
    rs_host: Optional[str] = None
    rsf_host: Optional[str] = None
    io_host: Optional[str] = None
    api_host: Optional[str] = None

    central_rs_host: str = DEFAULT_RS_HOST
    uc_host: str = DEFAULT_UC_HOST

    # Transport
    timeout: float = 30.0
    max_retry_attempts: int = 2
    retry_delay: float = 0.5
    debug: bool = False

    @classmethod
    def for_region(cls, region_id: str, **kwargs) -> "StorageConfig":
        """Config pinned to a well-known region."""
        return cls(zone=known_zone(region_id), **kwargs)

    @property
    def scheme(self) -> str:
        return "https://" if self.use_https else "http://"
