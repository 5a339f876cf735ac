"""Zones and bucket-to-zone resolution.

A ``Zone`` is the set of service hostnames serving one region. The
``RegionResolver`` maps a bucket to its zone: the configured static zone
wins outright, otherwise the zone is looked up once against the bucket
query endpoint and cached for the resolver's lifetime.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict

from core.logging_config import get_logger
from .exceptions import InvalidArgumentError, ResolutionError, StorageError

if TYPE_CHECKING:
    from .client import StorageHTTPClient
    from .config import StorageConfig

logger = get_logger(__name__)

ROLES = ("rs", "rsf", "io", "api")


def with_scheme(host: str, use_https: bool) -> str:
    """Prefix ``host`` with a scheme unless it already carries one."""
    if host.startswith("http://") or host.startswith("https://"):
        return host.rstrip("/")
    scheme = "https://" if use_https else "http://"
    return f"{scheme}{host.rstrip('/')}"


class RegionID(str, Enum):
    Z0 = "z0"    # east china
    Z1 = "z1"    # north china
    Z2 = "z2"    # south china
    NA0 = "na0"  # north america
    AS0 = "as0"  # southeast asia


class Zone(BaseModel):
    """Immutable set of service-role hostnames for one region."""
    model_config = ConfigDict(frozen=True)

    region_id: Optional[str] = None
    src_up_hosts: tuple[str, ...] = ()
    cdn_up_hosts: tuple[str, ...] = ()
    rs_host: str
    rsf_host: str
    api_host: str
    iovip_host: str

    def host(self, role: str, use_https: bool = False) -> str:
        attr = {"rs": "rs_host", "rsf": "rsf_host", "api": "api_host", "io": "iovip_host"}.get(role)
        if attr is None:
            raise ValueError(f"unknown service role: {role}")
        return with_scheme(getattr(self, attr), use_https)

    def get_rs_host(self, use_https: bool = False) -> str:
        return self.host("rs", use_https)

    def get_rsf_host(self, use_https: bool = False) -> str:
        return self.host("rsf", use_https)

    def get_api_host(self, use_https: bool = False) -> str:
        return self.host("api", use_https)

    def get_io_host(self, use_https: bool = False) -> str:
        return self.host("io", use_https)

    @classmethod
    def from_query(cls, data: Any) -> "Zone":
        """Build a zone from a ``/v4/query`` response body."""
        entry = data["hosts"][0]

        def domains(role: str) -> list[str]:
            found = entry[role]["domains"]
            if not found:
                raise ValueError(f"no {role} domains")
            return list(found)

        up = entry.get("up") or {}
        return cls(
            region_id=entry.get("region"),
            src_up_hosts=tuple(up.get("domains") or ()),
            cdn_up_hosts=tuple(up.get("old") or ()),
            rs_host=domains("rs")[0],
            rsf_host=domains("rsf")[0],
            api_host=domains("api")[0],
            iovip_host=domains("io")[0],
        )


def _region(region_id: RegionID, suffix: str) -> Zone:
    return Zone(
        region_id=region_id.value,
        src_up_hosts=(f"up{suffix}.qiniup.com",),
        cdn_up_hosts=(f"upload{suffix}.qiniup.com",),
        rs_host=f"rs-{region_id.value}.qiniuapi.com",
        rsf_host=f"rsf-{region_id.value}.qiniuapi.com",
        api_host=f"api{suffix}.qiniuapi.com",
        iovip_host=f"iovip{suffix}.qiniuio.com",
    )


KNOWN_REGIONS: dict[RegionID, Zone] = {
    RegionID.Z0: _region(RegionID.Z0, ""),
    RegionID.Z1: _region(RegionID.Z1, "-z1"),
    RegionID.Z2: _region(RegionID.Z2, "-z2"),
    RegionID.NA0: _region(RegionID.NA0, "-na0"),
    RegionID.AS0: _region(RegionID.AS0, "-as0"),
}

# Fixed region serving the domain-list endpoint
REGION_Z0 = KNOWN_REGIONS[RegionID.Z0]


def known_zone(region_id: str) -> Zone:
    """Built-in zone for a well-known region id."""
    try:
        return KNOWN_REGIONS[RegionID(region_id)]
    except ValueError:
        known = ", ".join(r.value for r in RegionID)
        raise InvalidArgumentError(
            f"unknown region id {region_id!r}; expected one of {known}", field="region_id"
        ) from None


class RegionResolver:
    """Resolves buckets to zones and zones to request hosts."""

    def __init__(self, access_key: Optional[str], config: "StorageConfig", http: "StorageHTTPClient"):
        self.access_key = access_key
        self.config = config
        self._http = http
        self._zones: dict[str, Zone] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def resolve(self, bucket: str) -> Zone:
        """Zone serving ``bucket``.

        Raises:
            ResolutionError: lookup failed; never falls back to a default host
        """
        if self.config.zone is not None:
            return self.config.zone

        zone = self._zones.get(bucket)
        if zone is not None:
            logger.debug("Resolved bucket zone", bucket=bucket, source="cache", region=zone.region_id)
            return zone

        lock = self._locks.setdefault(bucket, asyncio.Lock())
        async with lock:
            zone = self._zones.get(bucket)
            if zone is None:
                zone = await self._query(bucket)
                self._zones[bucket] = zone
                logger.info("Resolved bucket zone", bucket=bucket, source="remote",
                            region=zone.region_id, rs_host=zone.rs_host)
        return zone

    async def _query(self, bucket: str) -> Zone:
        if not self.access_key:
            raise ResolutionError(bucket, "access key is required for zone lookup")

        query = urlencode({"ak": self.access_key, "bucket": bucket})
        url = f"{self.uc_host()}/v4/query?{query}"
        try:
            data = await self._http.call("GET", url, signed=False)
        except StorageError as exc:
            logger.warning("Zone lookup failed", bucket=bucket, error=str(exc))
            raise ResolutionError(bucket, str(exc)) from exc

        try:
            return Zone.from_query(data)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ResolutionError(bucket, f"malformed query response: {exc!r}") from exc

    def cached(self, bucket: str) -> Optional[Zone]:
        return self._zones.get(bucket)

    def invalidate(self, bucket: Optional[str] = None) -> None:
        """Drop one cached zone, or all of them, with the lookup locks."""
        if bucket is None:
            self._zones.clear()
            self._locks.clear()
        else:
            self._zones.pop(bucket, None)
            self._locks.pop(bucket, None)

    async def _role_host(self, bucket: str, role: str) -> str:
        override = getattr(self.config, f"{role}_host")
        if override:
            return with_scheme(override, self.config.use_https)
        zone = await self.resolve(bucket)
        return zone.host(role, self.config.use_https)

    async def rs_host(self, bucket: str) -> str:
        return await self._role_host(bucket, "rs")

    async def rsf_host(self, bucket: str) -> str:
        return await self._role_host(bucket, "rsf")

    async def io_host(self, bucket: str) -> str:
        return await self._role_host(bucket, "io")

    async def api_host(self, bucket: str) -> str:
        return await self._role_host(bucket, "api")

    def central_rs_host(self) -> str:
        return with_scheme(self.config.central_rs_host, self.config.use_https)

    def uc_host(self) -> str:
        return with_scheme(self.config.uc_host, self.config.use_https)

    def z0_api_host(self) -> str:
        return REGION_Z0.get_api_host(self.config.use_https)
