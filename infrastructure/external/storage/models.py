"""Storage data transfer objects.

Field names follow the service's JSON (camelCase aliases); attributes are
snake_case. Every model accepts both spellings.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ServiceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FileInfo(_ServiceModel):
    """Metadata returned by stat."""
    hash: str = ""
    fsize: int = 0
    # 100ns units; drop the low 7 digits for a unix timestamp
    put_time: int = Field(default=0, alias="putTime")
    restore_status: int = Field(default=0, alias="restoreStatus")
    mime_type: str = Field(default="", alias="mimeType")
    type: int = 0
    end_user: str = Field(default="", alias="endUser")
    status: int = 0
    md5: str = ""
    expiration: int = 0
    transition_to_ia: int = Field(default=0, alias="transitionToIA")
    transition_to_archive: int = Field(default=0, alias="transitionToARCHIVE")
    transition_to_deep_archive: int = Field(default=0, alias="transitionToDeepArchive")
    parts: list[int] = Field(default_factory=list)


class FetchRet(_ServiceModel):
    """Result of fetching a remote resource into a bucket."""
    hash: str = ""
    fsize: int = 0
    mime_type: str = Field(default="", alias="mimeType")
    key: str = ""


class ListItem(_ServiceModel):
    """One object's metadata snapshot from a listing."""
    key: str = ""
    hash: str = ""
    fsize: int = 0
    put_time: int = Field(default=0, alias="putTime")
    mime_type: str = Field(default="", alias="mimeType")
    type: int = 0
    end_user: str = Field(default="", alias="endUser")

    def is_empty(self) -> bool:
        """Padding records carry no key, hash, size or put time."""
        return self.key == "" and self.hash == "" and self.fsize == 0 and self.put_time == 0


class ListFilesResult(_ServiceModel):
    """One page of a bounded listing."""
    items: list[ListItem] = Field(default_factory=list)
    common_prefixes: list[str] = Field(default_factory=list, alias="commonPrefixes")
    marker: str = ""

    @field_validator("items", "common_prefixes", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        return [] if v is None else v

    @property
    def next_marker(self) -> str:
        return self.marker

    @property
    def has_next(self) -> bool:
        return self.marker != ""


class ListRecord(_ServiceModel):
    """One record of a streaming listing.

    Either an object entry, a directory (``dir`` set, empty item) or a bare
    continuation marker.
    """
    marker: str = ""
    item: ListItem = Field(default_factory=ListItem)
    dir: str = ""

    @field_validator("item", mode="before")
    @classmethod
    def _null_item(cls, v):
        return {} if v is None else v

    @property
    def is_dir(self) -> bool:
        return self.dir != ""


class BatchOpData(_ServiceModel):
    hash: str = ""
    fsize: int = 0
    put_time: int = Field(default=0, alias="putTime")
    mime_type: str = Field(default="", alias="mimeType")
    type: int = 0
    error: str = ""


class BatchOpRet(_ServiceModel):
    """Result of one batch operation, aligned with the submitted position."""
    code: int = 0
    data: BatchOpData = Field(default_factory=BatchOpData)

    @field_validator("data", mode="before")
    @classmethod
    def _null_data(cls, v):
        return {} if v is None else v

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 300

    @property
    def error(self) -> Optional[str]:
        if self.ok:
            return None
        return self.data.error or f"operation failed with code {self.code}"


class DomainInfo(_ServiceModel):
    """A domain bound to a bucket."""
    domain: str = ""
    tbl: str = ""
    owner: int = Field(default=0, alias="uid")
    refresh: bool = False
    ctime: int = 0
    utime: int = 0


class AsyncFetchParam(_ServiceModel):
    """Request body for an asynchronous fetch task."""
    url: str
    bucket: str
    host: Optional[str] = None
    key: Optional[str] = None
    md5: Optional[str] = None
    etag: Optional[str] = None
    callback_url: Optional[str] = Field(default=None, alias="callbackurl")
    callback_body: Optional[str] = Field(default=None, alias="callbackbody")
    callback_body_type: Optional[str] = Field(default=None, alias="callbackbodytype")
    file_type: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        # the service treats present-but-empty fields as set
        return self.model_dump(by_alias=True, exclude_none=True)


class AsyncFetchRet(_ServiceModel):
    id: str = ""
    wait: int = 0
