import json

import httpx
import pytest

from application.ports.storage import ObjectManagerPort
from infrastructure.external.storage.config import StorageConfig
from infrastructure.external.storage.entry import encoded_entry
from infrastructure.external.storage.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    ResponseError,
    ServerError,
    TransportError,
)
from infrastructure.external.storage.models import AsyncFetchParam
from infrastructure.external.storage.region import KNOWN_REGIONS, RegionID
from shared.codes.storage_codes import StorageCode

EE = encoded_entry("bucket", "key")


def _ok(payload=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload if payload is not None else {})
    return handler


def test_manager_satisfies_port(manager_factory):
    manager, _ = manager_factory(_ok())
    assert isinstance(manager, ObjectManagerPort)


@pytest.mark.asyncio
async def test_stat(manager_factory):
    manager, recorder = manager_factory(_ok({
        "hash": "FhHk", "fsize": 1024, "putTime": 16000000000000000,
        "mimeType": "image/jpeg", "type": 1, "md5": "abc", "transitionToIA": 1700000000,
    }))
    async with manager:
        info = await manager.stat("bucket", "key")
        await manager.stat("bucket", "key", need_parts=True)
    assert info.fsize == 1024
    assert info.mime_type == "image/jpeg"
    assert info.transition_to_ia == 1700000000
    assert str(recorder.requests[0].url) == f"http://rs-z0.qiniuapi.com/stat/{EE}"
    assert recorder.requests[1].url.params["needparts"] == "true"


@pytest.mark.asyncio
async def test_service_error_is_typed(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(612, json={"error": "no such file or directory"}, headers={"X-Reqid": "req-1"})

    manager, _ = manager_factory(handler)
    async with manager:
        with pytest.raises(NotFoundError) as exc_info:
            await manager.stat("bucket", "key")
    err = exc_info.value
    assert err.message == "no such file or directory"
    assert err.status_code == 612
    assert err.request_id == "req-1"
    assert err.code == StorageCode.NOT_FOUND
    assert str(err) == "no such file or directory | Status: 612 | Request ID: req-1"


@pytest.mark.asyncio
async def test_copy_conflict(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(614, json={"error": "file exists"})

    manager, _ = manager_factory(handler)
    async with manager:
        with pytest.raises(AlreadyExistsError):
            await manager.copy("bucket", "key", "bucket", "other")


@pytest.mark.asyncio
async def test_object_commands_hit_rs_host(manager_factory):
    manager, recorder = manager_factory(_ok())
    async with manager:
        await manager.delete("bucket", "key")
        await manager.move("bucket", "key", "bucket2", "key2", force=True)
        await manager.update_object_status("bucket", "key", enable=False)
        await manager.change_mime("bucket", "key", "text/plain")
        await manager.change_type("bucket", "key", 2)
        await manager.restore_ar("bucket", "key", 5)
        await manager.delete_after_days("bucket", "key", 0)
        await manager.change_lifecycle("bucket", "key", to_archive_after_days=30)

    paths = [r.url.path for r in recorder.requests]
    assert all(r.url.host == "rs-z0.qiniuapi.com" for r in recorder.requests)
    assert all(r.method == "POST" for r in recorder.requests)
    assert paths[0] == f"/delete/{EE}"
    assert paths[1] == f"/move/{EE}/{encoded_entry('bucket2', 'key2')}/force/true"
    assert paths[2] == f"/chstatus/{EE}/status/1"
    assert paths[4] == f"/chtype/{EE}/type/2"
    assert paths[5] == f"/restoreAr/{EE}/freezeAfterDays/5"
    assert paths[6] == f"/deleteAfterDays/{EE}/0"
    assert paths[7] == f"/lifecycle/{EE}/toArchiveAfterDays/30"


@pytest.mark.asyncio
async def test_fetch_uses_io_host(manager_factory):
    manager, recorder = manager_factory(_ok({"hash": "h", "fsize": 3, "mimeType": "text/plain", "key": "key"}))
    async with manager:
        ret = await manager.fetch("http://example.com/a.txt", "bucket", "key")
        await manager.fetch_without_key("http://example.com/a.txt", "bucket")
        await manager.prefetch("bucket", "key")
    assert ret.key == "key"
    assert ret.fsize == 3
    assert {r.url.host for r in recorder.requests} == {"iovip.qiniuio.com"}
    assert recorder.requests[2].url.path == f"/prefetch/{EE}"


@pytest.mark.asyncio
async def test_async_fetch_posts_json(manager_factory):
    manager, recorder = manager_factory(_ok({"id": "task-1", "wait": 3}))
    param = AsyncFetchParam(url="http://example.com/a.txt", bucket="bucket", key="a.txt", callback_url="http://cb")
    async with manager:
        ret = await manager.async_fetch(param)
    request = recorder.requests[0]
    assert str(request.url) == "http://api.qiniuapi.com/sisyphus/fetch"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "url": "http://example.com/a.txt",
        "bucket": "bucket",
        "key": "a.txt",
        "callbackurl": "http://cb",
    }
    assert ret.id == "task-1"
    assert ret.wait == 3


@pytest.mark.asyncio
async def test_mirror_source_uses_legacy_host(manager_factory):
    manager, recorder = manager_factory(_ok())
    async with manager:
        await manager.set_image("http://origin.example.com", "bucket")
        await manager.set_image_with_host("http://origin.example.com", "bucket", "cdn.example.com")
        await manager.unset_image("bucket")
    for request in recorder.requests:
        assert request.url.scheme == "http"
        assert request.url.host == "pu.qbox.me"
        assert request.url.port == 10200
    assert recorder.requests[2].url.path == "/unimage/bucket"


@pytest.mark.asyncio
async def test_bucket_level_operations(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v7/domain/list":
            return httpx.Response(200, json=[{"domain": "cdn.example.com", "tbl": "bucket", "uid": 42}])
        if request.url.path == "/buckets":
            return httpx.Response(200, json=["a", "b"])
        return httpx.Response(200)

    manager, recorder = manager_factory(handler)
    async with manager:
        domains = await manager.list_bucket_domains("bucket")
        names = await manager.buckets(shared=True)
        await manager.create_bucket("new", RegionID.Z1)
        await manager.drop_bucket("old")

    assert domains[0].domain == "cdn.example.com"
    assert domains[0].owner == 42
    assert names == ["a", "b"]

    domain_req, buckets_req, create_req, drop_req = recorder.requests
    assert domain_req.method == "GET"
    assert str(domain_req.url) == "http://api.qiniuapi.com/v7/domain/list?tbl=bucket"
    assert str(buckets_req.url) == "http://uc.qbox.me/buckets?shared=true"
    assert str(create_req.url) == "http://uc.qbox.me/mkbucketv3/new/region/z1"
    assert str(drop_req.url) == "http://uc.qbox.me/drop/old"


@pytest.mark.asyncio
async def test_create_bucket_accepts_any_region_name(manager_factory):
    manager, recorder = manager_factory(_ok())
    async with manager:
        await manager.create_bucket("new", "cn-east-2")
        with pytest.raises(InvalidArgumentError) as exc_info:
            await manager.create_bucket("new", "")
    assert exc_info.value.field == "region_id"
    assert recorder.count == 1
    assert recorder.requests[0].url.path == "/mkbucketv3/new/region/cn-east-2"


@pytest.mark.asyncio
async def test_non_json_success_body_is_response_error(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>", headers={"content-type": "text/plain", "x-reqid": "r1"})

    manager, _ = manager_factory(handler)
    async with manager:
        with pytest.raises(ResponseError) as exc_info:
            await manager.stat("bucket", "key")
    assert exc_info.value.status_code == 200
    assert exc_info.value.request_id == "r1"
    assert "not valid JSON" in exc_info.value.message


@pytest.mark.asyncio
async def test_transient_status_is_retried(manager_factory):
    statuses = iter([503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status != 200:
            return httpx.Response(status, json={"error": "service unavailable"})
        return httpx.Response(200, json={"fsize": 1})

    config = StorageConfig(
        access_key="test-ak",
        secret_key="test-sk",
        zone=KNOWN_REGIONS[RegionID.Z0],
        max_retry_attempts=1,
        retry_delay=0,
    )
    manager, recorder = manager_factory(handler, config=config)
    async with manager:
        info = await manager.stat("bucket", "key")
    assert info.fsize == 1
    assert recorder.count == 2


@pytest.mark.asyncio
async def test_retries_exhausted_raise_server_error(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(599, json={"error": "server error"})

    manager, recorder = manager_factory(handler)
    async with manager:
        with pytest.raises(ServerError) as exc_info:
            await manager.delete("bucket", "key")
    assert exc_info.value.status_code == 599
    assert recorder.count == 1


@pytest.mark.asyncio
async def test_network_failure_becomes_transport_error(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    manager, _ = manager_factory(handler)
    async with manager:
        with pytest.raises(TransportError) as exc_info:
            await manager.delete("bucket", "key")
    assert exc_info.value.code == StorageCode.TRANSPORT_ERROR


def test_make_private_url_uses_own_credentials(manager_factory):
    manager, recorder = manager_factory(_ok())
    url = manager.make_private_url("http://cdn.example.com", "a b.jpg", 1700000000)
    assert url.startswith("http://cdn.example.com/a%20b.jpg?e=1700000000&token=test-ak:")
    assert recorder.count == 0
    with pytest.raises(InvalidArgumentError):
        manager.make_private_url("http://cdn.example.com", "a.jpg", 0)
