from urllib.parse import parse_qs

import httpx
import pytest

from infrastructure.external.storage.exceptions import (
    InvalidArgumentError,
    LimitExceededError,
    ResponseError,
)
from infrastructure.external.storage.uris import uri_delete, uri_stat
from shared.codes.storage_codes import StorageCode


def _ops_of(request: httpx.Request) -> list[str]:
    return parse_qs(request.content.decode())["op"]


def _all_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=[{"code": 200} for _ in _ops_of(request)])


@pytest.mark.asyncio
async def test_over_limit_is_rejected_before_sending(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    ops = [uri_delete("b", f"k{i}") for i in range(1001)]
    async with manager:
        with pytest.raises(LimitExceededError) as exc_info:
            await manager.batch(ops)
    assert exc_info.value.code == StorageCode.LIMIT_EXCEEDED
    assert exc_info.value.count == 1001
    assert recorder.count == 0


@pytest.mark.asyncio
async def test_exactly_limit_is_sent_once(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    ops = [uri_delete("b", f"k{i}") for i in range(1000)]
    async with manager:
        results = await manager.batch(ops)
    assert recorder.count == 1
    assert len(results) == 1000
    assert all(r.ok for r in results)


@pytest.mark.asyncio
async def test_form_preserves_order_on_central_host(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    ops = [uri_stat("b", "z"), uri_delete("b", "a"), uri_stat("b", "m")]
    async with manager:
        await manager.batch(ops)
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://rs.qiniu.com/batch"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert _ops_of(request) == ops


@pytest.mark.asyncio
async def test_bucket_routes_to_its_rs_host(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    async with manager:
        await manager.batch([uri_delete("b", "a")], bucket="b")
    assert recorder.requests[0].url.host == "rs-z0.qiniuapi.com"


@pytest.mark.asyncio
async def test_partial_failure_results_align_by_position(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(298, json=[
            {"code": 200, "data": {"hash": "h1", "fsize": 10, "putTime": 15000000000000000, "mimeType": "image/png"}},
            {"code": 612, "data": {"error": "no such file or directory"}},
            {"code": 200, "data": {"hash": "h3", "fsize": 30, "putTime": 15000000000000001, "mimeType": "text/plain"}},
        ])

    manager, _ = manager_factory(handler)
    ops = [uri_stat("b", "A"), uri_delete("b", "B"), uri_stat("b", "C")]
    async with manager:
        results = await manager.batch(ops)

    assert [r.code for r in results] == [200, 612, 200]
    assert results[0].data.hash == "h1"
    assert results[0].data.mime_type == "image/png"
    assert results[1].ok is False
    assert results[1].error == "no such file or directory"
    assert results[2].data.fsize == 30
    assert results[2].error is None


@pytest.mark.asyncio
async def test_empty_batch_sends_nothing(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    async with manager:
        assert await manager.batch([]) == []
    assert recorder.count == 0


@pytest.mark.asyncio
async def test_single_string_is_rejected(manager_factory):
    manager, recorder = manager_factory(_all_ok)
    async with manager:
        with pytest.raises(InvalidArgumentError):
            await manager.batch(uri_delete("b", "a"))
    assert recorder.count == 0


@pytest.mark.asyncio
async def test_result_count_mismatch(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"code": 200}])

    manager, _ = manager_factory(handler)
    async with manager:
        with pytest.raises(ResponseError):
            await manager.batch([uri_delete("b", "a"), uri_delete("b", "c")])
