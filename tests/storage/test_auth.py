import base64
import hmac
from hashlib import sha1

import httpx
import pytest

from infrastructure.external.storage.auth import Credentials, FORM_MIME, BINARY_MIME


def _sign(data: bytes) -> str:
    return "ak:" + base64.urlsafe_b64encode(hmac.new(b"sk", data, sha1).digest()).decode()


def test_credentials_require_both_keys():
    with pytest.raises(ValueError):
        Credentials("", "sk")
    with pytest.raises(ValueError):
        Credentials("ak", "")


def test_repr_hides_secret():
    assert "very-secret" not in repr(Credentials("public-ak", "very-secret"))


def test_sign_with_data_embeds_payload():
    token = Credentials("ak", "sk").sign_with_data(b'{"scope":"b"}')
    encoded = base64.urlsafe_b64encode(b'{"scope":"b"}').decode()
    assert token == f"{_sign(encoded.encode())}:{encoded}"


def test_request_token_covers_form_body_and_qiniu_headers():
    creds = Credentials("ak", "sk")
    token = creds.sign_request_v2(
        "post",
        b"/batch?x=1",
        "rs.qiniu.com",
        {"Content-Type": FORM_MIME, "x-qiniu-b": "2", "X-Qiniu-A": "1", "X-Other": "no"},
        b"op=a",
    )
    expected = (
        b"POST /batch?x=1\nHost: rs.qiniu.com\nContent-Type: application/x-www-form-urlencoded"
        b"\nX-Qiniu-A: 1\nX-Qiniu-B: 2\n\nop=a"
    )
    assert token == _sign(expected)


def test_request_token_skips_binary_body():
    creds = Credentials("ak", "sk")
    token = creds.sign_request_v2("POST", b"/p", "h", {"Content-Type": BINARY_MIME}, b"\x00\x01")
    assert token == _sign(b"POST /p\nHost: h\nContent-Type: application/octet-stream\n\n")


@pytest.mark.asyncio
async def test_auth_header_is_attached(manager_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    manager, recorder = manager_factory(handler)
    async with manager:
        await manager.delete("bucket", "key")

    request = recorder.requests[0]
    expected = Credentials("test-ak", "test-sk").sign_request_v2(
        "POST",
        b"/delete/YnVja2V0OmtleQ==",
        "rs-z0.qiniuapi.com",
        {"Content-Type": FORM_MIME},
        b"",
    )
    assert request.headers["Authorization"] == f"Qiniu {expected}"
