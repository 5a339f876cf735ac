"""Credentials and request signing.

``Credentials`` is the signer handed to URL builders; ``QiniuAuth`` plugs the
same credentials into httpx so every management request carries an
``Authorization: Qiniu <token>`` header.
"""
from __future__ import annotations

import base64
import hmac
from hashlib import sha1
from typing import Generator, Mapping, Optional

import httpx

FORM_MIME = "application/x-www-form-urlencoded"
JSON_MIME = "application/json"
BINARY_MIME = "application/octet-stream"

_QINIU_HEADER_PREFIX = "X-Qiniu-"


class Credentials:
    """Access key / secret key pair."""

    def __init__(self, access_key: str, secret_key: str):
        if not access_key or not secret_key:
            raise ValueError("access_key and secret_key are required")
        self.access_key = access_key
        self._secret_key = secret_key.encode("utf-8")

    def __repr__(self) -> str:
        return f"Credentials(access_key={self.access_key!r})"

    def _digest(self, data: bytes) -> str:
        mac = hmac.new(self._secret_key, data, sha1)
        return base64.urlsafe_b64encode(mac.digest()).decode("ascii")

    def sign(self, data: bytes) -> str:
        """Return ``<access_key>:<urlsafe_b64(hmac_sha1(secret, data))>``."""
        return f"{self.access_key}:{self._digest(data)}"

    def sign_with_data(self, data: bytes) -> str:
        """Sign and embed the encoded payload (upload-token style)."""
        encoded = base64.urlsafe_b64encode(data).decode("ascii")
        return f"{self.sign(encoded.encode('ascii'))}:{encoded}"

    def sign_request_v2(
        self,
        method: str,
        raw_path: bytes,
        host: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> str:
        """Management API token over method, path, host, content type,
        ``X-Qiniu-*`` headers and non-binary bodies."""
        data = f"{method.upper()} ".encode("ascii") + raw_path
        data += f"\nHost: {host}".encode("utf-8")

        content_type = headers.get("Content-Type", "")
        if content_type:
            data += f"\nContent-Type: {content_type}".encode("utf-8")

        qiniu_headers = sorted(
            (_canonical(name), value)
            for name, value in headers.items()
            if _canonical(name).startswith(_QINIU_HEADER_PREFIX) and len(name) > len(_QINIU_HEADER_PREFIX)
        )
        for name, value in qiniu_headers:
            data += f"\n{name}: {value}".encode("utf-8")

        data += b"\n\n"
        if body and content_type and content_type != BINARY_MIME:
            data += body
        return self.sign(data)


def _canonical(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


class QiniuAuth(httpx.Auth):
    """httpx auth flow adding the management API token."""

    requires_request_body = True

    def __init__(self, credentials: Credentials):
        self.credentials = credentials

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        host = request.headers.get("Host") or request.url.netloc.decode("ascii")
        token = self.credentials.sign_request_v2(
            request.method,
            request.url.raw_path,
            host,
            request.headers,
            request.content,
        )
        request.headers["Authorization"] = f"Qiniu {token}"
        yield request
