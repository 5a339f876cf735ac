"""
对象存储管理接口的 HTTP 客户端

提供通用的HTTP请求功能，包括：
- 传输层自动重试（超时、网络错误、可重试状态码）
- 错误响应解析为结构化异常
- 请求/响应日志
- 管理凭证签名
- 流式响应
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from core.logging_config import get_logger
from .auth import FORM_MIME, JSON_MIME
from .exceptions import (
    ResponseError,
    RetryableResponseError,
    TransportError,
    error_for_status,
)

logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504, 573, 599}

USER_AGENT = "kodo-bucket-client/1.0"


class HTTPMethod(Enum):
    """HTTP方法枚举"""
    GET = "GET"
    POST = "POST"


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """判断请求是否成功"""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """获取JSON响应"""
        if self.data is not None:
            return self.data
        if not self.raw_content:
            return None
        try:
            return json.loads(self.raw_content)
        except ValueError as exc:
            raise ResponseError(
                f"response body is not valid JSON: {exc}",
                status_code=self.status_code,
                request_id=self.request_id,
                body=self.raw_content[:256].decode("utf-8", "replace"),
            ) from exc


def _request_id(headers: httpx.Headers) -> Optional[str]:
    return headers.get("x-reqid") or headers.get("x-request-id")


def _error_message(status_code: int, data: Any, raw: bytes) -> str:
    """从 {"error": "..."} 响应体中提取错误信息"""
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and parsed.get("error"):
            return str(parsed["error"])
    return f"API request failed with status {status_code}"


def raise_for_response(response: APIResponse) -> None:
    """非 2xx 响应转换为结构化异常"""
    if response.is_success:
        return
    error_class = error_for_status(response.status_code)
    raise error_class(
        _error_message(response.status_code, response.data, response.raw_content),
        status_code=response.status_code,
        request_id=response.request_id,
        body=response.data,
    )


FormData = Union[Dict[str, Any], Sequence[Tuple[str, str]]]


class StorageHTTPClient:
    """
    管理接口客户端

    所有请求使用绝对 URL（主机由 RegionResolver 决定），
    签名通过 httpx Auth 在发送前完成。
    """

    def __init__(
        self,
        auth: Optional[httpx.Auth] = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
        verify_ssl: bool = True,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        初始化客户端

        Args:
            auth: 管理凭证签名（QiniuAuth），为空时只能发送无需签名的请求
            timeout: 请求超时时间（秒）
            max_retries: 最大重试次数
            retry_delay: 重试延迟（秒）
            headers: 默认请求头
            verify_ssl: 是否验证SSL证书
            debug: 是否开启调试模式
            transport: 自定义传输层（测试时注入 httpx.MockTransport）
        """
        self.auth = auth
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.verify_ssl = verify_ssl
        self.debug = debug
        self._transport = transport

        self.default_headers = {"User-Agent": USER_AGENT}
        if headers:
            self.default_headers.update(headers)

        self._client: Optional[httpx.AsyncClient] = None

    @property
    async def client(self) -> httpx.AsyncClient:
        """获取或创建HTTP客户端"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                verify=self.verify_ssl,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """关闭HTTP客户端"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _log_request(self, method: str, url: str, **kwargs):
        if self.debug:
            logger.debug(
                f"API Request: {method} {url}",
                method=method,
                url=url,
                headers=kwargs.get("headers"),
            )

    def _log_response(self, url: str, response: APIResponse):
        if self.debug:
            logger.debug(
                f"API Response: {response.status_code}",
                url=url,
                status_code=response.status_code,
                elapsed_ms=response.elapsed_ms,
                request_id=response.request_id,
            )

    def _build_headers(self, method: str, json_data: Any, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        request_headers = {**self.default_headers}
        if json_data is not None:
            request_headers["Content-Type"] = JSON_MIME
        elif method != HTTPMethod.GET.value:
            request_headers["Content-Type"] = FORM_MIME
        if headers:
            request_headers.update(headers)
        return request_headers

    async def request(
        self,
        method: Union[str, HTTPMethod],
        url: str,
        data: Optional[FormData] = None,
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        signed: bool = True,
    ) -> APIResponse:
        """
        发送HTTP请求

        Args:
            method: HTTP方法
            url: 完整请求地址（含查询参数）
            data: 表单数据，支持重复键（列表形式）
            json_data: JSON数据
            headers: 请求头
            signed: 是否附加管理凭证签名

        Returns:
            APIResponse: 2xx 响应

        Raises:
            ResponseError: 非 2xx 响应
            TransportError: 超时或网络错误（重试耗尽后）
        """
        if isinstance(method, HTTPMethod):
            method = method.value

        request_headers = self._build_headers(method, json_data, headers)
        content = None
        if json_data is not None:
            content = json.dumps(json_data).encode("utf-8")
        elif data is not None:
            content = data if isinstance(data, bytes) else str(httpx.QueryParams(data)).encode("ascii")

        self._log_request(method, url, headers=request_headers)
        auth = self.auth if signed else None

        async def _send_once() -> APIResponse:
            start_time = datetime.now()
            client = await self.client
            response = await client.request(
                method=method,
                url=url,
                content=content,
                headers=request_headers,
                auth=auth,
            )
            elapsed = (datetime.now() - start_time).total_seconds() * 1000

            content_type = response.headers.get("content-type", "")
            response_data = None
            if "application/json" in content_type and response.content:
                try:
                    response_data = response.json()
                except json.JSONDecodeError:
                    response_data = None

            api_response = APIResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                data=response_data,
                raw_content=response.content,
                elapsed_ms=elapsed,
                request_id=_request_id(response.headers),
            )
            self._log_response(url, api_response)

            if not api_response.is_success and api_response.status_code in RETRY_STATUS_CODES:
                retry_after: Optional[float] = None
                if api_response.status_code == 429:
                    retry_header = api_response.headers.get("retry-after")
                    try:
                        if retry_header:
                            retry_after = float(retry_header)
                    except (TypeError, ValueError):
                        retry_after = None
                    if retry_after:
                        await asyncio.sleep(retry_after)

                raise RetryableResponseError(
                    _error_message(api_response.status_code, api_response.data, api_response.raw_content),
                    status_code=api_response.status_code,
                    request_id=api_response.request_id,
                    body=api_response.data,
                    retry_after=retry_after,
                )

            raise_for_response(api_response)
            return api_response

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8,
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableResponseError)),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await _send_once()
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timeout after {self.timeout}s: {method} {url}") from exc
        except httpx.NetworkError as exc:
            raise TransportError(f"Network error: {exc}") from exc
        except RetryableResponseError as exc:
            error_class = error_for_status(exc.status_code or 0)
            raise error_class(
                exc.message,
                status_code=exc.status_code,
                request_id=exc.request_id,
                body=exc.body,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP error: {exc}") from exc

    async def call(self, method: Union[str, HTTPMethod], url: str, **kwargs) -> Any:
        """发送请求并返回解码后的 JSON（空响应体返回 None）"""
        response = await self.request(method, url, **kwargs)
        return response.json()

    async def open_stream(
        self,
        method: Union[str, HTTPMethod],
        url: str,
        headers: Optional[Dict[str, str]] = None,
        signed: bool = True,
    ) -> httpx.Response:
        """
        打开流式响应，状态码检查通过后返回尚未读取的响应体

        调用方负责关闭返回的响应。流式连接不做重试。
        """
        if isinstance(method, HTTPMethod):
            method = method.value

        request_headers = self._build_headers(method, None, headers)
        self._log_request(method, url, headers=request_headers)

        client = await self.client
        request = client.build_request(method, url, headers=request_headers)
        try:
            response = await client.send(request, stream=True, auth=self.auth if signed else None)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timeout after {self.timeout}s: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if 200 <= response.status_code < 300:
            return response

        try:
            raw = await response.aread()
        finally:
            await response.aclose()
        data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = json.loads(raw) if raw else None
            except ValueError:
                data = None
        raise_for_response(
            APIResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                data=data,
                raw_content=raw,
                elapsed_ms=0.0,
                request_id=_request_id(response.headers),
            )
        )
