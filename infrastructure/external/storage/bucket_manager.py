"""
存储空间管理

BucketManager 持有 HTTP 客户端、区域解析器、列举引擎与批量执行器，
提供对象与空间的管理操作。每个操作先解析目标主机，再发送签名请求。
"""
import asyncio
from typing import Any, Optional, Sequence, Union

import httpx

from core.logging_config import get_logger
from .auth import Credentials, QiniuAuth
from .batch import BatchExecutor
from .client import StorageHTTPClient
from .config import DEFAULT_PUB_HOST, StorageConfig
from .exceptions import InvalidArgumentError
from .listing import MAX_LIST_LIMIT, ListingEngine, ListStream
from .models import (
    AsyncFetchParam,
    AsyncFetchRet,
    BatchOpRet,
    DomainInfo,
    FetchRet,
    FileInfo,
    ListFilesResult,
)
from .region import RegionID, RegionResolver
from .uris import (
    uri_change_lifecycle,
    uri_change_mime,
    uri_change_status,
    uri_change_type,
    uri_copy,
    uri_delete,
    uri_delete_after_days,
    uri_fetch,
    uri_fetch_without_key,
    uri_move,
    uri_prefetch,
    uri_restore_ar,
    uri_set_image,
    uri_set_image_with_host,
    uri_stat,
    uri_unset_image,
)
from .urls import QueryValues, make_private_url_v2

logger = get_logger(__name__)


class BucketManager:
    """
    存储空间管理客户端

    用法::

        async with BucketManager(StorageConfig.for_region("z0", access_key=ak, secret_key=sk)) as m:
            info = await m.stat("photos", "a.jpg")
    """

    def __init__(
        self,
        config: StorageConfig,
        credentials: Optional[Credentials] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: 存储配置
            credentials: 管理凭证，为空时由 config 中的 access_key/secret_key 构造
            transport: 自定义传输层（测试时注入 httpx.MockTransport）
        """
        if credentials is None:
            credentials = Credentials(config.access_key or "", config.secret_key or "")
        self.config = config
        self.credentials = credentials
        self.http = StorageHTTPClient(
            auth=QiniuAuth(credentials),
            timeout=config.timeout,
            max_retries=config.max_retry_attempts,
            retry_delay=config.retry_delay,
            debug=config.debug,
            transport=transport,
        )
        self.resolver = RegionResolver(credentials.access_key, config, self.http)
        self.listing = ListingEngine(self.http, self.resolver)
        self.batch_executor = BatchExecutor(self.http, self.resolver)

    async def close(self) -> None:
        await self.http.close()

    async def __aenter__(self) -> "BucketManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _rs_call(self, bucket: str, path: str) -> Any:
        host = await self.resolver.rs_host(bucket)
        return await self.http.call("POST", f"{host}{path}")

    # Object metadata

    async def stat(self, bucket: str, key: str, need_parts: bool = False) -> FileInfo:
        """获取文件基本信息，need_parts 为 True 时同时返回分片信息"""
        path = uri_stat(bucket, key)
        if need_parts:
            path += "?needparts=true"
        data = await self._rs_call(bucket, path)
        return FileInfo.model_validate(data or {})

    async def delete(self, bucket: str, key: str) -> None:
        await self._rs_call(bucket, uri_delete(bucket, key))
        logger.info("Object deleted", bucket=bucket, key=key)

    async def copy(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str,
                   force: bool = False) -> None:
        await self._rs_call(src_bucket, uri_copy(src_bucket, src_key, dest_bucket, dest_key, force))

    async def move(self, src_bucket: str, src_key: str, dest_bucket: str, dest_key: str,
                   force: bool = False) -> None:
        await self._rs_call(src_bucket, uri_move(src_bucket, src_key, dest_bucket, dest_key, force))

    async def update_object_status(self, bucket: str, key: str, enable: bool) -> None:
        """启用或禁用文件"""
        await self._rs_call(bucket, uri_change_status(bucket, key, enable))

    async def change_mime(self, bucket: str, key: str, new_mime: str) -> None:
        await self._rs_call(bucket, uri_change_mime(bucket, key, new_mime))

    async def change_type(self, bucket: str, key: str, file_type: int) -> None:
        """修改存储类型：0 标准，1 低频，2 归档，3 深度归档"""
        await self._rs_call(bucket, uri_change_type(bucket, key, file_type))

    async def restore_ar(self, bucket: str, key: str, freeze_after_days: int) -> None:
        """解冻归档文件，解冻后保持 freeze_after_days 天"""
        await self._rs_call(bucket, uri_restore_ar(bucket, key, freeze_after_days))

    async def delete_after_days(self, bucket: str, key: str, days: int) -> None:
        """设置文件过期删除，days 为 0 表示取消"""
        await self._rs_call(bucket, uri_delete_after_days(bucket, key, days))

    async def change_lifecycle(
        self,
        bucket: str,
        key: str,
        to_ia_after_days: int = 0,
        to_archive_after_days: int = 0,
        to_deep_archive_after_days: int = 0,
        delete_after_days: int = 0,
    ) -> None:
        await self._rs_call(bucket, uri_change_lifecycle(
            bucket, key,
            to_ia_after_days=to_ia_after_days,
            to_archive_after_days=to_archive_after_days,
            to_deep_archive_after_days=to_deep_archive_after_days,
            delete_after_days=delete_after_days,
        ))

    async def batch(self, operations: Sequence[str], bucket: Optional[str] = None) -> list[BatchOpRet]:
        """
        批量操作，最多 1000 条

        结果与 operations 按位置一一对应，单条失败体现在对应结果的 code 中。
        """
        return await self.batch_executor.execute(operations, bucket=bucket)

    # Fetch and mirror source

    async def fetch(self, res_url: str, bucket: str, key: str) -> FetchRet:
        """抓取远程资源并以 key 保存"""
        host = await self.resolver.io_host(bucket)
        data = await self.http.call("POST", f"{host}{uri_fetch(res_url, bucket, key)}")
        return FetchRet.model_validate(data or {})

    async def fetch_without_key(self, res_url: str, bucket: str) -> FetchRet:
        """抓取远程资源，以内容 hash 作为文件名"""
        host = await self.resolver.io_host(bucket)
        data = await self.http.call("POST", f"{host}{uri_fetch_without_key(res_url, bucket)}")
        return FetchRet.model_validate(data or {})

    async def prefetch(self, bucket: str, key: str) -> None:
        """从镜像源同步资源"""
        host = await self.resolver.io_host(bucket)
        await self.http.call("POST", f"{host}{uri_prefetch(bucket, key)}")

    async def async_fetch(self, param: AsyncFetchParam) -> AsyncFetchRet:
        """提交异步抓取任务"""
        host = await self.resolver.api_host(param.bucket)
        data = await self.http.call("POST", f"{host}/sisyphus/fetch", json_data=param.to_payload())
        ret = AsyncFetchRet.model_validate(data or {})
        logger.info("Async fetch submitted", bucket=param.bucket, task_id=ret.id, wait=ret.wait)
        return ret

    async def set_image(self, site_url: str, bucket: str) -> None:
        """设置空间镜像源"""
        await self.http.call("POST", f"http://{DEFAULT_PUB_HOST}{uri_set_image(site_url, bucket)}")

    async def set_image_with_host(self, site_url: str, bucket: str, host: str) -> None:
        """设置空间镜像源，并指定回源 Host 头"""
        await self.http.call("POST", f"http://{DEFAULT_PUB_HOST}{uri_set_image_with_host(site_url, bucket, host)}")

    async def unset_image(self, bucket: str) -> None:
        await self.http.call("POST", f"http://{DEFAULT_PUB_HOST}{uri_unset_image(bucket)}")

    # Buckets

    async def list_bucket_domains(self, bucket: str) -> list[DomainInfo]:
        """空间绑定的域名"""
        url = f"{self.resolver.z0_api_host()}/v7/domain/list?{httpx.QueryParams({'tbl': bucket})}"
        data = await self.http.call("GET", url)
        return [DomainInfo.model_validate(item) for item in data or []]

    async def create_bucket(self, bucket: str, region_id: Union[RegionID, str]) -> None:
        """新建空间，region_id 可以是内置区域或服务端支持的其他区域"""
        region = region_id.value if isinstance(region_id, RegionID) else region_id
        if not region:
            raise InvalidArgumentError("region_id must not be empty", field="region_id")
        await self.http.call("POST", f"{self.resolver.uc_host()}/mkbucketv3/{bucket}/region/{region}")
        logger.info("Bucket created", bucket=bucket, region=region)

    async def buckets(self, shared: bool = False) -> list[str]:
        """空间列表，shared 为 True 时包含被授权访问的空间"""
        flag = "true" if shared else "false"
        data = await self.http.call("POST", f"{self.resolver.uc_host()}/buckets?shared={flag}")
        return list(data or [])

    async def drop_bucket(self, bucket: str) -> None:
        await self.http.call("POST", f"{self.resolver.uc_host()}/drop/{bucket}")
        self.resolver.invalidate(bucket)
        logger.info("Bucket dropped", bucket=bucket)

    # Listing

    async def list_files(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        limit: int = MAX_LIST_LIMIT,
    ) -> ListFilesResult:
        return await self.listing.list_files(bucket, prefix, delimiter, marker, limit)

    async def list_bucket(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ListStream:
        """打开流式列举，调用方负责迭代结束或调用 aclose()"""
        return await self.listing.list_bucket(bucket, prefix, delimiter, marker, cancel_event)

    # URLs

    def make_private_url(
        self,
        domain: str,
        key: str,
        deadline: int,
        query: Optional[QueryValues] = None,
    ) -> str:
        """使用本实例凭证签发私有下载链接（key 会被转义）"""
        if deadline <= 0:
            raise InvalidArgumentError("deadline must be a positive unix timestamp", field="deadline")
        return make_private_url_v2(self.credentials, domain, key, deadline, query)
