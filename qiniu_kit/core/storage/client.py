"""
七牛云存储客户端
把上传、资源管理、数据处理和CDN接口组合为统一入口

所有公开方法都返回 OperationResult，从不向调用方抛出存储层异常；
只有构造阶段的配置错误会以 ConfigurationError 抛出。
"""

import time
from typing import Any, Callable, Dict, Optional, Sequence, Union

import httpx

from qiniu_kit.core.log_utils import get_logger
from qiniu_kit.core.storage.auth import DEFAULT_TOKEN_EXPIRES, Signer, UploadTokenIssuer
from qiniu_kit.core.storage.cdn import CdnManager
from qiniu_kit.core.storage.exceptions import ConfigurationError, ValidationError
from qiniu_kit.core.storage.models import (
    BatchOperation,
    ClientConfig,
    Credentials,
    ListOptions,
    OperationResult,
    PutExtra,
    UploadMode,
)
from qiniu_kit.core.storage.processing import OperationManager, describe_status
from qiniu_kit.core.storage.resource import BucketManager, parse_batch_items
from qiniu_kit.core.storage.response import ResponseNormalizer, SupportsLogging
from qiniu_kit.core.storage.transport import QiniuHttp
from qiniu_kit.core.storage.upload import FormUploader, ResumeUploader
from qiniu_kit.core.storage.zone import HostResolver, get_zone

_REQUIRED_FIELDS = ("access_key", "secret_key", "zone", "bucket")


class QiniuClient:
    """
    七牛云存储客户端

    子管理器在构造时一次性创建并在整个生命周期内复用，
    共享同一个签名器和HTTP连接池。

    Example:
        >>> async with QiniuClient(ak, sk, "z0", "my-bucket") as client:
        ...     result = await client.put("hello.txt", b"hello")
        ...     result.code, result.data["hash"]
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        zone: str,
        bucket: str,
        use_https_domain: bool = False,
        use_cdn_domain: bool = False,
        enable_logging: bool = False,
        logger: Optional[SupportsLogging] = None,
        upload_token_expires: int = DEFAULT_TOKEN_EXPIRES,
        block_size: int = 4 * 1024 * 1024,
        max_retries: int = 3,
        retry_delay_base: float = 1.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        初始化客户端

        Args:
            access_key: AccessKey
            secret_key: SecretKey
            zone: 存储区域，如 z0 或 Zone_z0
            bucket: 默认存储空间
            use_https_domain: 是否使用HTTPS域名
            use_cdn_domain: 是否使用CDN加速上传域名
            enable_logging: 是否为每次成功调用记录响应日志
            logger: 调用方提供的日志对象，默认使用 qiniu_kit 日志记录器
            upload_token_expires: 上传策略有效期（秒）
            block_size: 分片上传块大小（字节）
            max_retries: 单块最大重试次数
            retry_delay_base: 重试间隔基数（秒）
            timeout: 请求超时时间（秒）
            transport: 自定义 httpx 传输层（测试时注入）
            clock: 时间函数（测试时注入）

        Raises:
            ConfigurationError: 必填参数缺失、区域未知或分片参数非法
        """
        values = {"access_key": access_key, "secret_key": secret_key, "zone": zone, "bucket": bucket}
        missing = [name for name in _REQUIRED_FIELDS if not values[name]]
        if missing:
            raise ConfigurationError(
                "七牛客户端缺少必填参数: {}".format(", ".join(missing)),
                details={"missing": missing}
            )
        if block_size <= 0:
            raise ConfigurationError("block_size 必须为正数")
        if max_retries < 0:
            raise ConfigurationError("max_retries 不能为负数")

        self.credentials = Credentials(access_key=access_key, secret_key=secret_key)
        self.config = ClientConfig(
            bucket=bucket,
            zone=zone,
            use_https_domain=use_https_domain,
            use_cdn_domain=use_cdn_domain,
        )

        self.hosts = HostResolver(get_zone(zone), use_https_domain, use_cdn_domain)
        self.signer = Signer(self.credentials)
        self.token_issuer = UploadTokenIssuer(self.signer, bucket, upload_token_expires, clock)
        self.http = QiniuHttp(self.signer, timeout=timeout, transport=transport)

        self.form_uploader = FormUploader(self.http, self.hosts)
        self.resume_uploader = ResumeUploader(
            self.http,
            self.hosts,
            block_size=block_size,
            max_retries=max_retries,
            retry_delay_base=retry_delay_base,
            clock=clock,
        )
        self.bucket_manager = BucketManager(self.http, self.hosts)
        self.operation_manager = OperationManager(self.http, self.hosts)
        self.cdn_manager = CdnManager(self.http, self.hosts)
        self.normalizer = ResponseNormalizer(logger or get_logger("qiniu_kit"), enable_logging)

    @property
    def bucket(self) -> str:
        return self.config.bucket

    # ==================== 生命周期 ====================

    async def aclose(self) -> None:
        """释放共享的HTTP连接池"""
        await self.http.aclose()

    async def __aenter__(self) -> "QiniuClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ==================== 凭证 ====================

    def upload_token(self, key: Optional[str] = None, expires: Optional[int] = None, **constraints) -> str:
        """签发上传凭证；不带参数时返回缓存策略对应的凭证"""
        if key is None and expires is None and not constraints:
            return self.token_issuer.issue_token()
        return self.token_issuer.upload_token(key=key, expires=expires, **constraints)

    def access_token(self, url: str, body: Optional[str] = None, content_type: Optional[str] = None) -> str:
        """生成管理接口的 Authorization 头"""
        return self.signer.access_token(url, body, content_type)

    # ==================== 上传 ====================

    async def upload(
        self,
        key: Optional[str],
        source: Any,
        mode: Union[UploadMode, str],
        resumable: bool = False,
        put_extra: Optional[PutExtra] = None
    ) -> OperationResult:
        """
        上传数据到默认存储空间

        Args:
            key: 目标对象键
            source: 本地文件路径、二进制流或字节数据
            mode: 数据源类型，file / stream / raw
            resumable: True 时使用分片上传
            put_extra: 附加参数

        Returns:
            OperationResult: 成功时 data 为服务端返回的 key、hash 等
        """
        uploader = self.resume_uploader if resumable else self.form_uploader

        async def call():
            upload_mode = _upload_mode(mode)
            token = self.token_issuer.issue_token()
            return await uploader.upload(token, key, source, upload_mode, put_extra)

        return await self.normalizer.run(uploader.COMPONENT, "upload", call)

    async def put_file(
        self,
        key: Optional[str],
        local_file: str,
        is_resume: bool = False,
        put_extra: Optional[PutExtra] = None
    ) -> OperationResult:
        return await self.upload(key, local_file, UploadMode.WHOLE_FILE, is_resume, put_extra)

    async def put_stream(
        self,
        key: Optional[str],
        stream: Any,
        is_resume: bool = False,
        put_extra: Optional[PutExtra] = None
    ) -> OperationResult:
        return await self.upload(key, stream, UploadMode.STREAM, is_resume, put_extra)

    async def put(
        self,
        key: Optional[str],
        data: Union[bytes, str],
        put_extra: Optional[PutExtra] = None
    ) -> OperationResult:
        return await self.upload(key, data, UploadMode.RAW_BODY, False, put_extra)

    # ==================== 资源管理 ====================

    async def _bucket_call(self, method: str, call, transform=None) -> OperationResult:
        return await self.normalizer.run(BucketManager.COMPONENT, method, call, transform)

    async def stat(self, key: str) -> OperationResult:
        return await self._bucket_call("stat", lambda: self.bucket_manager.stat(self.bucket, key))

    async def change_mime(self, key: str, mime: str) -> OperationResult:
        return await self._bucket_call(
            "changeMime", lambda: self.bucket_manager.change_mime(self.bucket, key, mime)
        )

    async def change_type(self, key: str, storage_type: int) -> OperationResult:
        """修改存储类型，0 标准存储，1 低频存储"""
        return await self._bucket_call(
            "changeType", lambda: self.bucket_manager.change_type(self.bucket, key, storage_type)
        )

    async def delete(self, key: str) -> OperationResult:
        return await self._bucket_call("delete", lambda: self.bucket_manager.delete(self.bucket, key))

    async def delete_after_days(self, key: str, days: int) -> OperationResult:
        """设置 days 天后删除；days 为 0 时按服务端约定取消已设置的删除"""
        return await self._bucket_call(
            "deleteAfterDays", lambda: self.bucket_manager.delete_after_days(self.bucket, key, days)
        )

    async def list_prefix(self, options: Union[ListOptions, Dict[str, Any], None] = None) -> OperationResult:
        """
        列举一页对象

        Args:
            options: ListOptions 或包含 prefix / delimiter / limit / marker 的字典

        Returns:
            OperationResult: data 含 items、commonPrefixes 与 marker，marker 为空表示列举结束
        """
        async def call():
            return await self.bucket_manager.list_prefix(self.bucket, _list_options(options))

        return await self._bucket_call("listPrefix", call)

    async def fetch(self, res_url: str, key: str) -> OperationResult:
        return await self._bucket_call(
            "fetch", lambda: self.bucket_manager.fetch(res_url, self.bucket, key)
        )

    async def prefetch(self, key: str) -> OperationResult:
        return await self._bucket_call("prefetch", lambda: self.bucket_manager.prefetch(self.bucket, key))

    async def move(self, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> OperationResult:
        return await self._bucket_call(
            "move",
            lambda: self.bucket_manager.move(self.bucket, src_key, dest_bucket, dest_key, force)
        )

    async def copy(self, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> OperationResult:
        return await self._bucket_call(
            "copy",
            lambda: self.bucket_manager.copy(self.bucket, src_key, dest_bucket, dest_key, force)
        )

    async def batch(self, operations: Sequence[BatchOperation]) -> OperationResult:
        """
        批量操作

        HTTP 200（全部成功）与 298（部分成功）都是成功响应，
        data 为按提交顺序排列的 [{code, data}, ...]。
        """
        return await self._bucket_call(
            "batch",
            lambda: self.bucket_manager.batch(operations, self.bucket),
            transform=parse_batch_items,
        )

    # ==================== 数据处理 ====================

    async def pfop(
        self,
        key: str,
        fops: Sequence[str],
        pipeline: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> OperationResult:
        """
        提交持久化处理

        Args:
            key: 源对象键
            fops: 处理指令列表
            pipeline: 队列名称
            options: 可选 notify_url、force

        Returns:
            OperationResult: data 含 persistentId
        """
        options = options or {}
        return await self.normalizer.run(
            OperationManager.COMPONENT,
            "pfop",
            lambda: self.operation_manager.pfop(
                self.bucket,
                key,
                fops,
                pipeline,
                notify_url=options.get("notify_url"),
                force=bool(options.get("force", False)),
            )
        )

    async def prefop(self, persistent_id: str) -> OperationResult:
        """查询处理状态，data 中追加可读的 status"""
        return await self.normalizer.run(
            OperationManager.COMPONENT,
            "prefop",
            lambda: self.operation_manager.prefop(persistent_id),
            transform=lambda response: describe_status(response.body),
        )

    submit_pipeline = pfop
    poll_job = prefop

    # ==================== CDN ====================

    async def _cdn_call(self, method: str, call) -> OperationResult:
        return await self.normalizer.run(CdnManager.COMPONENT, method, call)

    async def refresh_urls(self, urls: Sequence[str]) -> OperationResult:
        return await self._cdn_call("refreshUrls", lambda: self.cdn_manager.refresh_urls(urls))

    async def refresh_dirs(self, dirs: Sequence[str]) -> OperationResult:
        return await self._cdn_call("refreshDirs", lambda: self.cdn_manager.refresh_dirs(dirs))

    async def prefetch_urls(self, urls: Sequence[str]) -> OperationResult:
        return await self._cdn_call("prefetchUrls", lambda: self.cdn_manager.prefetch_urls(urls))

    async def get_traffic_data(
        self,
        start_date: str,
        end_date: str,
        granularity: str,
        domains: Sequence[str]
    ) -> OperationResult:
        return await self._cdn_call(
            "getFluxData",
            lambda: self.cdn_manager.get_traffic_data(start_date, end_date, granularity, domains)
        )

    async def get_bandwidth_data(
        self,
        start_date: str,
        end_date: str,
        granularity: str,
        domains: Sequence[str]
    ) -> OperationResult:
        return await self._cdn_call(
            "getBandwidthData",
            lambda: self.cdn_manager.get_bandwidth_data(start_date, end_date, granularity, domains)
        )

    async def get_log_list(self, domains: Sequence[str], day: str) -> OperationResult:
        return await self._cdn_call("getCdnLogList", lambda: self.cdn_manager.get_log_list(domains, day))


def _upload_mode(mode: Union[UploadMode, str]) -> UploadMode:
    try:
        return UploadMode(mode)
    except ValueError as e:
        raise ValidationError(
            "未知的上传模式 '{}'，可用模式: {}".format(mode, ", ".join(m.value for m in UploadMode))
        ) from e


def _list_options(options: Union[ListOptions, Dict[str, Any], None]) -> ListOptions:
    if options is None:
        return ListOptions()
    if isinstance(options, ListOptions):
        return options
    if isinstance(options, dict):
        try:
            return ListOptions(**options)
        except TypeError as e:
            raise ValidationError("列举参数非法: {}".format(e)) from e
    raise ValidationError("options 必须是 ListOptions 或字典")


__all__ = ['QiniuClient']
