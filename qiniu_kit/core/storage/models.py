"""
存储服务数据模型
定义七牛客户端中使用的所有数据结构
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from qiniu_kit.core.storage.exceptions import FailureKind


@dataclass(frozen=True)
class Credentials:
    """
    访问凭证

    Attributes:
        access_key: AccessKey，随签名一起发送
        secret_key: SecretKey，只用于本地签名，从不发送
    """
    access_key: str
    secret_key: str = field(repr=False)


@dataclass(frozen=True)
class ClientConfig:
    """
    客户端配置，构造后不可变

    Attributes:
        bucket: 存储空间名称
        zone: 存储区域标识
        use_https_domain: 是否使用HTTPS域名
        use_cdn_domain: 是否使用CDN加速上传域名
    """
    bucket: str
    zone: str
    use_https_domain: bool = False
    use_cdn_domain: bool = False


@dataclass(frozen=True)
class UploadPolicy:
    """
    上传策略

    deadline 为 Unix 时间戳（秒），过期的策略不得再用于签名。
    """
    scope: str
    deadline: int
    fsize_limit: Optional[int] = None
    mime_limit: Optional[str] = None
    callback_url: Optional[str] = None
    callback_body: Optional[str] = None
    return_body: Optional[str] = None
    insert_only: Optional[int] = None
    persistent_ops: Optional[str] = None
    persistent_notify_url: Optional[str] = None
    persistent_pipeline: Optional[str] = None

    _WIRE_NAMES = {
        "fsize_limit": "fsizeLimit",
        "mime_limit": "mimeLimit",
        "callback_url": "callbackUrl",
        "callback_body": "callbackBody",
        "return_body": "returnBody",
        "insert_only": "insertOnly",
        "persistent_ops": "persistentOps",
        "persistent_notify_url": "persistentNotifyUrl",
        "persistent_pipeline": "persistentPipeline",
    }

    def is_expired(self, now: int) -> bool:
        return self.deadline <= now

    def to_dict(self) -> Dict[str, Any]:
        """转换为七牛上传策略JSON结构"""
        policy: Dict[str, Any] = {"scope": self.scope, "deadline": self.deadline}
        for attr, wire_name in self._WIRE_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                policy[wire_name] = value
        return policy


class UploadMode(str, Enum):
    """上传数据源类型"""

    WHOLE_FILE = "file"   # 本地文件路径
    STREAM = "stream"     # 可读的二进制流
    RAW_BODY = "raw"      # 内存中的字节数据


@dataclass
class PutExtra:
    """
    上传附加参数

    Attributes:
        fname: 原始文件名
        params: 自定义变量，键必须以 "x:" 开头
        mime_type: 指定的MIME类型
        resume_record_file: 断点续传进度记录文件路径（仅分片上传使用）
    """
    fname: str = ""
    params: Dict[str, str] = field(default_factory=dict)
    mime_type: Optional[str] = None
    resume_record_file: Optional[str] = None


@dataclass(frozen=True)
class BlockContext:
    """分片上传中已确认的块，crc32 用于续传时确认块内容未变"""
    index: int
    ctx: str
    size: int
    crc32: int
    expired_at: int


@dataclass(frozen=True)
class ResponseInfo:
    """HTTP响应元信息，用于日志记录"""
    status_code: int
    url: str
    req_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"statusCode": self.status_code, "url": self.url, "reqId": self.req_id}


@dataclass(frozen=True)
class QiniuResponse:
    """传输层返回的原始响应"""
    body: Any
    info: ResponseInfo

    @property
    def status_code(self) -> int:
        return self.info.status_code


@dataclass(frozen=True)
class OperationResult:
    """
    统一响应结构

    code 在成功时为HTTP状态码，失败时为400；kind 仅在失败时设置。
    """
    code: int
    data: Any
    kind: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "data": self.data}


@dataclass(frozen=True)
class ListOptions:
    """
    列举参数

    marker 为空字符串表示从头开始列举。
    """
    prefix: str = ""
    delimiter: str = ""
    limit: int = 1000
    marker: str = ""


class BatchOperationType(str, Enum):
    """批量操作类型"""

    STAT = "stat"
    DELETE = "delete"
    CHANGE_MIME = "chgm"
    CHANGE_TYPE = "chtype"
    DELETE_AFTER_DAYS = "deleteAfterDays"
    MOVE = "move"
    COPY = "copy"


@dataclass(frozen=True)
class BatchOperation:
    """
    单个批量操作

    bucket 为空时使用客户端默认的存储空间；move/copy 需要 dest_bucket 和 dest_key。
    """
    kind: BatchOperationType
    key: str
    bucket: Optional[str] = None
    mime: Optional[str] = None
    storage_type: Optional[int] = None
    days: Optional[int] = None
    dest_bucket: Optional[str] = None
    dest_key: Optional[str] = None
    force: bool = False

    @classmethod
    def stat(cls, key: str, bucket: Optional[str] = None) -> "BatchOperation":
        return cls(BatchOperationType.STAT, key, bucket=bucket)

    @classmethod
    def delete(cls, key: str, bucket: Optional[str] = None) -> "BatchOperation":
        return cls(BatchOperationType.DELETE, key, bucket=bucket)

    @classmethod
    def change_mime(cls, key: str, mime: str, bucket: Optional[str] = None) -> "BatchOperation":
        return cls(BatchOperationType.CHANGE_MIME, key, bucket=bucket, mime=mime)

    @classmethod
    def change_type(cls, key: str, storage_type: int, bucket: Optional[str] = None) -> "BatchOperation":
        return cls(BatchOperationType.CHANGE_TYPE, key, bucket=bucket, storage_type=storage_type)

    @classmethod
    def delete_after_days(cls, key: str, days: int, bucket: Optional[str] = None) -> "BatchOperation":
        return cls(BatchOperationType.DELETE_AFTER_DAYS, key, bucket=bucket, days=days)

    @classmethod
    def move(
        cls,
        key: str,
        dest_bucket: str,
        dest_key: str,
        force: bool = False,
        bucket: Optional[str] = None
    ) -> "BatchOperation":
        return cls(
            BatchOperationType.MOVE, key, bucket=bucket,
            dest_bucket=dest_bucket, dest_key=dest_key, force=force
        )

    @classmethod
    def copy(
        cls,
        key: str,
        dest_bucket: str,
        dest_key: str,
        force: bool = False,
        bucket: Optional[str] = None
    ) -> "BatchOperation":
        return cls(
            BatchOperationType.COPY, key, bucket=bucket,
            dest_bucket=dest_bucket, dest_key=dest_key, force=force
        )


__all__ = [
    'Credentials',
    'ClientConfig',
    'UploadPolicy',
    'UploadMode',
    'PutExtra',
    'BlockContext',
    'ResponseInfo',
    'QiniuResponse',
    'OperationResult',
    'ListOptions',
    'BatchOperationType',
    'BatchOperation',
]
