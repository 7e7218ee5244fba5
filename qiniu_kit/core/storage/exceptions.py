"""
存储服务异常定义
定义七牛客户端内部使用的所有异常类型

内部各层直接抛出这些异常，由 ResponseNormalizer 在公开方法边界统一转换为
{code, data} 响应结构。
"""

from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    """失败类型标签"""

    VALIDATION = "validation"  # 请求尚未发出，本地校验失败
    TRANSPORT = "transport"    # 请求未能到达服务端
    REMOTE = "remote"          # 服务端拒绝请求


class StorageError(Exception):
    """
    七牛操作基础异常

    子类通过类属性 kind 声明失败类型，归一化时写入响应的 data.kind。

    Attributes:
        message: 错误消息，原样写入 data.error
        code: 错误码，日志中显示为 [CODE] 前缀
        details: 附加上下文，不出现在响应中
    """

    kind: FailureKind = FailureKind.TRANSPORT

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigurationError(StorageError):
    """客户端配置错误，仅在构造时抛出"""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(StorageError):
    """请求参数校验错误"""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class NetworkError(StorageError):
    """网络请求错误"""

    kind = FailureKind.TRANSPORT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="NETWORK_ERROR", details=details)


class HTTPError(StorageError):
    """服务端返回了非成功状态码"""

    kind = FailureKind.REMOTE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, code="HTTP_ERROR", details=details)
        self.status_code = status_code
        self.body = body


class ResponseParseError(StorageError):
    """响应体无法解析"""

    kind = FailureKind.REMOTE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="PARSE_ERROR", details=details)


class UploadError(StorageError):
    """分片上传在重试后仍然失败"""

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.TRANSPORT,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, code="UPLOAD_ERROR", details=details)
        self.kind = kind


__all__ = [
    'FailureKind',
    'StorageError',
    'ConfigurationError',
    'ValidationError',
    'NetworkError',
    'HTTPError',
    'ResponseParseError',
    'UploadError',
]
