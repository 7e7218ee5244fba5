"""
响应归一化
把各管理器的原始响应与失败统一转换为 {code, data} 结构

公开方法边界上捕获所有存储层异常，调用方只需检查 code。
"""

import json
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx

from qiniu_kit.core.log_messages import log_messages
from qiniu_kit.core.storage.exceptions import FailureKind, HTTPError, StorageError
from qiniu_kit.core.storage.models import OperationResult, QiniuResponse

FAILURE_CODE = 400


class SupportsLogging(Protocol):
    """调用方提供的日志对象，只需要 info/error 两个方法"""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def failure_data(error: BaseException) -> dict:
    """构造失败结果的 data 字段"""
    if isinstance(error, StorageError):
        data = {"error": error.message, "kind": error.kind.value}
        if isinstance(error, HTTPError):
            data["status_code"] = error.status_code
            data["body"] = error.body
        return data
    return {"error": str(error) or type(error).__name__, "kind": FailureKind.TRANSPORT.value}


class ResponseNormalizer:
    """响应归一化器"""

    def __init__(self, logger: SupportsLogging, enable_logging: bool = False):
        self._logger = logger
        self._enable_logging = enable_logging

    def success(
        self,
        component: str,
        method: str,
        response: QiniuResponse,
        data: Any = None
    ) -> OperationResult:
        if self._enable_logging:
            self._logger.info(log_messages.format_message(
                log_messages.QINIU_CALL_RESPONSE,
                component=component,
                method=method,
                resp_body=_dumps(response.body),
                resp_info=_dumps(response.info.to_dict()),
            ))
        return OperationResult(
            code=response.status_code,
            data=response.body if data is None else data,
        )

    def failure(self, component: str, method: str, error: BaseException) -> OperationResult:
        self._logger.error(log_messages.format_message(
            log_messages.QINIU_CALL_FAILED,
            component=component,
            method=method,
            cause=str(error) or type(error).__name__,
        ))
        kind = error.kind if isinstance(error, StorageError) else FailureKind.TRANSPORT
        return OperationResult(code=FAILURE_CODE, data=failure_data(error), kind=kind)

    async def run(
        self,
        component: str,
        method: str,
        call: Callable[[], Awaitable[QiniuResponse]],
        transform: Optional[Callable[[QiniuResponse], Any]] = None
    ) -> OperationResult:
        """
        执行一次接口调用并归一化结果

        Args:
            component: 组件名，用于日志（如 BucketManager）
            method: 方法名，用于日志（如 stat）
            call: 返回原始响应的协程工厂，在此处才被调用以便捕获参数构造阶段的异常
            transform: 可选的 data 转换函数

        Returns:
            OperationResult: 统一响应，从不抛出存储层异常
        """
        try:
            response = await call()
            data = transform(response) if transform else None
        except (StorageError, httpx.HTTPError, httpx.InvalidURL) as e:
            return self.failure(component, method, e)
        return self.success(component, method, response, data)


__all__ = ['ResponseNormalizer', 'SupportsLogging', 'FAILURE_CODE', 'failure_data']
