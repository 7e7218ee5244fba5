"""
统一日志管理模块
客户端未收到调用方日志对象时使用这里的日志记录器
"""

import logging
import sys
from typing import Optional, Dict, Any

from qiniu_kit.core.config import settings
from qiniu_kit.core.log_messages import log_messages


class UnifiedLogger:
    """
    结构化日志记录器

    消息既可以是已经拼好的字符串（七牛响应日志里常带 JSON 花括号），
    也可以是 LogMessages 模板加关键字参数；关键字参数同时写入 extra。
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name

    def _format_extra_data(self, **kwargs: Any) -> Dict[str, Any]:
        return log_messages.get_structured_data(log_module=self.name, **kwargs)

    def _render(self, message_template: str, **kwargs: Any) -> str:
        # 无参数时不格式化，已拼好的 JSON 花括号保持原样
        if not kwargs:
            return message_template
        try:
            return log_messages.format_message(message_template, **kwargs)
        except (KeyError, ValueError, IndexError):
            return message_template

    def _log(self, level: int, message_template: str, exception: Optional[BaseException] = None,
             **kwargs: Any) -> None:
        extra_data = self._format_extra_data(**kwargs)
        if exception is not None:
            extra_data.update({
                "exception_type": type(exception).__name__,
                "exception_message": str(exception)
            })
            self.logger.log(level, self._render(message_template, **kwargs), extra=extra_data, exc_info=exception)
        else:
            self.logger.log(level, self._render(message_template, **kwargs), extra=extra_data)

    def info(self, message_template: str, **kwargs: Any) -> None:
        """
        记录信息日志

        示例:
            logger.info('[qiniu] BucketManager.stat respBody: {"fsize": 1} respInfo: {}')
            logger.info(LogMessages.OPERATION_SUCCESS, operation_name="refreshUrls")
        """
        self._log(logging.INFO, message_template, **kwargs)

    def error(self, message_template: str, exception: Optional[BaseException] = None, **kwargs: Any) -> None:
        """记录错误日志，传入 exception 时附带异常类型、消息和堆栈"""
        self._log(logging.ERROR, message_template, exception, **kwargs)

    def warning(self, message_template: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message_template, **kwargs)

    def debug(self, message_template: str, **kwargs: Any) -> None:
        """仅在 APP_DEBUG 开启时输出"""
        if settings.app_debug:
            self._log(logging.DEBUG, message_template, **kwargs)


_loggers_cache: Dict[str, UnifiedLogger] = {}


def get_logger(name: str = "qiniu_kit") -> UnifiedLogger:
    """按名称获取并缓存 UnifiedLogger"""
    if name not in _loggers_cache:
        _loggers_cache[name] = UnifiedLogger(name)
    return _loggers_cache[name]


def setup_logging() -> None:
    """
    配置根日志记录器

    库本身不会调用它，供独立脚本或宿主应用在启动时使用。
    httpx 与 httpcore 的请求日志压到 WARNING，避免每个分片请求都打一行。
    """
    root_logger = logging.getLogger()
    log_level = logging.DEBUG if settings.app_debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(settings.log_format))
    root_logger.addHandler(console_handler)

    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    get_logger(__name__).info(log_messages.OPERATION_SUCCESS, operation_name="日志系统配置")
