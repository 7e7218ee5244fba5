"""
配置模块
包含客户端所有配置信息和工具
"""

from qiniu_kit.core.config.config import settings, get_settings
from qiniu_kit.core.config.qiniu_config import (
    QiniuConfig,
    get_qiniu_config,
    validate_qiniu_config,
)

__all__ = [
    "settings",
    "get_settings",
    "QiniuConfig",
    "get_qiniu_config",
    "validate_qiniu_config",
]
