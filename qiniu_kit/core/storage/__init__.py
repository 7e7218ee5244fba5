"""
存储服务模块
提供七牛云存储客户端的创建与全局单例访问
"""

import threading
from typing import Any, Optional

from qiniu_kit.core.config.qiniu_config import (
    get_qiniu_config,
    missing_qiniu_fields,
    validate_qiniu_config,
)
from qiniu_kit.core.storage.client import QiniuClient
from qiniu_kit.core.storage.exceptions import *
from qiniu_kit.core.storage.models import *
from qiniu_kit.core.storage.response import SupportsLogging

_client: Optional[QiniuClient] = None
_client_lock = threading.Lock()


def new_client(
    access_key: str,
    secret_key: str,
    zone: str,
    bucket: str,
    use_https_domain: bool = False,
    use_cdn_domain: bool = False,
    enable_logging: bool = False,
    logger: Optional[SupportsLogging] = None,
    **kwargs: Any
) -> QiniuClient:
    """
    创建七牛客户端

    Args:
        access_key: AccessKey
        secret_key: SecretKey
        zone: 存储区域
        bucket: 存储空间
        use_https_domain: 是否使用HTTPS域名
        use_cdn_domain: 是否使用CDN加速上传域名
        enable_logging: 是否记录响应日志
        logger: 调用方提供的日志对象
        **kwargs: 传递给 QiniuClient 的其余参数（block_size、timeout、transport 等）

    Raises:
        ConfigurationError: 必填参数缺失
    """
    return QiniuClient(
        access_key,
        secret_key,
        zone,
        bucket,
        use_https_domain=use_https_domain,
        use_cdn_domain=use_cdn_domain,
        enable_logging=enable_logging,
        logger=logger,
        **kwargs
    )


def create_client_from_settings(**overrides: Any) -> QiniuClient:
    """根据全局配置创建客户端"""
    config = get_qiniu_config()
    if not validate_qiniu_config(config):
        raise ConfigurationError(
            "七牛配置不完整，请检查环境变量: {}".format(
                ", ".join("QINIU_" + name.upper() for name in missing_qiniu_fields(config))
            )
        )

    params = config.model_dump()
    params.update(overrides)
    return QiniuClient(**params)


def get_qiniu_client() -> QiniuClient:
    """
    获取进程内共享的七牛客户端

    首次调用时根据全局配置创建，之后复用同一实例。

    Raises:
        ConfigurationError: 七牛配置不完整
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = create_client_from_settings()
    return _client


def reset_qiniu_client() -> Optional[QiniuClient]:
    """清除共享客户端并返回旧实例，调用方负责 await aclose()"""
    global _client
    with _client_lock:
        previous, _client = _client, None
    return previous


__all__ = [
    'QiniuClient',
    'new_client',
    'create_client_from_settings',
    'get_qiniu_client',
    'reset_qiniu_client',
    'SupportsLogging',
]
