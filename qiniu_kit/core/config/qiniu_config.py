"""
七牛云配置模块
从全局配置中抽取客户端所需的配置项
"""

from pydantic import BaseModel, Field

from qiniu_kit.core.config.config import settings


class QiniuConfig(BaseModel):
    """七牛配置数据类"""

    access_key: str = Field(default="", description="七牛 AccessKey")
    secret_key: str = Field(default="", description="七牛 SecretKey")
    zone: str = Field(default="z0", description="存储区域")
    bucket: str = Field(default="", description="存储空间名称")

    use_https_domain: bool = Field(default=False, description="是否使用HTTPS域名")
    use_cdn_domain: bool = Field(default=False, description="是否使用CDN加速上传域名")
    enable_logging: bool = Field(default=False, description="是否记录响应日志")

    upload_token_expires: int = Field(default=3600, description="上传凭证有效期（秒）")
    block_size: int = Field(default=4 * 1024 * 1024, description="分片上传块大小（字节）")
    max_retries: int = Field(default=3, description="单块最大重试次数")
    retry_delay_base: float = Field(default=1.0, description="重试间隔基数（秒）")
    timeout: float = Field(default=30.0, description="请求超时时间（秒）")


def get_qiniu_config() -> QiniuConfig:
    """从全局配置获取七牛配置"""
    return QiniuConfig(
        access_key=settings.qiniu_access_key,
        secret_key=settings.qiniu_secret_key,
        zone=settings.qiniu_zone,
        bucket=settings.qiniu_bucket,
        use_https_domain=settings.qiniu_use_https_domain,
        use_cdn_domain=settings.qiniu_use_cdn_domain,
        enable_logging=settings.qiniu_enable_logging,
        upload_token_expires=settings.qiniu_upload_token_expires,
        block_size=settings.qiniu_block_size,
        max_retries=settings.qiniu_max_retries,
        retry_delay_base=settings.qiniu_retry_delay_base,
        timeout=settings.qiniu_timeout,
    )


def validate_qiniu_config(config: QiniuConfig) -> bool:
    """验证七牛配置完整性"""
    required_fields = ["access_key", "secret_key", "zone", "bucket"]

    for field in required_fields:
        if not getattr(config, field):
            return False

    return True


def missing_qiniu_fields(config: QiniuConfig) -> list[str]:
    """列出缺失的必填配置项"""
    return [
        field for field in ("access_key", "secret_key", "zone", "bucket")
        if not getattr(config, field)
    ]
