"""
应用配置管理模块
统一管理七牛云存储客户端的配置信息，包括环境变量和文件配置
"""

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

from qiniu_kit.utils.config_utils import get_config_path


class Settings(BaseSettings):
    """客户端配置类 - 统一管理所有配置信息"""

    # ==================== 基础配置 ====================
    app_name: str = "qiniu-kit"
    app_debug: bool = False

    # ==================== 七牛凭证配置 ====================
    qiniu_access_key: str = ""
    qiniu_secret_key: str = ""
    qiniu_zone: str = "z0"
    qiniu_bucket: str = ""

    # ==================== 域名配置 ====================
    qiniu_use_https_domain: bool = False
    qiniu_use_cdn_domain: bool = False

    # ==================== 上传配置 ====================
    qiniu_upload_token_expires: int = 3600
    qiniu_block_size: int = 4 * 1024 * 1024  # 4MB

    # ==================== 重试配置 ====================
    qiniu_max_retries: int = 3
    qiniu_retry_delay_base: float = 1.0

    # ==================== 网络配置 ====================
    qiniu_timeout: float = 30.0

    # ==================== 日志配置 ====================
    qiniu_enable_logging: bool = False
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ==================== 验证器 ====================
    @field_validator("qiniu_block_size")
    @classmethod
    def check_block_size(cls, value: int) -> int:
        """分片大小必须为正数"""
        if value <= 0:
            raise ValueError("qiniu_block_size must be positive")
        return value

    @field_validator("qiniu_max_retries")
    @classmethod
    def check_max_retries(cls, value: int) -> int:
        """重试次数不能为负数"""
        if value < 0:
            raise ValueError("qiniu_max_retries must not be negative")
        return value

    # ==================== 计算属性 ====================
    @property
    def qiniu_enabled(self) -> bool:
        """检查七牛凭证是否完整"""
        return bool(
            self.qiniu_access_key
            and self.qiniu_secret_key
            and self.qiniu_zone
            and self.qiniu_bucket
        )

    model_config = ConfigDict(
        env_file=get_config_path(".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        validate_default=True
    )


def get_settings() -> Settings:
    """获取应用配置实例"""
    # 环境变量文件加载由外部环境控制，这里只返回配置实例
    return Settings()


# 全局配置实例
settings = get_settings()
