"""
签名与上传凭证
提供管理接口签名（QBox）以及带缓存的上传凭证签发

签名只依赖本地密钥计算，不需要任何网络访问。
"""

import hashlib
import hmac
import json
import time
from typing import Callable, Dict, Optional, Union
from urllib.parse import urlparse

from qiniu_kit.core.storage.exceptions import ConfigurationError
from qiniu_kit.core.storage.models import Credentials, UploadPolicy
from qiniu_kit.utils.encoding import urlsafe_base64_encode

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
DEFAULT_TOKEN_EXPIRES = 3600


class Signer:
    """
    HMAC-SHA1 签名器

    对应七牛 SDK 中的 Mac 对象，持有凭证并对任意数据签名。
    """

    def __init__(self, credentials: Credentials):
        """
        Raises:
            ConfigurationError: AccessKey 或 SecretKey 为空时抛出
        """
        if not credentials.access_key or not credentials.secret_key:
            raise ConfigurationError("AccessKey 和 SecretKey 不能为空")
        self._credentials = credentials
        self._secret = credentials.secret_key.encode("utf-8")

    @property
    def access_key(self) -> str:
        return self._credentials.access_key

    def _digest(self, data: bytes) -> str:
        return urlsafe_base64_encode(hmac.new(self._secret, data, hashlib.sha1).digest())

    def sign(self, data: Union[str, bytes]) -> str:
        """返回 "AccessKey:EncodedSign" """
        if isinstance(data, str):
            data = data.encode("utf-8")
        return f"{self.access_key}:{self._digest(data)}"

    def sign_with_data(self, data: Union[str, bytes]) -> str:
        """返回 "AccessKey:EncodedSign:EncodedData"，用于上传凭证"""
        encoded_data = urlsafe_base64_encode(data)
        return f"{self.sign(encoded_data)}:{encoded_data}"

    def access_token(
        self,
        url: str,
        body: Optional[Union[str, bytes]] = None,
        content_type: Optional[str] = None
    ) -> str:
        """
        生成管理接口的 QBox 授权头

        待签名数据为 path[?query] + "\\n"，仅当请求体为表单格式时把请求体追加在后面。

        Args:
            url: 完整请求地址
            body: 请求体
            content_type: 请求体类型

        Returns:
            str: Authorization 头的值
        """
        parsed = urlparse(url)
        data = parsed.path
        if parsed.query:
            data = f"{data}?{parsed.query}"
        data = f"{data}\n".encode("utf-8")

        if body and content_type == FORM_CONTENT_TYPE:
            data += body.encode("utf-8") if isinstance(body, str) else body

        return f"QBox {self.sign(data)}"


class UploadTokenIssuer:
    """
    上传凭证签发器

    每个 scope 缓存一份上传策略，策略过期前重复签发时复用同一策略，
    过期后重新生成截止时间更晚的新策略。
    """

    def __init__(
        self,
        signer: Signer,
        bucket: str,
        expires: int = DEFAULT_TOKEN_EXPIRES,
        clock: Callable[[], float] = time.time
    ):
        self._signer = signer
        self._bucket = bucket
        self._expires = expires
        self._clock = clock
        self._policies: Dict[str, UploadPolicy] = {}

    def _now(self) -> int:
        return int(self._clock())

    def get_put_policy(self, bucket: Optional[str] = None) -> UploadPolicy:
        """获取缓存的上传策略，不存在或已过期时重新生成"""
        scope = bucket or self._bucket
        policy = self._policies.get(scope)

        if policy is None or policy.is_expired(self._now()):
            policy = UploadPolicy(scope=scope, deadline=self._now() + self._expires)
            # 并发初始化时后写入者覆盖先写入者，两者等价
            self._policies[scope] = policy

        return policy

    def issue_token(self, bucket: Optional[str] = None) -> str:
        """签发作用于整个存储空间的上传凭证"""
        policy = self.get_put_policy(bucket)
        return self.sign_policy(policy)

    def sign_policy(self, policy: UploadPolicy) -> str:
        payload = json.dumps(policy.to_dict(), separators=(",", ":"))
        return self._signer.sign_with_data(payload)

    def upload_token(
        self,
        key: Optional[str] = None,
        expires: Optional[int] = None,
        bucket: Optional[str] = None,
        **constraints
    ) -> str:
        """
        签发自定义上传凭证（不缓存）

        Args:
            key: 指定时 scope 为 "bucket:key"，只允许上传到该 key
            expires: 有效期（秒），默认使用签发器配置
            bucket: 存储空间，默认使用客户端存储空间
            **constraints: UploadPolicy 的可选约束，如 fsize_limit、mime_limit、callback_url

        Returns:
            str: 上传凭证
        """
        scope = bucket or self._bucket
        if key is not None:
            scope = f"{scope}:{key}"
        policy = UploadPolicy(
            scope=scope,
            deadline=self._now() + (expires if expires is not None else self._expires),
            **constraints
        )
        return self.sign_policy(policy)


__all__ = ['Signer', 'UploadTokenIssuer', 'FORM_CONTENT_TYPE']
