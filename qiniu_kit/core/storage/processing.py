"""
持久化数据处理
提交 pfop 处理流水线并查询处理状态
"""

from typing import Any, Dict, List, Optional, Sequence

from qiniu_kit.core.storage.exceptions import ValidationError
from qiniu_kit.core.storage.models import QiniuResponse
from qiniu_kit.core.storage.transport import QiniuHttp
from qiniu_kit.core.storage.zone import HostResolver
from qiniu_kit.utils.encoding import urlsafe_base64_encode

FOPS_SEPARATOR = ";"

# prefop 返回的 code 含义
PFOP_STATUS = {
    0: "succeeded",
    1: "queued",
    2: "running",
    3: "failed",
    4: "callback_failed",
}


def encode_fops(fops: Sequence[str]) -> List[str]:
    """
    对每条处理指令最后一个 '/' 之后的参数段做URL安全Base64编码

    例如 "avthumb/mp4/vb/1m|saveas/bucket:outkey" 只编码 "bucket:outkey"。
    """
    encoded = []
    for fop in fops:
        sep_index = fop.rfind("/")
        encoded.append(fop[:sep_index + 1] + urlsafe_base64_encode(fop[sep_index + 1:]))
    return encoded


def describe_status(body: Dict[str, Any]) -> Dict[str, Any]:
    """在 prefop 响应中补充可读的状态名"""
    if not isinstance(body, dict):
        return body
    described = dict(body)
    described["status"] = PFOP_STATUS.get(body.get("code"), "unknown")
    return described


class OperationManager:
    """持久化处理管理器"""

    COMPONENT = "OperManager"

    def __init__(self, http: QiniuHttp, hosts: HostResolver):
        self._http = http
        self._hosts = hosts

    async def pfop(
        self,
        bucket: str,
        key: str,
        fops: Sequence[str],
        pipeline: Optional[str] = None,
        notify_url: Optional[str] = None,
        force: bool = False
    ) -> QiniuResponse:
        """
        提交处理流水线

        Args:
            bucket: 源对象所在存储空间
            key: 源对象键
            fops: 处理指令列表，按顺序执行
            pipeline: 私有队列名称
            notify_url: 处理结果通知地址
            force: 是否强制执行已存在结果的处理

        Returns:
            QiniuResponse: 响应体包含 persistentId
        """
        if isinstance(fops, str) or not fops or not all(isinstance(f, str) and f for f in fops):
            raise ValidationError("fops 必须是非空的处理指令列表")

        data = {
            "bucket": bucket,
            "key": key,
            "fops": FOPS_SEPARATOR.join(encode_fops(fops)),
        }
        if pipeline:
            data["pipeline"] = pipeline
        if notify_url:
            data["notifyURL"] = notify_url
        if force:
            data["force"] = 1

        return await self._http.post_form(self._hosts.api_url() + "/pfop/", data=data)

    async def prefop(self, persistent_id: str) -> QiniuResponse:
        """查询处理状态，该接口不需要鉴权"""
        if not persistent_id:
            raise ValidationError("persistent_id 不能为空")
        return await self._http.get(
            self._hosts.prefop_url() + "/status/get/prefop",
            params={"id": persistent_id},
        )


__all__ = ['OperationManager', 'encode_fops', 'describe_status', 'PFOP_STATUS', 'FOPS_SEPARATOR']
