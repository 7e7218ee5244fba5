"""
资源管理
对已存储对象执行查询、修改、删除、列举、抓取和批量操作
"""

from typing import Any, Callable, Dict, List, Sequence
from urllib.parse import urlencode

from qiniu_kit.core.storage.exceptions import ResponseParseError, ValidationError
from qiniu_kit.core.storage.models import (
    BatchOperation,
    BatchOperationType,
    ListOptions,
    QiniuResponse,
)
from qiniu_kit.core.storage.transport import QiniuHttp
from qiniu_kit.core.storage.zone import HostResolver
from qiniu_kit.utils.encoding import encoded_entry, urlsafe_base64_encode

BATCH_SUCCESS_CODES = (200, 298)
MAX_BATCH_SIZE = 1000
MAX_LIST_LIMIT = 1000


def _bool_flag(value: bool) -> str:
    return "true" if value else "false"


def _require_non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("{} 必须为非负整数，实际为 {!r}".format(name, value))
    return value


# ==================== 操作路径 ====================

def stat_op(bucket: str, key: str) -> str:
    return "/stat/{}".format(encoded_entry(bucket, key))


def delete_op(bucket: str, key: str) -> str:
    return "/delete/{}".format(encoded_entry(bucket, key))


def change_mime_op(bucket: str, key: str, mime: str) -> str:
    if not mime:
        raise ValidationError("mime 不能为空")
    return "/chgm/{}/mime/{}".format(encoded_entry(bucket, key), urlsafe_base64_encode(mime))


def change_type_op(bucket: str, key: str, storage_type: int) -> str:
    storage_type = _require_non_negative("storage_type", storage_type)
    return "/chtype/{}/type/{}".format(encoded_entry(bucket, key), storage_type)


def delete_after_days_op(bucket: str, key: str, days: int) -> str:
    days = _require_non_negative("days", days)
    return "/deleteAfterDays/{}/{}".format(encoded_entry(bucket, key), days)


def move_op(src_bucket: str, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> str:
    return "/move/{}/{}/force/{}".format(
        encoded_entry(src_bucket, src_key), encoded_entry(dest_bucket, dest_key), _bool_flag(force)
    )


def copy_op(src_bucket: str, src_key: str, dest_bucket: str, dest_key: str, force: bool = False) -> str:
    return "/copy/{}/{}/force/{}".format(
        encoded_entry(src_bucket, src_key), encoded_entry(dest_bucket, dest_key), _bool_flag(force)
    )


def _require_dest(op: BatchOperation) -> None:
    if not op.dest_bucket or op.dest_key is None:
        raise ValidationError("{} 操作需要 dest_bucket 与 dest_key".format(op.kind.value))


def _build_stat(bucket: str, op: BatchOperation) -> str:
    return stat_op(bucket, op.key)


def _build_delete(bucket: str, op: BatchOperation) -> str:
    return delete_op(bucket, op.key)


def _build_change_mime(bucket: str, op: BatchOperation) -> str:
    return change_mime_op(bucket, op.key, op.mime or "")


def _build_change_type(bucket: str, op: BatchOperation) -> str:
    return change_type_op(bucket, op.key, op.storage_type)


def _build_delete_after_days(bucket: str, op: BatchOperation) -> str:
    return delete_after_days_op(bucket, op.key, op.days)


def _build_move(bucket: str, op: BatchOperation) -> str:
    _require_dest(op)
    return move_op(bucket, op.key, op.dest_bucket, op.dest_key, op.force)


def _build_copy(bucket: str, op: BatchOperation) -> str:
    _require_dest(op)
    return copy_op(bucket, op.key, op.dest_bucket, op.dest_key, op.force)


_OP_BUILDERS: Dict[BatchOperationType, Callable[[str, BatchOperation], str]] = {
    BatchOperationType.STAT: _build_stat,
    BatchOperationType.DELETE: _build_delete,
    BatchOperationType.CHANGE_MIME: _build_change_mime,
    BatchOperationType.CHANGE_TYPE: _build_change_type,
    BatchOperationType.DELETE_AFTER_DAYS: _build_delete_after_days,
    BatchOperationType.MOVE: _build_move,
    BatchOperationType.COPY: _build_copy,
}


def build_operation(op: Any, default_bucket: str) -> str:
    """
    把 BatchOperation 转换为批量接口中的一条 op

    Raises:
        ValidationError: 不是 BatchOperation 或参数不完整
    """
    if not isinstance(op, BatchOperation):
        raise ValidationError("批量操作项必须是 BatchOperation，实际为 {}".format(type(op).__name__))
    builder = _OP_BUILDERS.get(op.kind)
    if builder is None:
        raise ValidationError("不支持的批量操作类型: {}".format(op.kind))
    return builder(op.bucket or default_bucket, op)


def parse_batch_items(response: QiniuResponse) -> List[Dict[str, Any]]:
    """批量接口每一项的结果，保持提交顺序"""
    if not isinstance(response.body, list) or not all(isinstance(item, dict) for item in response.body):
        raise ResponseParseError("批量操作响应应为对象数组")
    return [
        {"code": item.get("code"), "data": item.get("data", {})}
        for item in response.body
    ]


class BucketManager:
    """资源管理器，所有请求使用 QBox 管理凭证"""

    COMPONENT = "BucketManager"

    def __init__(self, http: QiniuHttp, hosts: HostResolver):
        self._http = http
        self._hosts = hosts

    async def _rs(self, op_path: str) -> QiniuResponse:
        return await self._http.post_form(self._hosts.rs_url() + op_path)

    async def stat(self, bucket: str, key: str) -> QiniuResponse:
        return await self._rs(stat_op(bucket, key))

    async def change_mime(self, bucket: str, key: str, mime: str) -> QiniuResponse:
        return await self._rs(change_mime_op(bucket, key, mime))

    async def change_type(self, bucket: str, key: str, storage_type: int) -> QiniuResponse:
        return await self._rs(change_type_op(bucket, key, storage_type))

    async def delete(self, bucket: str, key: str) -> QiniuResponse:
        return await self._rs(delete_op(bucket, key))

    async def delete_after_days(self, bucket: str, key: str, days: int) -> QiniuResponse:
        return await self._rs(delete_after_days_op(bucket, key, days))

    async def move(
        self,
        src_bucket: str,
        src_key: str,
        dest_bucket: str,
        dest_key: str,
        force: bool = False
    ) -> QiniuResponse:
        return await self._rs(move_op(src_bucket, src_key, dest_bucket, dest_key, force))

    async def copy(
        self,
        src_bucket: str,
        src_key: str,
        dest_bucket: str,
        dest_key: str,
        force: bool = False
    ) -> QiniuResponse:
        return await self._rs(copy_op(src_bucket, src_key, dest_bucket, dest_key, force))

    async def list_prefix(self, bucket: str, options: ListOptions) -> QiniuResponse:
        """
        列举一页对象

        响应体包含 items、commonPrefixes 与 marker，marker 为空表示列举结束。
        """
        limit = options.limit
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIST_LIMIT:
            raise ValidationError("limit 取值范围为 1-{}".format(MAX_LIST_LIMIT))

        params = {"bucket": bucket, "limit": options.limit}
        for name in ("prefix", "delimiter", "marker"):
            value = getattr(options, name)
            if value:
                params[name] = value

        url = "{}/list?{}".format(self._hosts.rsf_url(), urlencode(params))
        return await self._http.post_form(url)

    async def fetch(self, res_url: str, bucket: str, key: str) -> QiniuResponse:
        """由服务端抓取远程资源存入存储空间，同步返回抓取结果"""
        if not res_url:
            raise ValidationError("res_url 不能为空")
        url = "{}/fetch/{}/to/{}".format(
            self._hosts.io_url(), urlsafe_base64_encode(res_url), encoded_entry(bucket, key)
        )
        return await self._http.post_form(url)

    async def prefetch(self, bucket: str, key: str) -> QiniuResponse:
        """从镜像源站更新对象，异步生效，不返回内容"""
        url = "{}/prefetch/{}".format(self._hosts.io_url(), encoded_entry(bucket, key))
        return await self._http.post_form(url)

    async def batch(self, operations: Sequence[Any], default_bucket: str) -> QiniuResponse:
        """
        一次请求提交多条操作

        Raises:
            ValidationError: 操作列表为空、超过上限或含非法项
        """
        if isinstance(operations, (str, bytes)) or not isinstance(operations, Sequence):
            raise ValidationError("operations 必须是 BatchOperation 序列")
        if not operations:
            raise ValidationError("operations 不能为空")
        if len(operations) > MAX_BATCH_SIZE:
            raise ValidationError("单次批量操作最多 {} 条".format(MAX_BATCH_SIZE))

        ops = [("op", build_operation(op, default_bucket)) for op in operations]
        return await self._http.post_form(
            self._hosts.rs_url() + "/batch",
            data=ops,
            accepted=BATCH_SUCCESS_CODES,
        )


__all__ = [
    'BucketManager',
    'build_operation',
    'parse_batch_items',
    'BATCH_SUCCESS_CODES',
    'stat_op',
    'delete_op',
    'change_mime_op',
    'change_type_op',
    'delete_after_days_op',
    'move_op',
    'copy_op',
]
