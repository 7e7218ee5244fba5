"""
文件上传
提供表单直传（FormUploader）与分片断点续传（ResumeUploader）两种上传方式

两种方式接受同样的数据源：本地文件路径、二进制流或内存字节数据。
"""

import asyncio
import json
import os
import time
import zlib
from enum import Enum
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from qiniu_kit.core.storage.exceptions import (
    FailureKind,
    HTTPError,
    NetworkError,
    ResponseParseError,
    StorageError,
    UploadError,
    ValidationError,
)
from qiniu_kit.core.storage.models import BlockContext, PutExtra, QiniuResponse, UploadMode
from qiniu_kit.core.storage.transport import QiniuHttp
from qiniu_kit.core.storage.zone import HostResolver
from qiniu_kit.utils.encoding import urlsafe_base64_encode
from qiniu_kit.utils.file_utils import get_file_name, read_fully

T = TypeVar('T')

DEFAULT_MIME_TYPE = "application/octet-stream"


async def _run_in_executor(func: Callable[..., T], *args: Any) -> T:
    """在线程池中运行阻塞的文件读取"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args))


def _read_path(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _check_params(params: Dict[str, str]) -> None:
    for name in params:
        if not name.startswith("x:"):
            raise ValidationError(
                "自定义变量必须以 'x:' 开头: {}".format(name),
                details={"param": name}
            )


def _as_bytes(source: Any) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, str):
        return source.encode("utf-8")
    raise ValidationError("raw 模式只接受 bytes 或 str，实际为 {}".format(type(source).__name__))


def _check_stream(source: Any) -> None:
    if not callable(getattr(source, "read", None)):
        raise ValidationError("stream 模式需要可读的二进制流，实际为 {}".format(type(source).__name__))


def _default_fname(source: Any, mode: UploadMode, key: Optional[str]) -> str:
    if mode is UploadMode.WHOLE_FILE:
        return get_file_name(source)
    return key or "file"


async def load_source(source: Any, mode: UploadMode) -> bytes:
    """
    把数据源完整读入内存（表单直传使用）

    Raises:
        ValidationError: 数据源类型与模式不匹配或本地文件不可读
    """
    if mode is UploadMode.RAW_BODY:
        return _as_bytes(source)

    if mode is UploadMode.STREAM:
        _check_stream(source)
        data = await _run_in_executor(source.read)
        return _as_bytes(data)

    try:
        return await _run_in_executor(_read_path, os.fspath(source))
    except (OSError, TypeError) as e:
        raise ValidationError("读取本地文件失败: {}".format(e), details={"path": str(source)}) from e


def _parse_block_reply(index: int, body: Dict[str, Any]) -> Tuple[Optional[int], int]:
    """
    取出 mkblk 响应中的 crc32 与 expired_at

    Raises:
        ResponseParseError: 字段不是整数
    """
    try:
        crc = body.get("crc32")
        return (None if crc is None else int(crc)), int(body.get("expired_at") or 0)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(
            "块 {} 的 mkblk 响应格式错误: {}".format(index, e),
            details={"body": body}
        ) from e


class FormUploader:
    """表单直传，一次 multipart 请求完成上传"""

    COMPONENT = "FormUploader"

    def __init__(self, http: QiniuHttp, hosts: HostResolver):
        self._http = http
        self._hosts = hosts

    async def upload(
        self,
        upload_token: str,
        key: Optional[str],
        source: Any,
        mode: UploadMode,
        put_extra: Optional[PutExtra] = None
    ) -> QiniuResponse:
        """
        上传数据

        Args:
            upload_token: 上传凭证
            key: 目标对象键，为 None 时由服务端按 hash 命名
            source: 数据源
            mode: 数据源类型
            put_extra: 附加参数

        Returns:
            QiniuResponse: 服务端响应，响应体通常包含 key 与 hash
        """
        put_extra = put_extra or PutExtra()
        _check_params(put_extra.params)
        data = await load_source(source, mode)

        fields = {"token": upload_token, "crc32": str(zlib.crc32(data))}
        if key is not None:
            fields["key"] = key
        fields.update(put_extra.params)

        fname = put_extra.fname or _default_fname(source, mode, key)
        files = {"file": (fname, data, put_extra.mime_type or DEFAULT_MIME_TYPE)}

        return await self._http.post_multipart(self._hosts.up_url(), fields, files)


class UploadState(str, Enum):
    """分片上传状态"""

    IDLE = "idle"
    SCANNING = "scanning_local_file"
    UPLOADING_BLOCKS = "uploading_blocks"
    MAKING_FILE = "making_file"
    DONE = "done"


class ResumeRecorder:
    """
    断点续传进度记录

    记录文件为 JSON：{"key": ..., "source": ..., "contexts": [{index, ctx, size, crc32, expired_at}, ...]}。
    source 是本地文件的大小与修改时间，其它数据源为 null；与当前数据源不一致时整份记录作废。
    """

    def __init__(self, path: Optional[str], key: Optional[str]):
        self.path = path
        self.key = key

    def load(self, now: int, source: Optional[Dict[str, Any]] = None) -> Dict[int, BlockContext]:
        """读取未过期的块记录，记录不存在、无效或数据源已变化时返回空字典"""
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                record = json.load(f)
            if record.get("key") != self.key or record.get("source") != source:
                return {}
            contexts = [BlockContext(**item) for item in record.get("contexts", [])]
        except (OSError, ValueError, TypeError, AttributeError):
            return {}
        return {ctx.index: ctx for ctx in contexts if ctx.expired_at > now}

    def save(self, contexts: Dict[int, BlockContext], source: Optional[Dict[str, Any]] = None) -> None:
        if not self.path:
            return
        record = {
            "key": self.key,
            "source": source,
            "contexts": [
                {"index": c.index, "ctx": c.ctx, "size": c.size, "crc32": c.crc32, "expired_at": c.expired_at}
                for c in sorted(contexts.values(), key=lambda c: c.index)
            ],
        }
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(record, f)
        except OSError as e:
            raise UploadError("写入断点续传记录失败: {}".format(e), details={"path": self.path}) from e

    def remove(self) -> None:
        if self.path and os.path.exists(self.path):
            os.remove(self.path)


def _file_fingerprint(source: Any, mode: UploadMode) -> Optional[Dict[str, Any]]:
    """本地文件的大小与修改时间，文件不可读时返回 None，由后续读取报错"""
    if mode is not UploadMode.WHOLE_FILE:
        return None
    try:
        stat = os.stat(os.fspath(source))
    except (OSError, TypeError):
        return None
    return {"size": stat.st_size, "mtime": stat.st_mtime}


class ResumableUploadSession:
    """
    单次分片上传

    Idle -> ScanningLocalFile -> UploadingBlocks -> MakingFile -> Done，
    UploadingBlocks 阶段每个块独立重试，已确认的块写入进度记录。
    记录中的块只有在大小与 crc32 都与当前块一致时才会复用。
    """

    def __init__(
        self,
        uploader: "ResumeUploader",
        upload_token: str,
        key: Optional[str],
        put_extra: PutExtra
    ):
        self._uploader = uploader
        self._token = upload_token
        self._key = key
        self._put_extra = put_extra
        self._recorder = ResumeRecorder(put_extra.resume_record_file, key)
        self.state = UploadState.IDLE
        self.total_size = 0
        self.uploaded_blocks = 0
        self.reused_blocks = 0

    async def run(self, source: Any, mode: UploadMode) -> QiniuResponse:
        self.state = UploadState.SCANNING
        fingerprint = await _run_in_executor(_file_fingerprint, source, mode)
        recorded = await _run_in_executor(self._recorder.load, self._uploader.now(), fingerprint)
        contexts: Dict[int, BlockContext] = {}

        self.state = UploadState.UPLOADING_BLOCKS
        async for index, block in self._uploader.iter_source_blocks(source, mode):
            self.total_size += len(block)
            ctx = recorded.get(index)
            if ctx is not None and ctx.size == len(block) and ctx.crc32 == zlib.crc32(block):
                self.reused_blocks += 1
            else:
                ctx = await self._uploader.upload_block(self._token, index, block)
                self.uploaded_blocks += 1
            contexts[index] = ctx
            await _run_in_executor(self._recorder.save, dict(contexts), fingerprint)

        self.state = UploadState.MAKING_FILE
        ordered = [contexts[i] for i in sorted(contexts)]
        response = await self._uploader.make_file(
            self._token, self._key, self.total_size, ordered, self._put_extra
        )

        await _run_in_executor(self._recorder.remove)
        self.state = UploadState.DONE
        return response


class ResumeUploader:
    """分片上传：mkblk 逐块上传，mkfile 合并为目标对象"""

    COMPONENT = "ResumeUploader"

    def __init__(
        self,
        http: QiniuHttp,
        hosts: HostResolver,
        block_size: int = 4 * 1024 * 1024,
        max_retries: int = 3,
        retry_delay_base: float = 1.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._http = http
        self._hosts = hosts
        self.block_size = block_size
        self.max_retries = max_retries
        self.retry_delay_base = retry_delay_base
        self._clock = clock
        self._sleep = sleep

    def now(self) -> int:
        return int(self._clock())

    async def upload(
        self,
        upload_token: str,
        key: Optional[str],
        source: Any,
        mode: UploadMode,
        put_extra: Optional[PutExtra] = None
    ) -> QiniuResponse:
        """上传数据，参数与 FormUploader.upload 相同"""
        put_extra = put_extra or PutExtra()
        _check_params(put_extra.params)
        session = ResumableUploadSession(self, upload_token, key, put_extra)
        return await session.run(source, mode)

    async def iter_source_blocks(self, source: Any, mode: UploadMode) -> AsyncIterator[Tuple[int, bytes]]:
        """按块读取数据源"""
        if mode is UploadMode.RAW_BODY:
            data = _as_bytes(source)
            for index, offset in enumerate(range(0, len(data), self.block_size)):
                yield index, data[offset:offset + self.block_size]
            return

        if mode is UploadMode.STREAM:
            _check_stream(source)
            async for item in self._iter_stream(source):
                yield item
            return

        try:
            f = open(os.fspath(source), "rb")
        except (OSError, TypeError) as e:
            raise ValidationError("读取本地文件失败: {}".format(e), details={"path": str(source)}) from e
        try:
            async for item in self._iter_stream(f):
                yield item
        finally:
            f.close()

    async def _iter_stream(self, stream: Any) -> AsyncIterator[Tuple[int, bytes]]:
        index = 0
        while True:
            block = _as_bytes(await _run_in_executor(read_fully, stream, self.block_size))
            if not block:
                return
            yield index, block
            index += 1
            if len(block) < self.block_size:
                return

    async def upload_block(self, upload_token: str, index: int, block: bytes) -> BlockContext:
        """
        上传单个块，网络错误、5xx 与校验失败时按线性间隔重试

        Raises:
            UploadError: 重试耗尽或服务端拒绝
        """
        url = "{}/mkblk/{}".format(self._hosts.up_url(), len(block))
        expected_crc = zlib.crc32(block)
        last_error: Optional[StorageError] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self._http.post_binary(url, block, upload_token)
                body = response.body if isinstance(response.body, dict) else {}
                crc, expired_at = _parse_block_reply(index, body)
                if crc is not None and crc != expected_crc:
                    raise UploadError(
                        "块 {} 校验失败".format(index),
                        details={"expected": expected_crc, "actual": crc}
                    )
                if not body.get("ctx"):
                    raise UploadError("块 {} 响应缺少 ctx".format(index), kind=FailureKind.REMOTE)
                return BlockContext(
                    index=index,
                    ctx=body["ctx"],
                    size=len(block),
                    crc32=expected_crc,
                    expired_at=expired_at,
                )
            except HTTPError as e:
                last_error = e
                if e.status_code is not None and e.status_code < 500:
                    break
            except (NetworkError, UploadError) as e:
                last_error = e

            if attempt < self.max_retries:
                await self._sleep(self.retry_delay_base * (attempt + 1))

        raise UploadError(
            "块 {} 上传失败: {}".format(index, last_error.message if last_error else "unknown"),
            kind=last_error.kind if last_error else FailureKind.TRANSPORT,
            details={"index": index, "retries": self.max_retries}
        ) from last_error

    async def make_file(
        self,
        upload_token: str,
        key: Optional[str],
        file_size: int,
        contexts: List[BlockContext],
        put_extra: PutExtra
    ) -> QiniuResponse:
        """按块顺序合并为目标对象"""
        segments = [self._hosts.up_url(), "mkfile", str(file_size)]
        if key is not None:
            segments += ["key", urlsafe_base64_encode(key)]
        if put_extra.mime_type:
            segments += ["mimeType", urlsafe_base64_encode(put_extra.mime_type)]
        if put_extra.fname:
            segments += ["fname", urlsafe_base64_encode(put_extra.fname)]
        for name, value in put_extra.params.items():
            segments += [name, urlsafe_base64_encode(value)]

        body = ",".join(ctx.ctx for ctx in contexts).encode("utf-8")
        return await self._http.post_binary("/".join(segments), body, upload_token, content_type="text/plain")


__all__ = [
    'FormUploader',
    'ResumeUploader',
    'ResumableUploadSession',
    'ResumeRecorder',
    'UploadState',
    'load_source',
]
