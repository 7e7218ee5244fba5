"""
七牛文件哈希（qetag）计算
用于在本地校验 stat 返回的 hash 与上传内容是否一致

算法：按 4MB 切块；只有一块时结果为 0x16 + sha1(数据)，
多块时为 0x96 + sha1(各块 sha1 拼接)，最后做URL安全Base64编码。
"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Iterable, Union

from qiniu_kit.utils.encoding import urlsafe_base64_encode
from qiniu_kit.utils.file_utils import iter_blocks

ETAG_BLOCK_SIZE = 4 * 1024 * 1024


def _etag_from_blocks(blocks: Iterable[bytes]) -> str:
    block_digests = [hashlib.sha1(block).digest() for block in blocks]

    if len(block_digests) <= 1:
        digest = block_digests[0] if block_digests else hashlib.sha1(b"").digest()
        return urlsafe_base64_encode(b"\x16" + digest)

    return urlsafe_base64_encode(b"\x96" + hashlib.sha1(b"".join(block_digests)).digest())


def etag_stream(stream: BinaryIO) -> str:
    """计算二进制流的 qetag"""
    return _etag_from_blocks(iter_blocks(stream, ETAG_BLOCK_SIZE))


def compute_etag(source: Union[bytes, str, Path]) -> str:
    """
    计算 qetag

    Args:
        source: 字节数据或本地文件路径

    Returns:
        str: 与七牛 stat 接口 hash 字段一致的哈希值
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        return _etag_from_blocks(
            data[i:i + ETAG_BLOCK_SIZE] for i in range(0, len(data), ETAG_BLOCK_SIZE)
        )

    with open(source, "rb") as f:
        return etag_stream(f)
