"""
文件工具模块
提供上传时使用的文件处理函数
"""

from pathlib import Path
from typing import BinaryIO, Iterator, Union


def get_file_name(file_path: Union[str, Path]) -> str:
    """获取不含目录的文件名"""
    return Path(file_path).name


def read_fully(stream: BinaryIO, size: int) -> bytes:
    """
    从流中读取至多 size 字节，兼容每次只返回部分数据的流

    Returns:
        bytes: 读取的数据，流结束时可能短于 size
    """
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def iter_blocks(stream: BinaryIO, block_size: int) -> Iterator[bytes]:
    """按固定大小切块读取流，最后一块可能较短"""
    while True:
        block = read_fully(stream, block_size)
        if not block:
            return
        yield block
        if len(block) < block_size:
            return
