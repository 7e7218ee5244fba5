"""
编码工具模块
提供七牛接口使用的URL安全Base64编码
"""

import base64
from typing import Union


def urlsafe_base64_encode(data: Union[str, bytes]) -> str:
    """
    URL安全的Base64编码（'+' -> '-'，'/' -> '_'，保留 '=' 填充）

    Args:
        data: 待编码数据，字符串按UTF-8编码

    Returns:
        str: 编码结果
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def urlsafe_base64_decode(data: Union[str, bytes]) -> bytes:
    """URL安全的Base64解码"""
    if isinstance(data, str):
        data = data.encode("ascii")
    return base64.urlsafe_b64decode(data)


def encoded_entry(bucket: str, key: str) -> str:
    """生成 EncodedEntryURI，即 urlsafe_base64("bucket:key")"""
    return urlsafe_base64_encode(f"{bucket}:{key}")
