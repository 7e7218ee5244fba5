"""
通用工具模块包
提供编码、文件和哈希相关的工具函数
"""

from .encoding import urlsafe_base64_encode, urlsafe_base64_decode, encoded_entry
from .etag import compute_etag, etag_stream
from .file_utils import get_file_name, read_fully, iter_blocks

__all__ = [
    'urlsafe_base64_encode',
    'urlsafe_base64_decode',
    'encoded_entry',
    'compute_etag',
    'etag_stream',
    'get_file_name',
    'read_fully',
    'iter_blocks',
]
