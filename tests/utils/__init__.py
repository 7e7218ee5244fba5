"""
测试工具包
提供内存版七牛服务等测试辅助
"""

from .fake_qiniu import FakeQiniu, StoredObject

__all__ = [
    'FakeQiniu',
    'StoredObject',
]
