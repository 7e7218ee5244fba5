"""
测试配置和fixtures
为所有测试提供共享的配置和fixtures

单元测试不访问网络：客户端的 httpx 传输层替换为内存版七牛服务。
"""

from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from qiniu_kit.core.storage import QiniuClient, reset_qiniu_client
from tests.utils.fake_qiniu import TEST_ACCESS_KEY, TEST_BUCKET, TEST_SECRET_KEY, TEST_ZONE, FakeQiniu


async def _no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def fake_qiniu():
    """内存版七牛服务"""
    return FakeQiniu(TEST_ACCESS_KEY, TEST_SECRET_KEY)


@pytest.fixture
def mock_logger():
    """调用方提供的日志对象"""
    return MagicMock()


@pytest_asyncio.fixture
async def client_factory(fake_qiniu, mock_logger):
    """按需定制参数创建挂载在内存服务上的客户端，测试结束后关闭连接池"""
    created = []

    def factory(**kwargs) -> QiniuClient:
        params = {
            "access_key": TEST_ACCESS_KEY,
            "secret_key": TEST_SECRET_KEY,
            "zone": TEST_ZONE,
            "bucket": TEST_BUCKET,
            "logger": mock_logger,
            "transport": fake_qiniu.transport(),
        }
        params.update(kwargs)
        client = QiniuClient(**params)
        client.resume_uploader._sleep = _no_sleep
        created.append(client)
        return client

    yield factory
    for client in created:
        await client.aclose()


@pytest.fixture
def qiniu_client(client_factory):
    """默认客户端"""
    return client_factory()


@pytest.fixture(autouse=True)
def _reset_singleton():
    """避免全局客户端在测试之间泄漏"""
    reset_qiniu_client()
    yield
    reset_qiniu_client()


# 测试标记配置
def pytest_configure(config):
    """配置pytest标记"""
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "auth: 签名与上传凭证测试")
    config.addinivalue_line("markers", "upload: 上传测试")
    config.addinivalue_line("markers", "resource: 资源管理测试")
    config.addinivalue_line("markers", "processing: 数据处理测试")
    config.addinivalue_line("markers", "cdn: CDN测试")
    config.addinivalue_line("markers", "response: 响应归一化测试")
    config.addinivalue_line("markers", "logging: 日志测试")
    config.addinivalue_line("markers", "config: 配置测试")
