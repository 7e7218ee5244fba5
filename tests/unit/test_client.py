"""
客户端构造与全局单例单元测试
"""

import threading
from unittest.mock import patch

import pytest

from qiniu_kit import new_client
from qiniu_kit.core.config.qiniu_config import QiniuConfig
from qiniu_kit.core.storage import (
    QiniuClient,
    create_client_from_settings,
    get_qiniu_client,
    reset_qiniu_client,
)
from qiniu_kit.core.storage.exceptions import ConfigurationError
from qiniu_kit.core.storage.zone import HostResolver, get_zone

VALID_CONFIG = QiniuConfig(access_key="ak", secret_key="sk", zone="z2", bucket="b", block_size=2048)


@pytest.mark.unit
class TestClientConstruction:
    """客户端构造测试类"""

    @pytest.mark.parametrize("missing", ["access_key", "secret_key", "zone", "bucket"])
    def test_required_fields(self, missing):
        """测试四个必填参数缺失时构造失败"""
        params = {"access_key": "ak", "secret_key": "sk", "zone": "z0", "bucket": "b"}
        params[missing] = ""

        with pytest.raises(ConfigurationError) as exc_info:
            new_client(**params)

        assert missing in exc_info.value.message
        assert exc_info.value.details["missing"] == [missing]

    def test_unknown_zone(self):
        with pytest.raises(ConfigurationError):
            QiniuClient("ak", "sk", "moon", "b")

    def test_invalid_block_size(self):
        with pytest.raises(ConfigurationError):
            QiniuClient("ak", "sk", "z0", "b", block_size=0)

    def test_sub_managers_built_once_and_shared(self):
        """测试子管理器在构造时创建并共享同一个HTTP客户端"""
        client = new_client("ak", "sk", "Zone_z1", "b", use_https_domain=True, enable_logging=True)

        assert client.form_uploader._http is client.http
        assert client.bucket_manager._http is client.http
        assert client.cdn_manager._http is client.http
        assert client.hosts.zone.name == "z1"
        assert client.config.use_https_domain
        assert client.bucket == "b"

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_pool(self, fake_qiniu):
        async with QiniuClient("ak", "sk", "z0", "b", transport=fake_qiniu.transport()) as client:
            assert not client.http.closed
        assert client.http.closed

    def test_upload_token_helper(self):
        client = QiniuClient("ak", "sk", "z0", "b")
        assert client.upload_token() == client.upload_token()
        assert client.upload_token(key="a.txt") != client.upload_token()
        assert client.access_token("http://rs.qbox.me/stat/x").startswith("QBox ak:")


@pytest.mark.unit
class TestHostResolver:
    """区域域名测试类"""

    def test_default_hosts(self):
        hosts = HostResolver(get_zone("z0"))
        assert hosts.up_url() == "http://up.qiniup.com"
        assert hosts.rs_url() == "http://rs.qbox.me"
        assert hosts.rsf_url() == "http://rsf.qbox.me"
        assert hosts.io_url() == "http://iovip.qbox.me"
        assert hosts.api_url() == "http://api.qiniu.com"
        assert hosts.fusion_url() == "https://fusion.qiniuapi.com"

    def test_https_and_cdn_hosts(self):
        hosts = HostResolver(get_zone("z2"), use_https_domain=True, use_cdn_domain=True)
        assert hosts.up_url() == "https://upload-z2.qiniup.com"
        assert hosts.rs_url() == "https://rs-z2.qbox.me"

    @pytest.mark.asyncio
    async def test_requests_follow_zone(self, client_factory, fake_qiniu):
        """测试请求发往所选区域的域名"""
        client = client_factory(zone="na0")
        await client.put("a.txt", b"a")
        await client.stat("a.txt")

        hosts = [request.url.host for request in fake_qiniu.requests]
        assert hosts == ["up-na0.qiniup.com", "rs-na0.qbox.me"]


@pytest.mark.unit
class TestSingleton:
    """全局客户端测试类"""

    def test_incomplete_settings(self):
        with patch("qiniu_kit.core.storage.get_qiniu_config", return_value=QiniuConfig()):
            with pytest.raises(ConfigurationError) as exc_info:
                create_client_from_settings()
        assert "QINIU_ACCESS_KEY" in exc_info.value.message

    def test_created_from_settings(self):
        with patch("qiniu_kit.core.storage.get_qiniu_config", return_value=VALID_CONFIG):
            client = create_client_from_settings(max_retries=0)

        assert client.hosts.zone.name == "z2"
        assert client.resume_uploader.block_size == 2048
        assert client.resume_uploader.max_retries == 0

    def test_shared_instance(self):
        """测试并发首次访问只创建一个实例"""
        results = []
        with patch("qiniu_kit.core.storage.get_qiniu_config", return_value=VALID_CONFIG) as mock_config:
            threads = [threading.Thread(target=lambda: results.append(get_qiniu_client())) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert len({id(client) for client in results}) == 1
        assert mock_config.call_count == 1

    def test_reset(self):
        with patch("qiniu_kit.core.storage.get_qiniu_config", return_value=VALID_CONFIG):
            first = get_qiniu_client()
            assert reset_qiniu_client() is first
            assert get_qiniu_client() is not first
