"""
存储区域定义
维护各区域的上传、管理、列举、源站和处理服务域名
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from qiniu_kit.core.storage.exceptions import ConfigurationError

FUSION_HOST = "fusion.qiniuapi.com"
PREFOP_HOST = "api.qiniu.com"


@dataclass(frozen=True)
class Zone:
    """单个区域的服务域名"""
    name: str
    src_up_hosts: Tuple[str, ...]
    cdn_up_hosts: Tuple[str, ...]
    io_host: str
    rs_host: str
    rsf_host: str
    api_host: str


def _zone(name: str, suffix: str) -> Zone:
    return Zone(
        name=name,
        src_up_hosts=(f"up{suffix}.qiniup.com",),
        cdn_up_hosts=(f"upload{suffix}.qiniup.com",),
        io_host=f"iovip{suffix}.qbox.me",
        rs_host=f"rs{suffix}.qbox.me",
        rsf_host=f"rsf{suffix}.qbox.me",
        api_host=f"api{suffix}.qiniu.com",
    )


ZONES: Dict[str, Zone] = {
    "z0": _zone("z0", ""),
    "z1": _zone("z1", "-z1"),
    "z2": _zone("z2", "-z2"),
    "na0": _zone("na0", "-na0"),
    "as0": _zone("as0", "-as0"),
}


def get_zone(name: str) -> Zone:
    """
    根据区域标识获取区域

    同时接受 "z0" 与 "Zone_z0" 两种写法。

    Raises:
        ConfigurationError: 区域不存在时抛出
    """
    normalized = name[len("Zone_"):] if name.startswith("Zone_") else name
    zone = ZONES.get(normalized)
    if zone is None:
        raise ConfigurationError(
            "未知的存储区域 '{}'，可用区域: {}".format(name, ", ".join(ZONES))
        )
    return zone


class HostResolver:
    """根据协议与CDN设置拼接服务地址"""

    def __init__(self, zone: Zone, use_https_domain: bool = False, use_cdn_domain: bool = False):
        self.zone = zone
        self.scheme = "https" if use_https_domain else "http"
        self.use_cdn_domain = use_cdn_domain

    def _url(self, host: str) -> str:
        return f"{self.scheme}://{host}"

    def up_url(self) -> str:
        hosts = self.zone.cdn_up_hosts if self.use_cdn_domain else self.zone.src_up_hosts
        return self._url(hosts[0])

    def rs_url(self) -> str:
        return self._url(self.zone.rs_host)

    def rsf_url(self) -> str:
        return self._url(self.zone.rsf_host)

    def io_url(self) -> str:
        return self._url(self.zone.io_host)

    def api_url(self) -> str:
        return self._url(self.zone.api_host)

    def prefop_url(self) -> str:
        return self._url(PREFOP_HOST)

    def fusion_url(self) -> str:
        # Fusion 接口仅提供 HTTPS
        return f"https://{FUSION_HOST}"
