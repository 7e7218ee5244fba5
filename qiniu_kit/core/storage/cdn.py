"""
CDN 融合接口
缓存刷新、文件预取与流量/带宽/日志查询
"""

from typing import Any, Dict, Sequence

from qiniu_kit.core.storage.exceptions import ValidationError
from qiniu_kit.core.storage.models import QiniuResponse
from qiniu_kit.core.storage.transport import QiniuHttp
from qiniu_kit.core.storage.zone import HostResolver

# 单次请求数量上限
MAX_REFRESH_URLS = 100
MAX_REFRESH_DIRS = 10
MAX_PREFETCH_URLS = 100

DOMAIN_SEPARATOR = ";"
GRANULARITIES = ("5min", "hour", "day")


def _check_items(name: str, items: Any, limit: int) -> list:
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        raise ValidationError("{} 必须是字符串列表".format(name))
    if not items:
        raise ValidationError("{} 不能为空".format(name))
    if len(items) > limit:
        raise ValidationError(
            "{} 单次最多 {} 条，实际 {} 条".format(name, limit, len(items)),
            details={"limit": limit, "count": len(items)}
        )
    if not all(isinstance(item, str) and item for item in items):
        raise ValidationError("{} 中存在空值或非字符串".format(name))
    return list(items)


def _join_domains(domains: Any) -> str:
    if isinstance(domains, str):
        domains = [domains]
    if not domains or not all(isinstance(d, str) and d for d in domains):
        raise ValidationError("domains 不能为空")
    return DOMAIN_SEPARATOR.join(domains)


class CdnManager:
    """CDN 管理器，请求体为 JSON，管理凭证只对路径签名"""

    COMPONENT = "CdnManager"

    def __init__(self, http: QiniuHttp, hosts: HostResolver):
        self._http = http
        self._hosts = hosts

    async def _post(self, path: str, payload: Dict[str, Any]) -> QiniuResponse:
        return await self._http.post_json(self._hosts.fusion_url() + path, payload)

    async def refresh_urls(self, urls: Sequence[str]) -> QiniuResponse:
        urls = _check_items("urls", urls, MAX_REFRESH_URLS)
        return await self._post("/v2/tune/refresh", {"urls": urls})

    async def refresh_dirs(self, dirs: Sequence[str]) -> QiniuResponse:
        dirs = _check_items("dirs", dirs, MAX_REFRESH_DIRS)
        for d in dirs:
            if not d.endswith("/"):
                raise ValidationError("目录刷新地址必须以 '/' 结尾: {}".format(d))
        return await self._post("/v2/tune/refresh", {"dirs": dirs})

    async def prefetch_urls(self, urls: Sequence[str]) -> QiniuResponse:
        urls = _check_items("urls", urls, MAX_PREFETCH_URLS)
        return await self._post("/v2/tune/prefetch", {"urls": urls})

    async def _statistics(
        self,
        path: str,
        start_date: str,
        end_date: str,
        granularity: str,
        domains: Sequence[str]
    ) -> QiniuResponse:
        if not start_date or not end_date:
            raise ValidationError("start_date 与 end_date 不能为空")
        if granularity not in GRANULARITIES:
            raise ValidationError(
                "granularity 只能是 {}".format("/".join(GRANULARITIES)),
                details={"granularity": granularity}
            )
        return await self._post(path, {
            "startDate": start_date,
            "endDate": end_date,
            "granularity": granularity,
            "domains": _join_domains(domains),
        })

    async def get_traffic_data(
        self,
        start_date: str,
        end_date: str,
        granularity: str,
        domains: Sequence[str]
    ) -> QiniuResponse:
        """查询流量，日期格式 YYYY-MM-DD"""
        return await self._statistics("/v2/tune/flux", start_date, end_date, granularity, domains)

    async def get_bandwidth_data(
        self,
        start_date: str,
        end_date: str,
        granularity: str,
        domains: Sequence[str]
    ) -> QiniuResponse:
        return await self._statistics("/v2/tune/bandwidth", start_date, end_date, granularity, domains)

    async def get_log_list(self, domains: Sequence[str], day: str) -> QiniuResponse:
        """查询某天的日志下载地址"""
        if not day:
            raise ValidationError("day 不能为空")
        return await self._post("/v2/tune/log/list", {"day": day, "domains": _join_domains(domains)})


__all__ = [
    'CdnManager',
    'MAX_REFRESH_URLS',
    'MAX_REFRESH_DIRS',
    'MAX_PREFETCH_URLS',
    'GRANULARITIES',
]
