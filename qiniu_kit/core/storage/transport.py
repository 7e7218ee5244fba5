"""
HTTP传输层
所有管理器共享同一个 httpx.AsyncClient，复用连接池

本层只负责发送请求、鉴权和把失败映射为异常，不做日志与响应归一化。
"""

from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

import httpx

from qiniu_kit.core.storage.auth import FORM_CONTENT_TYPE, Signer
from qiniu_kit.core.storage.exceptions import HTTPError, NetworkError, ResponseParseError
from qiniu_kit.core.storage.models import QiniuResponse, ResponseInfo

FormData = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


class AuthMode(str, Enum):
    """请求鉴权方式"""

    NONE = "none"
    QBOX = "qbox"        # 管理凭证


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class QiniuHttp:
    """七牛接口HTTP客户端"""

    def __init__(
        self,
        signer: Signer,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._signer = signer
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_form(
        self,
        url: str,
        data: Optional[FormData] = None,
        auth: AuthMode = AuthMode.QBOX,
        accepted: Optional[Iterable[int]] = None
    ) -> QiniuResponse:
        """发送表单请求，请求体参与 QBox 签名"""
        body = urlencode(data, doseq=True) if data else ""
        headers = {"Content-Type": FORM_CONTENT_TYPE}
        if auth is AuthMode.QBOX:
            headers["Authorization"] = self._signer.access_token(url, body, FORM_CONTENT_TYPE)
        return await self._send("POST", url, headers=headers, content=body.encode("utf-8"), accepted=accepted)

    async def post_json(self, url: str, payload: Dict[str, Any]) -> QiniuResponse:
        """发送JSON请求（Fusion CDN 接口），JSON 请求体不参与签名"""
        headers = {
            "Content-Type": "application/json",
            "Authorization": self._signer.access_token(url),
        }
        return await self._send("POST", url, headers=headers, json=payload)

    async def post_multipart(
        self,
        url: str,
        fields: Dict[str, str],
        files: Dict[str, Tuple[str, Any, str]]
    ) -> QiniuResponse:
        """发送 multipart 表单上传请求，凭证在表单字段中"""
        return await self._send("POST", url, data=fields, files=files)

    async def post_binary(
        self,
        url: str,
        content: bytes,
        upload_token: str,
        content_type: str = "application/octet-stream"
    ) -> QiniuResponse:
        """发送分片上传请求，使用 UpToken 鉴权"""
        headers = {
            "Content-Type": content_type,
            "Authorization": f"UpToken {upload_token}",
        }
        return await self._send("POST", url, headers=headers, content=content)

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> QiniuResponse:
        return await self._send("GET", url, params=params)

    async def _send(self, method: str, url: str, accepted: Optional[Iterable[int]] = None, **kwargs) -> QiniuResponse:
        """
        发送请求并解析响应

        Raises:
            NetworkError: 网络层失败
            HTTPError: 状态码不在可接受范围内
            ResponseParseError: 成功响应的响应体不是合法JSON
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(
                "请求七牛接口失败 (网络错误): {}".format(str(e) or type(e).__name__),
                details={"url": url}
            ) from e

        accepted_codes = set(accepted) if accepted is not None else None
        success = (
            response.status_code in accepted_codes
            if accepted_codes is not None
            else _is_success(response.status_code)
        )
        info = ResponseInfo(
            status_code=response.status_code,
            url=str(response.request.url),
            req_id=response.headers.get("X-Reqid"),
        )

        if not success:
            body = self._parse_error_body(response)
            message = body.get("error") if isinstance(body, dict) else None
            raise HTTPError(
                message or "HTTP {} {}".format(response.status_code, response.reason_phrase),
                status_code=response.status_code,
                body=body,
                details=info.to_dict()
            )

        return QiniuResponse(body=self._parse_body(response), info=info)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError(
                "响应体不是合法的JSON: {}".format(response.text[:200]),
                details={"status_code": response.status_code}
            ) from e

    @staticmethod
    def _parse_error_body(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"error": response.text[:200]}


__all__ = ['AuthMode', 'QiniuHttp', 'FormData']
