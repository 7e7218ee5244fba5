"""
内存版七牛服务
挂载在 httpx.MockTransport 上，按域名与路径模拟上传、资源管理、数据处理与CDN接口

只实现客户端用到的接口子集；所有请求都会记录在 requests 与 calls 中供断言使用。
"""

import base64
import hashlib
import hmac
import json
import time
import zlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, parse_qsl

import httpx

from qiniu_kit.utils.etag import compute_etag

TEST_ACCESS_KEY = "test-access-key"
TEST_SECRET_KEY = "test-secret-key"
TEST_BUCKET = "test-bucket"
TEST_ZONE = "z0"


def _b64decode(value: str) -> str:
    return base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")


def _b64encode(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


def _json(status_code: int, body: Any = None) -> httpx.Response:
    headers = {"X-Reqid": "fake-reqid"}
    if body is None:
        return httpx.Response(status_code, headers=headers)
    return httpx.Response(status_code, json=body, headers=headers)


def _parse_multipart(request: httpx.Request) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes, str]]]:
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")
    fields: Dict[str, str] = {}
    files: Dict[str, Tuple[str, bytes, str]] = {}

    for piece in request.content.split(b"--" + boundary)[1:-1]:
        part = piece[2:-2]
        raw_headers, data = part.split(b"\r\n\r\n", 1)
        headers = {}
        for line in raw_headers.decode("utf-8").split("\r\n"):
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()

        disposition = dict(
            item.strip().split("=", 1)
            for item in headers["content-disposition"].split(";")[1:]
        )
        name = disposition["name"].strip('"')
        if "filename" in disposition:
            files[name] = (
                disposition["filename"].strip('"'),
                data,
                headers.get("content-type", "application/octet-stream"),
            )
        else:
            fields[name] = data.decode("utf-8")

    return fields, files


@dataclass
class StoredObject:
    data: bytes
    mime_type: str = "application/octet-stream"
    put_time: int = 0
    storage_type: int = 0
    delete_after_days: Optional[int] = None
    fname: str = ""
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def hash(self) -> str:
        return compute_etag(self.data)

    def stat(self) -> Dict[str, Any]:
        return {
            "fsize": len(self.data),
            "hash": self.hash,
            "mimeType": self.mime_type,
            "putTime": self.put_time,
            "type": self.storage_type,
        }


class FakeQiniu:
    """
    内存版七牛服务

    Attributes:
        objects: (bucket, key) -> StoredObject
        calls: 各接口调用次数，如 calls["mkblk"]
        requests: 收到的全部请求
        remote_resources: fetch 可抓取的远程资源 url -> bytes
        fail_queue: 接口名 -> 依次返回的错误状态码
        network_down: 为 True 时所有请求抛出连接错误
        job_code: prefop 返回的处理状态码
    """

    def __init__(self, access_key: str, secret_key: str):
        self.access_key = access_key
        self.secret_key = secret_key.encode("utf-8")
        self.objects: Dict[Tuple[str, str], StoredObject] = {}
        self.blocks: Dict[str, bytes] = {}
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.calls: Counter = Counter()
        self.requests: List[httpx.Request] = []
        self.remote_resources: Dict[str, bytes] = {}
        self.fail_queue: Dict[str, List[int]] = {}
        self.network_down = False
        self.job_code = 0

    # ==================== 测试辅助 ====================

    def put_object(self, bucket: str, key: str, data: bytes, mime_type: str = "application/octet-stream") -> None:
        self.objects[(bucket, key)] = StoredObject(data=data, mime_type=mime_type, put_time=self._put_time())

    def get_object(self, bucket: str, key: str) -> Optional[StoredObject]:
        return self.objects.get((bucket, key))

    def fail_next(self, endpoint: str, *status_codes: int) -> None:
        self.fail_queue.setdefault(endpoint, []).extend(status_codes)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    # ==================== 请求分发 ====================

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)

        host = request.url.host
        path = request.url.path

        if host.startswith("up"):
            if path.startswith("/mkblk/"):
                return self._guarded("mkblk", request, self._mkblk)
            if path.startswith("/mkfile/"):
                return self._guarded("mkfile", request, self._mkfile)
            return self._guarded("form_upload", request, self._form_upload)
        if host.startswith("rsf"):
            return self._guarded("list", request, self._list, auth=True)
        if host.startswith("rs"):
            endpoint = path.strip("/").split("/")[0]
            return self._guarded(endpoint, request, self._rs, auth=True)
        if host.startswith("iovip"):
            endpoint = path.strip("/").split("/")[0]
            return self._guarded(endpoint, request, self._io, auth=True)
        if host.startswith("fusion"):
            endpoint = path.rstrip("/").split("/")[-1]
            return self._guarded(endpoint, request, self._fusion, auth=True)
        if path.startswith("/pfop"):
            return self._guarded("pfop", request, self._pfop, auth=True)
        if path == "/status/get/prefop":
            return self._guarded("prefop", request, self._prefop)
        return _json(404, {"error": "no such api"})

    def _guarded(self, endpoint: str, request: httpx.Request, handler, auth: bool = False) -> httpx.Response:
        self.calls[endpoint] += 1
        queued = self.fail_queue.get(endpoint)
        if queued:
            return _json(queued.pop(0), {"error": "injected failure"})
        if auth and not self._check_qbox(request):
            return _json(401, {"error": "bad token"})
        return handler(request)

    def _check_qbox(self, request: httpx.Request) -> bool:
        authorization = request.headers.get("authorization", "")
        if not authorization.startswith("QBox "):
            return False

        data = request.url.raw_path + b"\n"
        if request.headers.get("content-type") == "application/x-www-form-urlencoded":
            data += request.content
        digest = hmac.new(self.secret_key, data, hashlib.sha1).digest()
        expected = "QBox {}:{}".format(self.access_key, base64.urlsafe_b64encode(digest).decode("ascii"))
        return hmac.compare_digest(authorization, expected)

    def _parse_upload_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            access_key, sign, encoded_policy = token.split(":")
        except ValueError:
            return None
        digest = hmac.new(self.secret_key, encoded_policy.encode("ascii"), hashlib.sha1).digest()
        if access_key != self.access_key or sign != base64.urlsafe_b64encode(digest).decode("ascii"):
            return None
        return json.loads(_b64decode(encoded_policy))

    def _upload_target(self, token: str, key: Optional[str], data: bytes) -> Tuple[Optional[str], Optional[str]]:
        """返回 (bucket, key)，凭证无效或 key 与 scope 不符时返回 (None, None)"""
        policy = self._parse_upload_token(token)
        if policy is None or policy["deadline"] < int(time.time()):
            return None, None
        bucket, _, scoped_key = policy["scope"].partition(":")
        if key is None:
            key = scoped_key or compute_etag(data)
        if scoped_key and key != scoped_key:
            return None, None
        return bucket, key

    def _put_time(self) -> int:
        return int(time.time() * 10_000_000)

    # ==================== 上传 ====================

    def _form_upload(self, request: httpx.Request) -> httpx.Response:
        fields, files = _parse_multipart(request)
        if "file" not in files or "token" not in fields:
            return _json(400, {"error": "file or token is missing"})

        fname, data, mime_type = files["file"]
        if "crc32" in fields and int(fields["crc32"]) != zlib.crc32(data):
            return _json(406, {"error": "crc32 not match"})

        bucket, key = self._upload_target(fields["token"], fields.get("key"), data)
        if bucket is None:
            return _json(401, {"error": "bad token"})

        params = {name: value for name, value in fields.items() if name.startswith("x:")}
        self.objects[(bucket, key)] = StoredObject(
            data=data, mime_type=mime_type, put_time=self._put_time(), fname=fname, params=params
        )
        return _json(200, {"key": key, "hash": compute_etag(data)})

    def _mkblk(self, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("authorization", "").startswith("UpToken "):
            return _json(401, {"error": "bad token"})
        data = request.content
        if int(request.url.path.rsplit("/", 1)[1]) != len(data):
            return _json(400, {"error": "block size not match"})

        ctx = "ctx-{}".format(len(self.blocks) + 1)
        self.blocks[ctx] = data
        return _json(200, {
            "ctx": ctx,
            "checksum": hashlib.sha1(data).hexdigest(),
            "crc32": zlib.crc32(data),
            "offset": len(data),
            "host": str(request.url.copy_with(path="/")),
            "expired_at": int(time.time()) + 7 * 24 * 3600,
        })

    def _mkfile(self, request: httpx.Request) -> httpx.Response:
        authorization = request.headers.get("authorization", "")
        if not authorization.startswith("UpToken "):
            return _json(401, {"error": "bad token"})

        segments = request.url.path.split("/")[2:]
        size = int(segments[0])
        options = dict(zip(segments[1::2], segments[2::2]))

        contexts = request.content.decode("utf-8").split(",") if request.content else []
        if any(ctx not in self.blocks for ctx in contexts):
            return _json(701, {"error": "unknown ctx"})
        data = b"".join(self.blocks[ctx] for ctx in contexts)
        if len(data) != size:
            return _json(400, {"error": "file size not match"})

        key = _b64decode(options["key"]) if "key" in options else None
        bucket, key = self._upload_target(authorization[len("UpToken "):], key, data)
        if bucket is None:
            return _json(401, {"error": "bad token"})

        self.objects[(bucket, key)] = StoredObject(
            data=data,
            mime_type=_b64decode(options["mimeType"]) if "mimeType" in options else "application/octet-stream",
            put_time=self._put_time(),
            fname=_b64decode(options["fname"]) if "fname" in options else "",
            params={name: _b64decode(value) for name, value in options.items() if name.startswith("x:")},
        )
        return _json(200, {"key": key, "hash": compute_etag(data)})

    # ==================== 资源管理 ====================

    def _rs(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/batch":
            return self._batch(request)
        status_code, body = self._apply_op(path)
        return _json(status_code, body)

    def _batch(self, request: httpx.Request) -> httpx.Response:
        ops = [value for name, value in parse_qsl(request.content.decode("utf-8")) if name == "op"]
        if not ops:
            return _json(400, {"error": "empty op"})
        items = []
        for op in ops:
            status_code, body = self._apply_op(op)
            item = {"code": status_code}
            if body:
                item["data"] = body
            items.append(item)
        all_ok = all(item["code"] == 200 for item in items)
        return _json(200 if all_ok else 298, items)

    def _entry(self, encoded: str) -> Tuple[str, str]:
        bucket, _, key = _b64decode(encoded).partition(":")
        return bucket, key

    def _apply_op(self, op: str) -> Tuple[int, Optional[Dict[str, Any]]]:
        parts = op.strip("/").split("/")
        name = parts[0]
        entry = self._entry(parts[1])
        obj = self.objects.get(entry)

        if name in ("move", "copy"):
            if obj is None:
                return 612, {"error": "no such file or directory"}
            dest = self._entry(parts[2])
            force = len(parts) > 4 and parts[4] == "true"
            if dest in self.objects and not force:
                return 614, {"error": "file exists"}
            self.objects[dest] = StoredObject(
                data=obj.data, mime_type=obj.mime_type, put_time=self._put_time(), storage_type=obj.storage_type
            )
            if name == "move" and dest != entry:
                del self.objects[entry]
            return 200, None

        if obj is None:
            return 612, {"error": "no such file or directory"}
        if name == "stat":
            return 200, obj.stat()
        if name == "delete":
            del self.objects[entry]
            return 200, None
        if name == "chgm":
            obj.mime_type = _b64decode(parts[3])
            return 200, None
        if name == "chtype":
            obj.storage_type = int(parts[3])
            return 200, None
        if name == "deleteAfterDays":
            days = int(parts[2])
            obj.delete_after_days = days or None
            return 200, None
        return 400, {"error": "unknown op"}

    def _list(self, request: httpx.Request) -> httpx.Response:
        params = {name: values[0] for name, values in parse_qs(request.url.query.decode("utf-8")).items()}
        bucket = params.get("bucket", "")
        prefix = params.get("prefix", "")
        delimiter = params.get("delimiter", "")
        limit = int(params.get("limit", 1000))
        marker = _b64decode(params["marker"]) if params.get("marker") else ""

        keys = sorted(
            key for (b, key) in self.objects
            if b == bucket and key.startswith(prefix) and key > marker
        )
        items: List[Dict[str, Any]] = []
        common_prefixes: List[str] = []
        last_key = ""
        more = False
        for key in keys:
            if len(items) + len(common_prefixes) >= limit:
                more = True
                break
            if delimiter:
                index = key.find(delimiter, len(prefix))
                if index >= 0:
                    common = key[:index + len(delimiter)]
                    if common not in common_prefixes:
                        common_prefixes.append(common)
                    last_key = key
                    continue
            item = {"key": key}
            item.update(self.objects[(bucket, key)].stat())
            items.append(item)
            last_key = key

        body: Dict[str, Any] = {"items": items, "marker": _b64encode(last_key) if more else ""}
        if common_prefixes:
            body["commonPrefixes"] = common_prefixes
        return _json(200, body)

    def _io(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if parts[0] == "fetch":
            url = _b64decode(parts[1])
            bucket, key = self._entry(parts[3])
            data = self.remote_resources.get(url)
            if data is None:
                return _json(404, {"error": "fetch remote resource failed"})
            self.put_object(bucket, key, data)
            return _json(200, {"key": key, "hash": compute_etag(data), "fsize": len(data),
                               "mimeType": "application/octet-stream"})
        if parts[0] == "prefetch":
            if self._entry(parts[1]) not in self.objects:
                return _json(612, {"error": "no such file or directory"})
            return _json(200)
        return _json(404, {"error": "no such api"})

    # ==================== 数据处理 ====================

    def _pfop(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode("utf-8")))
        if (form.get("bucket"), form.get("key")) not in self.objects:
            return _json(612, {"error": "no such file or directory"})

        job_id = "z0.fake-job-{}".format(len(self.jobs) + 1)
        self.jobs[job_id] = {
            "bucket": form["bucket"],
            "key": form["key"],
            "fops": form["fops"].split(";"),
            "pipeline": form.get("pipeline", ""),
            "notifyURL": form.get("notifyURL"),
            "force": form.get("force"),
        }
        return _json(200, {"persistentId": job_id})

    def _prefop(self, request: httpx.Request) -> httpx.Response:
        job_id = request.url.params.get("id")
        job = self.jobs.get(job_id)
        if job is None:
            return _json(612, {"error": "no such persistentId"})
        return _json(200, {
            "id": job_id,
            "pipeline": job["pipeline"],
            "code": self.job_code,
            "inputBucket": job["bucket"],
            "inputKey": job["key"],
            "items": [
                {"cmd": fop, "code": self.job_code, "key": "{}-out-{}".format(job["key"], index)}
                for index, fop in enumerate(job["fops"])
            ],
        })

    # ==================== CDN ====================

    def _fusion(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")
        endpoint = request.url.path.rstrip("/").split("/")[-1]

        if endpoint in ("refresh", "prefetch"):
            return _json(200, {
                "code": 200,
                "error": "success",
                "requestId": "fake-request",
                "invalidUrls": [],
                "invalidDirs": [],
                "urls": payload.get("urls", []),
                "dirs": payload.get("dirs", []),
            })
        if endpoint in ("flux", "bandwidth"):
            domains = payload["domains"].split(";")
            return _json(200, {
                "code": 200,
                "error": "",
                "time": [payload["startDate"] + " 00:00:00"],
                "data": {domain: {"china": [1024], "oversea": [0]} for domain in domains},
                "granularity": payload["granularity"],
            })
        if endpoint == "list":
            domains = payload["domains"].split(";")
            return _json(200, {
                "code": 200,
                "error": "",
                "data": {
                    domain: [{"name": "{}_{}.gz".format(domain, payload["day"]), "size": 1, "mtime": 0,
                              "url": "https://log.example.com/{}".format(domain)}]
                    for domain in domains
                },
            })
        return _json(404, {"error": "no such api"})


__all__ = ['FakeQiniu', 'StoredObject', 'TEST_ACCESS_KEY', 'TEST_SECRET_KEY', 'TEST_BUCKET', 'TEST_ZONE']
