"""
qiniu-kit
七牛云对象存储异步客户端：上传、资源管理、持久化处理与CDN
"""

from qiniu_kit.core.storage import (
    QiniuClient,
    create_client_from_settings,
    get_qiniu_client,
    new_client,
    reset_qiniu_client,
)
from qiniu_kit.core.storage.exceptions import (
    ConfigurationError,
    FailureKind,
    HTTPError,
    NetworkError,
    StorageError,
    ValidationError,
)
from qiniu_kit.core.storage.models import (
    BatchOperation,
    BatchOperationType,
    ListOptions,
    OperationResult,
    PutExtra,
    UploadMode,
    UploadPolicy,
)
from qiniu_kit.utils.etag import compute_etag

__version__ = "0.1.0"

__all__ = [
    'QiniuClient',
    'new_client',
    'create_client_from_settings',
    'get_qiniu_client',
    'reset_qiniu_client',
    'StorageError',
    'ConfigurationError',
    'ValidationError',
    'NetworkError',
    'HTTPError',
    'FailureKind',
    'BatchOperation',
    'BatchOperationType',
    'ListOptions',
    'OperationResult',
    'PutExtra',
    'UploadMode',
    'UploadPolicy',
    'compute_etag',
]
