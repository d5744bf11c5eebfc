# core/errors.py
from enum import Enum
from typing import Optional


class JobError(Exception):
    """Lỗi gốc cho mọi lỗi của một job tạo ảnh."""


class JobConnectionError(JobError):
    """Không kết nối được tới queue API (lỗi mạng / transport)."""


class JobProtocolError(JobError):
    """Queue API báo job thất bại hoặc trả về dữ liệu không hợp lệ."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeErrorKind(str, Enum):
    INVALID_ROOT = "invalid_root"
    MISSING_IMAGES = "missing_images"
    INVALID_IMAGES = "invalid_images"
    INVALID_IMAGE_ITEM = "invalid_image_item"
    INVALID_URL = "invalid_url"


class DecodeError(JobError):
    """Payload kết quả sai cấu trúc."""

    def __init__(self, kind: DecodeErrorKind, value: Optional[str] = None):
        self.kind = kind
        self.value = value
        message = kind.value if value is None else f"{kind.value}({value!r})"
        super().__init__(message)


class JobClientBusyError(RuntimeError):
    """Gọi submit() khi client vẫn đang có một stream chưa đóng."""
