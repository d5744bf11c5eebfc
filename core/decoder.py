# core/decoder.py
from typing import Any, Dict, List

from pydantic import AnyUrl, TypeAdapter, ValidationError

from .errors import DecodeError, DecodeErrorKind
from .model import GeneratedImage, GeneratedImageResult

_url_adapter = TypeAdapter(AnyUrl)


def _decode_image(item: Any) -> GeneratedImage:
    if not isinstance(item, dict):
        raise DecodeError(DecodeErrorKind.INVALID_IMAGE_ITEM)

    url = item.get("url")
    file_name = item.get("file_name")
    content_type = item.get("content_type")
    if not all(isinstance(v, str) for v in (url, file_name, content_type)):
        raise DecodeError(DecodeErrorKind.INVALID_IMAGE_ITEM)

    try:
        _url_adapter.validate_python(url)
    except ValidationError:
        raise DecodeError(DecodeErrorKind.INVALID_URL, url)

    return GeneratedImage(url=url, file_name=file_name, content_type=content_type)


def decode_image_result(payload: Any) -> GeneratedImageResult:
    """
    Parse payload kết quả từ queue thành GeneratedImageResult.

    Payload mong đợi:
    {
      "images": [
        {"file_name": "output.png", "content_type": "image/png", "url": "https://..."}
      ],
      "description": "..."
    }

    Chặt chẽ với "images", dễ dãi với "description" (thiếu hoặc sai kiểu -> "").
    """
    if not isinstance(payload, dict):
        raise DecodeError(DecodeErrorKind.INVALID_ROOT)

    root: Dict[str, Any] = payload
    if "images" not in root:
        raise DecodeError(DecodeErrorKind.MISSING_IMAGES)
    raw_images = root["images"]
    if not isinstance(raw_images, list):
        raise DecodeError(DecodeErrorKind.INVALID_IMAGES)

    images: List[GeneratedImage] = [_decode_image(item) for item in raw_images]

    description = root.get("description")
    if not isinstance(description, str):
        description = ""

    return GeneratedImageResult(images=images, description=description)
