import pytest

from core.decoder import decode_image_result
from core.errors import DecodeError, DecodeErrorKind


def _payload(**overrides):
    body = {
        "images": [
            {"file_name": "a.png", "content_type": "image/png", "url": "https://x/a.png"},
        ],
        "description": "d",
    }
    body.update(overrides)
    return body


def test_decode_well_formed_payload():
    result = decode_image_result(_payload())
    assert result.description == "d"
    assert len(result.images) == 1
    image = result.images[0]
    assert image.id == "https://x/a.png"
    assert image.url == "https://x/a.png"
    assert image.file_name == "a.png"
    assert image.content_type == "image/png"


def test_description_is_optional():
    body = _payload()
    del body["description"]
    assert decode_image_result(body).description == ""


def test_non_string_description_defaults_to_empty():
    assert decode_image_result(_payload(description=42)).description == ""


def test_empty_images_list_is_accepted():
    assert decode_image_result(_payload(images=[])).images == []


def test_keeps_image_order():
    images = [
        {"file_name": f"{i}.png", "content_type": "image/png", "url": f"https://x/{i}.png"}
        for i in range(3)
    ]
    result = decode_image_result(_payload(images=images))
    assert [img.file_name for img in result.images] == ["0.png", "1.png", "2.png"]


@pytest.mark.parametrize("root", [[], "images", 3, None])
def test_rejects_non_dict_root(root):
    with pytest.raises(DecodeError) as exc:
        decode_image_result(root)
    assert exc.value.kind is DecodeErrorKind.INVALID_ROOT


def test_rejects_missing_images():
    with pytest.raises(DecodeError) as exc:
        decode_image_result({"description": "d"})
    assert exc.value.kind is DecodeErrorKind.MISSING_IMAGES


def test_rejects_images_that_are_not_a_list():
    with pytest.raises(DecodeError) as exc:
        decode_image_result(_payload(images="https://x/a.png"))
    assert exc.value.kind is DecodeErrorKind.INVALID_IMAGES


@pytest.mark.parametrize(
    "item",
    [
        "https://x/a.png",
        {"file_name": "a.png", "content_type": "image/png"},
        {"file_name": "a.png", "url": "https://x/a.png"},
        {"content_type": "image/png", "url": "https://x/a.png"},
        {"file_name": 1, "content_type": "image/png", "url": "https://x/a.png"},
        {"file_name": "a.png", "content_type": "image/png", "url": 7},
    ],
)
def test_rejects_malformed_image_item(item):
    with pytest.raises(DecodeError) as exc:
        decode_image_result(_payload(images=[item]))
    assert exc.value.kind is DecodeErrorKind.INVALID_IMAGE_ITEM


def test_rejects_unparseable_url():
    item = {"file_name": "a.png", "content_type": "image/png", "url": "not a url"}
    with pytest.raises(DecodeError) as exc:
        decode_image_result(_payload(images=[item]))
    assert exc.value.kind is DecodeErrorKind.INVALID_URL
    assert exc.value.value == "not a url"


def test_one_bad_item_fails_whole_payload():
    good = {"file_name": "a.png", "content_type": "image/png", "url": "https://x/a.png"}
    with pytest.raises(DecodeError):
        decode_image_result(_payload(images=[good, {"url": "https://x/b.png"}]))
