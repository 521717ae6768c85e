import io

import numpy as np
import pytest
from PIL import Image

from pixelchain.domain.entities.operation import WorkingImage
from pixelchain.domain.errors import DecodeFailure
from pixelchain.domain.services.codec import ImageCodec as IC


def working(arr: np.ndarray, fmt: str = "png") -> WorkingImage:
    return WorkingImage(image=Image.fromarray(arr), format=fmt)


def solid(w, h, color=(200, 100, 50)) -> np.ndarray:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    return arr


def halves(w=10, h=20) -> np.ndarray:
    # top half red, bottom half blue
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[: h // 2] = (255, 0, 0)
    arr[h // 2 :] = (0, 0, 255)
    return arr


def test_resize_both_dimensions_covers_box():
    out = IC.resize(working(solid(10, 10)), 5, 5)
    assert (out.width, out.height) == (5, 5)


def test_resize_single_dimension_keeps_aspect_ratio():
    out = IC.resize(working(solid(20, 10)), width=10)
    assert (out.width, out.height) == (10, 5)
    out = IC.resize(working(solid(20, 10)), height=20)
    assert (out.width, out.height) == (40, 20)


def test_resize_without_dimensions_is_identity():
    src = working(solid(8, 6))
    assert IC.resize(src) is src
    assert IC.resize(src, 0, None) is src


@pytest.mark.parametrize("bad", ["not-a-number", -3, 2.5, True, [4]])
def test_resize_rejects_invalid_width(bad):
    with pytest.raises((TypeError, ValueError)):
        IC.resize(working(solid(8, 8)), bad, 4)


def test_crop_anchors_on_named_position():
    src = working(halves())
    top = np.asarray(IC.crop(src, 10, 10, position="north").image)
    bottom = np.asarray(IC.crop(src, 10, 10, position="bottom").image)
    assert top.shape == (10, 10, 3)
    assert (top == (255, 0, 0)).all()
    assert (bottom == (0, 0, 255)).all()


def test_crop_rejects_unknown_position():
    with pytest.raises(ValueError, match="position"):
        IC.crop(working(halves()), 10, 10, position="upside-down")


def test_crop_explicit_region():
    arr = np.arange(5 * 6 * 3, dtype=np.uint8).reshape(5, 6, 3)
    out = IC.crop(working(arr), 2, 3, left=1, top=2)
    assert np.array_equal(np.asarray(out.image), arr[2:5, 1:3])


def test_crop_region_outside_bounds_fails():
    with pytest.raises(ValueError, match="exceeds"):
        IC.crop(working(solid(4, 4)), 3, 3, left=2, top=2)


def test_set_format_normalizes_case_and_rejects_unknown():
    src = working(solid(2, 2))
    assert IC.set_format(src, "WEBP").format == "webp"
    with pytest.raises(ValueError):
        IC.set_format(src, "psd")


def test_rotate_is_clockwise_and_expands_canvas():
    arr = np.zeros((10, 20, 3), dtype=np.uint8)
    arr[0, 0] = (255, 0, 0)
    out = IC.rotate(working(arr), 90)
    assert (out.width, out.height) == (10, 20)
    # top-left corner ends up top-right
    assert out.image.getpixel((9, 0)) == (255, 0, 0)


def test_rotate_rejects_non_numeric_angle():
    with pytest.raises(TypeError):
        IC.rotate(working(solid(4, 4)), "ninety")


def test_grayscale_luminosity():
    out = IC.grayscale(working(solid(3, 3, (255, 0, 0))))
    assert out.image.mode == "L"
    assert out.image.getpixel((1, 1)) == 76


def test_grayscale_keeps_alpha():
    rgba = np.zeros((4, 4, 4), dtype=np.uint8)
    rgba[..., 3] = 128
    out = IC.grayscale(WorkingImage(image=Image.fromarray(rgba)))
    assert out.image.mode == "LA"
    assert out.image.getpixel((0, 0))[1] == 128


def test_blur_softens_edges():
    arr = np.zeros((8, 8, 3), dtype=np.uint8)
    arr[:, 4:] = 255
    out = np.asarray(IC.blur(working(arr)).image)
    assert 0 < out[4, 3, 0] < 255
    sigma = np.asarray(IC.blur(working(arr), sigma=2.0).image)
    assert sigma.shape == arr.shape


def test_blur_rejects_negative_sigma():
    with pytest.raises(ValueError):
        IC.blur(working(solid(4, 4)), sigma=-1)


def test_sharpen_keeps_size():
    out = IC.sharpen(working(halves()))
    assert (out.width, out.height) == (10, 20)


def test_decode_records_source_format():
    buf = io.BytesIO()
    Image.fromarray(solid(3, 3)).save(buf, format="JPEG")
    decoded = IC.decode(buf.getvalue())
    assert decoded.format == "jpeg"
    assert (decoded.width, decoded.height) == (3, 3)


def test_decode_rejects_garbage():
    with pytest.raises(DecodeFailure):
        IC.decode(b"definitely not an image")


def test_encode_jpeg_drops_alpha():
    rgba = np.full((4, 4, 4), 200, dtype=np.uint8)
    data = IC.encode(WorkingImage(image=Image.fromarray(rgba), format="jpeg"))
    assert Image.open(io.BytesIO(data)).format == "JPEG"


def test_encode_uses_pending_format():
    data = IC.encode(working(solid(4, 4), fmt="webp"))
    assert Image.open(io.BytesIO(data)).format == "WEBP"


def test_decode_rejects_oversized_header(oversized_png):
    with pytest.raises(DecodeFailure, match="not a decodable image"):
        IC.decode(oversized_png)


def test_resize_refuses_outputs_beyond_pixel_limit():
    with pytest.raises(ValueError, match="pixel limit"):
        IC.resize(working(solid(4, 4)), 60000, 60000)
    # one side given, the other derived from the aspect ratio
    with pytest.raises(ValueError, match="pixel limit"):
        IC.resize(working(solid(20, 10)), width=100_000)
    with pytest.raises(ValueError, match="pixel limit"):
        IC.crop(working(solid(4, 4)), 60000, 60000, position="north")


def test_encode_grayscale_with_alpha_as_bmp():
    rgba = np.zeros((4, 4, 4), dtype=np.uint8)
    rgba[..., 0] = 255
    rgba[..., 3] = 200
    gray = IC.grayscale(WorkingImage(image=Image.fromarray(rgba)))
    assert gray.image.mode == "LA"
    out = Image.open(io.BytesIO(IC.encode(IC.set_format(gray, "bmp"))))
    assert out.format == "BMP"
    assert out.size == (4, 4)


def test_encode_cmyk_jpeg_as_png():
    buf = io.BytesIO()
    Image.new("CMYK", (5, 3), (0, 255, 255, 0)).save(buf, format="JPEG")
    decoded = IC.decode(buf.getvalue())
    assert decoded.image.mode == "CMYK"
    out = Image.open(io.BytesIO(IC.encode(IC.set_format(decoded, "png"))))
    assert out.format == "PNG"
    assert out.mode == "RGB"
    assert out.size == (5, 3)


@pytest.mark.parametrize("fmt", ["png", "jpeg", "webp", "gif", "tiff", "bmp"])
@pytest.mark.parametrize("mode", ["LA", "CMYK", "P", "RGBA"])
def test_every_writer_accepts_every_working_mode(fmt, mode):
    img = Image.new("RGB", (6, 4), (30, 120, 210)).convert(mode)
    data = IC.encode(WorkingImage(image=img, format=fmt))
    assert Image.open(io.BytesIO(data)).size == (6, 4)
