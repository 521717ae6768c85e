from __future__ import annotations

from io import BytesIO
from numbers import Real
from typing import Any

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from pixelchain.domain.entities.operation import WorkingImage
from pixelchain.domain.errors import DecodeFailure, EncodeFailure

# Output format name -> Pillow writer name
SUPPORTED_FORMATS: dict[str, str] = {
    "png": "PNG",
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "webp": "WEBP",
    "gif": "GIF",
    "tiff": "TIFF",
    "bmp": "BMP",
}

# Modes each writer saves as-is; anything else is converted to RGB(A)
WRITABLE_MODES: dict[str, tuple[str, ...]] = {
    "PNG": ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"),
    "JPEG": ("L", "RGB", "CMYK"),
    "WEBP": ("RGB", "RGBA"),
    "GIF": ("1", "L", "P", "RGB"),
    "TIFF": ("1", "L", "LA", "P", "RGB", "RGBA", "CMYK", "I", "F"),
    "BMP": ("1", "L", "P", "RGB", "RGBA"),
}

# Anchor name -> ImageOps.fit centering (x, y)
POSITIONS: dict[str, tuple[float, float]] = {
    "center": (0.5, 0.5),
    "centre": (0.5, 0.5),
    "top": (0.5, 0.0),
    "north": (0.5, 0.0),
    "right": (1.0, 0.5),
    "east": (1.0, 0.5),
    "bottom": (0.5, 1.0),
    "south": (0.5, 1.0),
    "left": (0.0, 0.5),
    "west": (0.0, 0.5),
    "northeast": (1.0, 0.0),
    "right top": (1.0, 0.0),
    "southeast": (1.0, 1.0),
    "right bottom": (1.0, 1.0),
    "southwest": (0.0, 1.0),
    "left bottom": (0.0, 1.0),
    "northwest": (0.0, 0.0),
    "left top": (0.0, 0.0),
}

FIT_MODES = ("cover", "fill", "inside")

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class ImageCodec:
    """Pillow/NumPy primitives used by the transform table.

    Every primitive takes and returns a ``WorkingImage`` and never mutates its
    input. Invalid parameters raise ``ValueError`` or ``TypeError``; the caller
    decides what a failure means for the pipeline.
    """

    @staticmethod
    def decode(data: bytes) -> WorkingImage:
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except Exception as exc:
            # Pillow raises many unrelated types on bad input, DecompressionBombError included
            raise DecodeFailure(f"Input is not a decodable image: {exc}") from exc
        fmt = (img.format or "png").lower()
        if fmt not in SUPPORTED_FORMATS:
            fmt = "png"
        return WorkingImage(image=img, format=fmt)

    @staticmethod
    def encode(working: WorkingImage) -> bytes:
        writer = SUPPORTED_FORMATS.get(working.format)
        if writer is None:
            raise EncodeFailure(f"Cannot encode to format: {working.format}")
        img = ImageCodec._writable(working.image, writer)
        buf = BytesIO()
        try:
            img.save(buf, format=writer)
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeFailure(f"Encoding to {working.format} failed: {exc}") from exc
        return buf.getvalue()

    # Scale to a box. cover crops the overflow, fill stretches, inside keeps
    # the whole image within the box. A single dimension keeps aspect ratio.
    @staticmethod
    def resize(
        working: WorkingImage,
        width: Any = None,
        height: Any = None,
        fit: str = "cover",
        position: str = "center",
    ) -> WorkingImage:
        if fit not in FIT_MODES:
            raise ValueError(f"Unsupported fit mode: {fit}")
        w = ImageCodec._dimension("width", width)
        h = ImageCodec._dimension("height", height)
        centering = ImageCodec._centering(position)
        img = working.image
        if w is None and h is None:
            return working
        keep_aspect = w is None or h is None
        if w is None:
            w = max(1, round(img.width * h / img.height))
        elif h is None:
            h = max(1, round(img.height * w / img.width))
        ImageCodec._check_area(w, h)
        if keep_aspect:
            out = img.resize((w, h), Image.Resampling.LANCZOS)
        elif fit == "cover":
            out = ImageOps.fit(img, (w, h), method=Image.Resampling.LANCZOS, centering=centering)
        elif fit == "fill":
            out = img.resize((w, h), Image.Resampling.LANCZOS)
        else:
            out = ImageOps.contain(img, (w, h), method=Image.Resampling.LANCZOS)
        return WorkingImage(image=out, format=working.format)

    # Anchored cover-resize, or an explicit region when left/top are given.
    @staticmethod
    def crop(
        working: WorkingImage,
        width: Any = None,
        height: Any = None,
        position: str = "center",
        left: Any = None,
        top: Any = None,
    ) -> WorkingImage:
        if left is None and top is None:
            return ImageCodec.resize(working, width, height, fit="cover", position=position)
        x = ImageCodec._offset("left", left)
        y = ImageCodec._offset("top", top)
        w = ImageCodec._dimension("width", width)
        h = ImageCodec._dimension("height", height)
        if w is None or h is None:
            raise ValueError("Region crop requires width and height")
        img = working.image
        if x + w > img.width or y + h > img.height:
            raise ValueError(
                f"Region {w}x{h}+{x}+{y} exceeds image bounds {img.width}x{img.height}"
            )
        return WorkingImage(image=img.crop((x, y, x + w, y + h)), format=working.format)

    @staticmethod
    def set_format(working: WorkingImage, fmt: Any) -> WorkingImage:
        if not isinstance(fmt, str) or fmt.lower() not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported output format: {fmt!r}")
        return WorkingImage(image=working.image, format=fmt.lower())

    # Clockwise rotation; the canvas grows to hold the rotated image.
    @staticmethod
    def rotate(working: WorkingImage, angle: Any = 0) -> WorkingImage:
        if isinstance(angle, bool) or not isinstance(angle, Real):
            raise TypeError(f"Rotation angle must be a number, got {angle!r}")
        out = working.image.rotate(-float(angle), resample=Image.Resampling.BICUBIC, expand=True)
        return WorkingImage(image=out, format=working.format)

    # Grayscale (Luminosity): 0.299*R + 0.587*G + 0.114*B, alpha kept
    @staticmethod
    def grayscale(working: WorkingImage) -> WorkingImage:
        img = working.image
        rgb = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
        gray = np.clip(np.dot(rgb, _LUMA), 0.0, 1.0)
        out = Image.fromarray((gray * 255.0).round().astype(np.uint8))
        if "A" in img.getbands():
            out = Image.merge("LA", (out, img.getchannel("A")))
        return WorkingImage(image=out, format=working.format)

    # Mild 3x3 box blur, or a gaussian blur when sigma is given
    @staticmethod
    def blur(working: WorkingImage, sigma: Any = None) -> WorkingImage:
        img = ImageCodec._filterable(working.image)
        if sigma is None:
            out = img.filter(ImageFilter.BoxBlur(1))
        else:
            if isinstance(sigma, bool) or not isinstance(sigma, Real) or sigma <= 0:
                raise ValueError(f"Blur sigma must be a positive number, got {sigma!r}")
            out = img.filter(ImageFilter.GaussianBlur(float(sigma)))
        return WorkingImage(image=out, format=working.format)

    @staticmethod
    def sharpen(working: WorkingImage) -> WorkingImage:
        img = ImageCodec._filterable(working.image)
        return WorkingImage(image=img.filter(ImageFilter.SHARPEN), format=working.format)

    # --------- helpers ---------
    @staticmethod
    def _writable(img: Image.Image, writer: str) -> Image.Image:
        if img.mode in WRITABLE_MODES[writer]:
            return img
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        if has_alpha and "RGBA" in WRITABLE_MODES[writer]:
            return img.convert("RGBA")
        return img.convert("RGB")

    @staticmethod
    def _check_area(width: int, height: int) -> None:
        limit = Image.MAX_IMAGE_PIXELS
        if limit is not None and width * height > limit:
            raise ValueError(
                f"Output of {width}x{height} exceeds the {limit} pixel limit"
            )

    @staticmethod
    def _dimension(name: str, value: Any) -> int | None:
        # 0 means "not given", as with a missing key
        if value is None or (not isinstance(value, bool) and value == 0):
            return None
        if isinstance(value, bool) or not isinstance(value, Real):
            raise TypeError(f"{name} must be a positive integer, got {value!r}")
        if value < 0 or int(value) != value:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")
        return int(value)

    @staticmethod
    def _offset(name: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise TypeError(f"{name} must be a non-negative integer, got {value!r}")
        if value < 0 or int(value) != value:
            raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        return int(value)

    @staticmethod
    def _centering(position: Any) -> tuple[float, float]:
        key = position.strip().lower() if isinstance(position, str) else position
        if key not in POSITIONS:
            raise ValueError(f"Unsupported position: {position!r}")
        return POSITIONS[key]

    @staticmethod
    def _filterable(img: Image.Image) -> Image.Image:
        if img.mode in ("RGB", "RGBA", "L"):
            return img
        if "A" in img.getbands() or "transparency" in img.info:
            return img.convert("RGBA")
        return img.convert("RGB")
