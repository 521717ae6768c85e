from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pixelchain.domain.entities.operation import OperationKind, WorkingImage
from pixelchain.domain.services.codec import ImageCodec

Transform = Callable[[ImageCodec, WorkingImage, Mapping[str, Any]], WorkingImage]


def resize(codec: ImageCodec, image: WorkingImage, params: Mapping[str, Any]) -> WorkingImage:
    return codec.resize(image, params.get("width"), params.get("height"), fit="cover")


def crop(codec: ImageCodec, image: WorkingImage, params: Mapping[str, Any]) -> WorkingImage:
    return codec.crop(
        image,
        params.get("width"),
        params.get("height"),
        position=params.get("position", "center"),
        left=params.get("left"),
        top=params.get("top"),
    )


def set_format(codec: ImageCodec, image: WorkingImage, params: Mapping[str, Any]) -> WorkingImage:
    return codec.set_format(image, params.get("format", "png"))


def rotate(codec: ImageCodec, image: WorkingImage, params: Mapping[str, Any]) -> WorkingImage:
    return codec.rotate(image, params.get("angle") or 0)


def apply_filter(
    codec: ImageCodec, image: WorkingImage, params: Mapping[str, Any]
) -> WorkingImage:
    filter_type = params.get("filterType")
    if filter_type == "grayscale":
        return codec.grayscale(image)
    if filter_type == "blur":
        return codec.blur(image, params.get("sigma"))
    if filter_type == "sharpen":
        return codec.sharpen(image)
    return image


TRANSFORMS: dict[OperationKind, Transform] = {
    OperationKind.RESIZE: resize,
    OperationKind.CROP: crop,
    OperationKind.FORMAT: set_format,
    OperationKind.ROTATE: rotate,
    OperationKind.FILTER: apply_filter,
}

# Accepted params per kind, published by GET /images/operations
PARAMETERS: dict[OperationKind, dict[str, Any]] = {
    OperationKind.RESIZE: {"width": None, "height": None},
    OperationKind.CROP: {
        "width": None,
        "height": None,
        "position": "center",
        "left": None,
        "top": None,
    },
    OperationKind.FORMAT: {"format": "png"},
    OperationKind.ROTATE: {"angle": 0},
    OperationKind.FILTER: {"filterType": None, "sigma": None},
}
