from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessImageRequest(BaseModel):
    """Top-level shape of a processing request.

    Either ``type``/``params`` (single operation) or ``operations`` (pipeline).
    Operation entries are left loosely typed; the chain builder decides what
    to do with each one.
    """

    model_config = ConfigDict(extra="allow")

    image: str = Field(..., min_length=1, description="Base64 encoded source image")
    type: Any = Field(None, description="Operation type for single-operation requests", examples=["resize"])
    params: Any = Field(None, description="Operation parameters", examples=[{"width": 800}])
    operations: Any = Field(
        None,
        description="Ordered operations applied one after the other",
        examples=[
            [
                {"type": "rotate", "params": {"angle": 90}},
                {"type": "format", "params": {"format": "webp"}},
            ]
        ],
    )


class ProcessImageResponse(BaseModel):
    """Result of a processed request."""

    message: str = Field(..., description="Human readable outcome", examples=["Image processed"])
    image: str = Field(..., description="Base64 encoded result image")
    format: str = Field(..., description="Encoding of the result image", examples=["png"])
    warnings: list[str] = Field(
        default_factory=list,
        description="Steps that failed and were applied as no-ops",
    )


class OperationInfo(BaseModel):
    type: str = Field(..., examples=["crop"])
    params: dict[str, Any] = Field(..., description="Accepted params with their defaults")


class SupportedOperationsResponse(BaseModel):
    operations: list[OperationInfo]
