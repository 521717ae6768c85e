"""Domain exceptions raised while building and evaluating operation chains."""
from __future__ import annotations

from typing import Any


class PixelChainError(Exception):
    """Base class for every error the pipeline raises on purpose."""

    error_code = "PIXELCHAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MalformedRequestError(PixelChainError):
    error_code = "MALFORMED_REQUEST"


class UnsupportedOperationError(PixelChainError):
    error_code = "UNSUPPORTED_OPERATION"

    def __init__(self, operation_type: str) -> None:
        super().__init__(
            f"Unsupported operation type: {operation_type}",
            {"type": operation_type},
        )
        self.operation_type = operation_type


class NoOperationProducedError(PixelChainError):
    error_code = "NO_OPERATION_PRODUCED"

    def __init__(self, message: str = "Request did not produce any operation") -> None:
        super().__init__(message)


class ChainConstructionError(PixelChainError):
    error_code = "CHAIN_CONSTRUCTION_ERROR"


class InputRequiredError(ChainConstructionError):
    error_code = "INPUT_REQUIRED"

    def __init__(
        self, message: str = "Either a predecessor or raw input bytes must be provided"
    ) -> None:
        super().__init__(message)


class TransformFailure(PixelChainError):
    """A codec primitive rejected a step. Carried alongside the untouched image."""

    error_code = "TRANSFORM_FAILURE"

    def __init__(self, kind: str, cause: BaseException) -> None:
        super().__init__(f"{kind} failed: {cause}", {"kind": kind})
        self.kind = kind
        self.cause = cause


class DecodeFailure(PixelChainError):
    error_code = "DECODE_FAILURE"


class EncodeFailure(PixelChainError):
    error_code = "ENCODE_FAILURE"


class PipelineTimeoutError(PixelChainError):
    error_code = "PIPELINE_TIMEOUT"


class PipelineCancelledError(PixelChainError):
    error_code = "PIPELINE_CANCELLED"
