from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pixelchain.application.dtos.common_dto import ErrorResponse
from pixelchain.application.dtos.pipeline_dto import (
    OperationInfo,
    ProcessImageRequest,
    ProcessImageResponse,
    SupportedOperationsResponse,
)
from pixelchain.application.use_cases.process_pipeline import (
    CancelToken,
    PipelineCoordinator,
    RequestScope,
)
from pixelchain.domain.entities.operation import OperationKind
from pixelchain.domain.errors import (
    ChainConstructionError,
    DecodeFailure,
    EncodeFailure,
    MalformedRequestError,
    NoOperationProducedError,
    PipelineCancelledError,
    PipelineTimeoutError,
    PixelChainError,
    TransformFailure,
    UnsupportedOperationError,
)
from pixelchain.domain.services.registry import supported_operations
from pixelchain.domain.services.transforms import PARAMETERS
from pixelchain.infrastructure.api.dependencies import (
    get_coordinator,
    get_interceptors,
    get_settings,
)
from pixelchain.infrastructure.api.interceptors import InterceptorChain, RequestContext
from pixelchain.infrastructure.config import Settings

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.1

router = APIRouter(
    prefix="/images",
    tags=["Image Processing"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request - Malformed body or unsupported operation"},
        401: {"model": ErrorResponse, "description": "Unauthorized - Invalid or missing authentication token"},
    },
)

_STATUS_BY_ERROR: dict[type[PixelChainError], int] = {
    MalformedRequestError: status.HTTP_400_BAD_REQUEST,
    UnsupportedOperationError: status.HTTP_400_BAD_REQUEST,
    NoOperationProducedError: status.HTTP_400_BAD_REQUEST,
    DecodeFailure: status.HTTP_400_BAD_REQUEST,
    TransformFailure: status.HTTP_400_BAD_REQUEST,
    PipelineCancelledError: status.HTTP_503_SERVICE_UNAVAILABLE,
    PipelineTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
    ChainConstructionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    EncodeFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: PixelChainError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _decode_image(value: str, max_bytes: int) -> bytes:
    # Accept data URLs as well as bare base64
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedRequestError("image must be valid base64") from exc
    if not data:
        raise MalformedRequestError("image is empty")
    if len(data) > max_bytes:
        raise MalformedRequestError(f"image exceeds {max_bytes} bytes")
    return data


async def _read_body(request: Request) -> tuple[dict[str, Any], str]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise MalformedRequestError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise MalformedRequestError("Request body must be a JSON object")
    try:
        parsed = ProcessImageRequest.model_validate(body)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise MalformedRequestError(f"Invalid request fields: {fields}") from exc
    if parsed.operations is None and parsed.type is None:
        raise MalformedRequestError("Request needs either 'type' or 'operations'")
    return body, parsed.image


async def cancel_on_disconnect(
    request: Request, token: CancelToken, interval: float = DISCONNECT_POLL_SECONDS
) -> None:
    """Cancel ``token`` as soon as the client has gone away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected from %s, cancelling pipeline", request.url.path)
            token.cancel()
            return
        await asyncio.sleep(interval)


def _error(ctx: RequestContext, status_code: int, message: str) -> Response:
    ctx.error = message
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


@router.post(
    "/process",
    response_model=ProcessImageResponse,
    summary="Process Image",
    description="""
    Apply one operation, or an ordered pipeline of operations, to a base64 image.

    **Single operation:**
    ```json
    {"image": "<base64>", "type": "resize", "params": {"width": 800, "height": 600}}
    ```

    **Pipeline:**
    ```json
    {
      "image": "<base64>",
      "operations": [
        {"type": "rotate", "params": {"angle": 90}},
        {"type": "filter", "params": {"filterType": "grayscale"}},
        {"type": "format", "params": {"format": "webp"}}
      ]
    }
    ```

    **Supported Operations:**
    - `resize` - params: `{"width": 800, "height": 600}`
    - `crop` - params: `{"width": 200, "height": 200, "position": "north"}` or with `left`/`top`
    - `format` - params: `{"format": "webp"}`
    - `rotate` - params: `{"angle": 90}`
    - `filter` - params: `{"filterType": "grayscale" | "blur" | "sharpen"}`

    A step whose parameters the codec rejects is applied as a no-op and listed
    in `warnings`. Unknown types inside a pipeline are skipped.

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="Base64 encoded result image",
    responses={
        200: {"description": "Successfully processed image"},
        500: {"model": ErrorResponse, "description": "Encoding or internal failure"},
        503: {"model": ErrorResponse, "description": "Client disconnected and the pipeline was cancelled"},
        504: {"model": ErrorResponse, "description": "Pipeline exceeded its deadline"},
    },
)
async def process_image(
    request: Request,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
    interceptors: InterceptorChain = Depends(get_interceptors),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Run the requested operation chain and return the encoded result."""

    async def handle(ctx: RequestContext) -> Response:
        try:
            body, encoded = await _read_body(ctx.request)
            ctx.params = {k: v for k, v in body.items() if k != "image"}
            raw = _decode_image(encoded, settings.max_image_bytes)
            token = CancelToken()
            watcher = asyncio.create_task(cancel_on_disconnect(ctx.request, token))
            try:
                result = await coordinator.process_detailed(
                    body, raw, RequestScope(user=ctx.user_label, endpoint=ctx.endpoint), token
                )
            finally:
                watcher.cancel()
        except PixelChainError as exc:
            return _error(ctx, status_for(exc), exc.message)
        except Exception as exc:
            logger.exception("Unexpected failure while processing image")
            return _error(ctx, status.HTTP_500_INTERNAL_SERVER_ERROR, f"Processing failed: {exc}")

        response = ProcessImageResponse(
            message="Image processed" if not result.failures else "Image processed with warnings",
            image=base64.b64encode(result.data).decode("ascii"),
            format=result.format,
            warnings=[failure.message for failure in result.failures],
        )
        return JSONResponse(content=response.model_dump())

    return await interceptors.run(RequestContext(request=request), handle)


@router.get(
    "/operations",
    response_model=SupportedOperationsResponse,
    summary="List Supported Operations",
    description="List every operation type with its accepted params and their defaults.",
)
def list_operations():
    """List supported operation types."""
    return SupportedOperationsResponse(
        operations=[
            OperationInfo(type=name, params=PARAMETERS[OperationKind(name)])
            for name in supported_operations()
        ]
    )
