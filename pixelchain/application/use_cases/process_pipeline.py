from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pixelchain.application.use_cases.build_chain import ChainBuilder
from pixelchain.domain.entities.log_event import LogEvent
from pixelchain.domain.entities.operation import (
    OperationNode,
    PipelineResult,
    StepOutcome,
    WorkingImage,
)
from pixelchain.domain.errors import (
    EncodeFailure,
    InputRequiredError,
    NoOperationProducedError,
    PipelineCancelledError,
    PipelineTimeoutError,
    PixelChainError,
    TransformFailure,
)
from pixelchain.domain.services.codec import ImageCodec
from pixelchain.domain.services.transforms import TRANSFORMS
from pixelchain.infrastructure.logging.event_log import LogSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestScope:
    """Who asked and where, stamped on every event of one request."""

    user: str = "anonymous"
    endpoint: str = "/images/process"


class CancelToken:
    """Checked before every step; cancel() stops the pipeline at the next one."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise PipelineCancelledError("Pipeline was cancelled")


@dataclass
class ChainOutcome:
    image: WorkingImage
    failures: list[TransformFailure] = field(default_factory=list)


@dataclass
class PipelineCoordinator:
    """
    Build, evaluate and encode one request's operation chain.

    Evaluation walks from the tail back to the root, decodes the root's bytes
    and then applies every node in root-to-tail order. A failing transform
    leaves the image it was given untouched and is reported in the result;
    with ``step_failure_policy="abort"`` it ends the request instead.

    Codec work runs in worker threads so other requests keep being served
    while a pipeline is busy.
    """

    builder: ChainBuilder
    codec: ImageCodec
    sink: LogSink
    step_failure_policy: str = "continue"
    timeout_seconds: float | None = None

    async def process(
        self,
        body: Mapping[str, Any],
        raw_input: bytes,
        scope: RequestScope | None = None,
        token: CancelToken | None = None,
    ) -> bytes:
        result = await self.process_detailed(body, raw_input, scope, token)
        return result.data

    async def process_detailed(
        self,
        body: Mapping[str, Any],
        raw_input: bytes,
        scope: RequestScope | None = None,
        token: CancelToken | None = None,
    ) -> PipelineResult:
        scope = scope or RequestScope()
        token = token or CancelToken()
        if not self.timeout_seconds:
            return await self._process(body, raw_input, scope, token)
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(
                self._process(body, raw_input, scope, token), self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            message = f"Pipeline exceeded {self.timeout_seconds}s deadline"
            await self._record(scope, "process", {}, started, error=message)
            raise PipelineTimeoutError(message) from exc

    async def run(
        self,
        tail: OperationNode,
        scope: RequestScope | None = None,
        token: CancelToken | None = None,
    ) -> bytes:
        result = await self._run(tail, scope or RequestScope(), token or CancelToken())
        return result.data

    async def resolve_input(
        self,
        node: OperationNode,
        scope: RequestScope | None = None,
        token: CancelToken | None = None,
    ) -> WorkingImage:
        """The image ``node`` transforms: its predecessor's output, or its decoded bytes."""
        scope = scope or RequestScope()
        token = token or CancelToken()
        if node.predecessor is not None:
            outcome = await self.evaluate(node.predecessor, scope, token)
            return outcome.image
        return await self._decode(node, scope, token)

    async def evaluate(
        self, tail: OperationNode, scope: RequestScope, token: CancelToken
    ) -> ChainOutcome:
        chain = tail.lineage()
        image = await self._decode(chain[0], scope, token)
        failures: list[TransformFailure] = []
        for node in chain:
            token.raise_if_cancelled()
            outcome = await self.execute(node, image, scope)
            if outcome.error is not None:
                if self.step_failure_policy == "abort":
                    raise outcome.error from outcome.error.cause
                failures.append(outcome.error)
            image = outcome.image
        return ChainOutcome(image=image, failures=failures)

    async def execute(
        self, node: OperationNode, image: WorkingImage, scope: RequestScope
    ) -> StepOutcome:
        step = f"execute:{node.kind.value}"
        logger.debug("Starting %s", step)
        started = time.perf_counter()
        transform = TRANSFORMS[node.kind]
        try:
            out = await asyncio.to_thread(transform, self.codec, image, node.params)
        except Exception as exc:
            failure = TransformFailure(node.kind.value, exc)
            logger.error("Step %s left the image unchanged: %s", step, exc)
            await self._record(scope, step, node.params, started, error=failure.message)
            return StepOutcome(image=image, error=failure)
        await self._record(scope, step, node.params, started)
        return StepOutcome(image=out)

    # --------- helpers ---------
    async def _process(
        self,
        body: Mapping[str, Any],
        raw_input: bytes,
        scope: RequestScope,
        token: CancelToken,
    ) -> PipelineResult:
        started = time.perf_counter()
        summary = _summarize(body)
        try:
            tail = self.builder.build(body, raw_input)
            if tail is None:
                raise NoOperationProducedError()
        except PixelChainError as exc:
            await self._record(scope, "build", summary, started, error=exc.message)
            raise
        await self._record(scope, "build", {**summary, "depth": tail.depth}, started)
        return await self._run(tail, scope, token)

    async def _run(
        self, tail: OperationNode, scope: RequestScope, token: CancelToken
    ) -> PipelineResult:
        outcome = await self.evaluate(tail, scope, token)
        token.raise_if_cancelled()
        data = await self._encode(outcome.image, scope)
        return PipelineResult(
            data=data, format=outcome.image.format, failures=tuple(outcome.failures)
        )

    async def _decode(
        self, root: OperationNode, scope: RequestScope, token: CancelToken
    ) -> WorkingImage:
        token.raise_if_cancelled()
        started = time.perf_counter()
        try:
            if not root.raw_input:
                raise InputRequiredError("Input buffer is required for the first operation")
            image = await asyncio.to_thread(self.codec.decode, root.raw_input)
        except PixelChainError as exc:
            await self._record(scope, "decode", {}, started, error=exc.message)
            raise
        await self._record(
            scope, "decode", {"width": image.width, "height": image.height}, started
        )
        return image

    async def _encode(self, image: WorkingImage, scope: RequestScope) -> bytes:
        started = time.perf_counter()
        params = {"format": image.format}
        try:
            data = await asyncio.to_thread(self.codec.encode, image)
        except EncodeFailure as exc:
            await self._record(scope, "encode", params, started, error=exc.message)
            raise
        except Exception as exc:
            message = f"Encoding failed: {exc}"
            await self._record(scope, "encode", params, started, error=message)
            raise EncodeFailure(message) from exc
        await self._record(scope, "encode", {**params, "bytes": len(data)}, started)
        return data

    async def _record(
        self,
        scope: RequestScope,
        step: str,
        params: Mapping[str, Any],
        started: float,
        error: str | None = None,
    ) -> None:
        await self.sink.log(
            LogEvent(
                level="error" if error else "info",
                user=scope.user,
                endpoint=f"{scope.endpoint}#{step}",
                params=dict(params),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                result="error" if error else "success",
                message=error,
            )
        )


def _summarize(body: Mapping[str, Any]) -> dict[str, Any]:
    operations = body.get("operations")
    if isinstance(operations, list):
        return {"mode": "pipeline", "operations": len(operations)}
    return {"mode": "single", "type": body.get("type")}
