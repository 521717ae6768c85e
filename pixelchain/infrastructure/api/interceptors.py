"""Ordered request interceptors applied before a route handler runs.

Each interceptor receives the request context and the next callable in the
chain; it may short-circuit with its own response or await the rest.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from pixelchain.domain.entities.log_event import LogEvent
from pixelchain.infrastructure.auth.supabase_auth import SupabaseAuthAdapter, UserInfo
from pixelchain.infrastructure.logging.event_log import LogSink

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    request: Request
    user: UserInfo | None = None
    params: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def endpoint(self) -> str:
        return self.request.url.path

    @property
    def user_label(self) -> str:
        return self.user.label if self.user else "anonymous"


Handler = Callable[[RequestContext], Awaitable[Response]]
Interceptor = Callable[[RequestContext, Handler], Awaitable[Response]]


class AuthInterceptor:
    """Requires a valid bearer token and attaches the user to the context."""

    def __init__(self, auth: SupabaseAuthAdapter) -> None:
        self.auth = auth

    async def __call__(self, ctx: RequestContext, call_next: Handler) -> Response:
        header = ctx.request.headers.get("Authorization")
        if not header:
            return self._deny(ctx, "Missing Authorization header")
        scheme, _, token = header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            return self._deny(ctx, "Missing bearer token")
        try:
            # Supabase validation is a blocking network call
            ctx.user = await run_in_threadpool(self.auth.validate_token, token)
        except ValueError as exc:
            return self._deny(ctx, str(exc))
        return await call_next(ctx)

    @staticmethod
    def _deny(ctx: RequestContext, message: str) -> Response:
        ctx.error = message
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": message})


class LoggingInterceptor:
    """Records one LogEvent per request with its duration and outcome."""

    def __init__(self, sink: LogSink) -> None:
        self.sink = sink

    async def __call__(self, ctx: RequestContext, call_next: Handler) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(ctx)
        except Exception as exc:
            await self._record(ctx, started, failed=True, message=str(exc))
            raise
        failed = response.status_code >= 400
        await self._record(ctx, started, failed=failed, message=ctx.error if failed else None)
        return response

    async def _record(
        self, ctx: RequestContext, started: float, failed: bool, message: str | None
    ) -> None:
        await self.sink.log(
            LogEvent(
                level="error" if failed else "info",
                user=ctx.user_label,
                endpoint=ctx.endpoint,
                params=ctx.params,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                result="error" if failed else "success",
                message=message,
            )
        )


class InterceptorChain:
    def __init__(self, interceptors: Sequence[Interceptor]) -> None:
        self.interceptors = list(interceptors)

    async def run(self, ctx: RequestContext, handler: Handler) -> Response:
        async def dispatch(index: int, current: RequestContext) -> Response:
            if index == len(self.interceptors):
                return await handler(current)
            return await self.interceptors[index](
                current, lambda next_ctx: dispatch(index + 1, next_ctx)
            )

        return await dispatch(0, ctx)
