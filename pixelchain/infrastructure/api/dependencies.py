from __future__ import annotations

from fastapi import Request

from pixelchain.application.use_cases.build_chain import ChainBuilder
from pixelchain.application.use_cases.process_pipeline import PipelineCoordinator
from pixelchain.domain.services.codec import ImageCodec
from pixelchain.infrastructure.api.interceptors import (
    AuthInterceptor,
    InterceptorChain,
    LoggingInterceptor,
)
from pixelchain.infrastructure.auth.supabase_auth import SupabaseAuthAdapter
from pixelchain.infrastructure.config import Settings
from pixelchain.infrastructure.logging.event_log import LogSink


def build_coordinator(settings: Settings, sink: LogSink) -> PipelineCoordinator:
    builder = ChainBuilder(
        unknown_operation_policy=settings.unknown_operation_policy,
        max_operations=settings.pipeline_max_operations,
    )
    return PipelineCoordinator(
        builder=builder,
        codec=ImageCodec(),
        sink=sink,
        step_failure_policy=settings.step_failure_policy,
        timeout_seconds=settings.pipeline_timeout_seconds,
    )


def build_interceptors(auth: SupabaseAuthAdapter, sink: LogSink) -> InterceptorChain:
    # Logging first so rejected credentials are recorded too
    return InterceptorChain([LoggingInterceptor(sink), AuthInterceptor(auth)])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_coordinator(request: Request) -> PipelineCoordinator:
    return request.app.state.coordinator


def get_interceptors(request: Request) -> InterceptorChain:
    return request.app.state.interceptors
