from __future__ import annotations

import os
from dataclasses import dataclass

UNKNOWN_OPERATION_POLICIES = ("skip", "abort")
STEP_FAILURE_POLICIES = ("continue", "abort")


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)}; got {value!r}")
    return value


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    log_dir: str = "logs"
    log_level: str = "INFO"
    pipeline_timeout_seconds: float = 30.0
    pipeline_max_operations: int = 50
    max_image_bytes: int = 10 * 1024 * 1024
    # What a pipeline does with an element of unknown type
    unknown_operation_policy: str = "skip"
    # What a pipeline does when a step's transform fails
    step_failure_policy: str = "continue"
    cors_origins: tuple[str, ...] = ()
    supabase_disabled: bool = False
    supabase_url: str | None = None
    supabase_anon_key: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            env=os.getenv("ENV", "development"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            pipeline_timeout_seconds=float(os.getenv("PIPELINE_TIMEOUT_SECONDS", "30")),
            pipeline_max_operations=int(os.getenv("PIPELINE_MAX_OPERATIONS", "50")),
            max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024))),
            unknown_operation_policy=_choice(
                "UNKNOWN_OPERATION_POLICY", "skip", UNKNOWN_OPERATION_POLICIES
            ),
            step_failure_policy=_choice(
                "STEP_FAILURE_POLICY", "continue", STEP_FAILURE_POLICIES
            ),
            cors_origins=tuple(
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "").split(",")
                if origin.strip()
            ),
            supabase_disabled=os.getenv("SUPABASE_DISABLED", "0") == "1",
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
        )
