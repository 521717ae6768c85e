from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

LogLevel = Literal["info", "error"]
LogResult = Literal["success", "error"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class LogEvent:
    level: LogLevel
    user: str
    endpoint: str
    duration_ms: float
    result: LogResult
    params: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["message"] is None:
            del data["message"]
        return data

    def to_line(self) -> str:
        line = (
            f"[{self.timestamp}] [{self.level.upper()}] User: {self.user}, "
            f"Endpoint: {self.endpoint}, Duration: {self.duration_ms:.1f}ms, "
            f"Result: {self.result}"
        )
        if self.message:
            line += f", Message: {self.message}"
        return line
