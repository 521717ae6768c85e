from __future__ import annotations

import hashlib
from dataclasses import dataclass

from supabase import Client, create_client

from pixelchain.infrastructure.config import Settings


@dataclass(slots=True)
class UserInfo:
    id: str
    email: str | None

    @property
    def label(self) -> str:
        return self.email or self.id


class SupabaseAuthAdapter:
    """Resolves bearer tokens to users through Supabase Auth.

    Without a configured project (or with SUPABASE_DISABLED=1) every non-empty
    token maps to a stable fake user, which is what local runs and tests use.
    """

    def __init__(self, url: str | None = None, key: str | None = None, disabled: bool = False) -> None:
        self._client: Client | None = None
        if not disabled and url and key:
            self._client = create_client(url, key)

    @classmethod
    def from_settings(cls, settings: Settings) -> SupabaseAuthAdapter:
        return cls(settings.supabase_url, settings.supabase_anon_key, settings.supabase_disabled)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def validate_token(self, token: str) -> UserInfo:
        if not token:
            raise ValueError("Missing access token")
        if self._client is None:
            digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
            return UserInfo(id=f"fake-{digest}", email=None)
        try:
            res = self._client.auth.get_user(token)
        except Exception as exc:  # pragma: no cover - network path
            raise ValueError(f"Invalid access token: {exc}") from exc
        user = res.user if res else None
        if not user:
            raise ValueError("Invalid access token")
        return UserInfo(id=user.id, email=user.email)
