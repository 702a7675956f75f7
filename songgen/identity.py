"""Caller identity: authenticated user and/or guest/device ids."""

from __future__ import annotations

from dataclasses import dataclass

from songgen.paywall import normalize_ids


@dataclass(frozen=True)
class Identity:
    user_id: str | None = None
    guest_id: str | None = None
    device_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def is_anonymous(self) -> bool:
        return not (self.user_id or self.guest_id or self.device_id)

    @property
    def device_ids(self) -> list[str]:
        return normalize_ids([self.device_id, self.guest_id])

    def describe(self) -> str:
        if self.user_id:
            return f"user {self.user_id}"
        ids = self.device_ids
        return f"device {ids[0]}" if ids else "unknown caller"
