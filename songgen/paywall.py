"""Free-song quota rules.

The request-time gate and the save-time counter increment both derive from
``is_quota_exhausted`` so they move together if the limit changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from songgen.identity import Identity
    from songgen.songs.store import SongStore

logger = logging.getLogger(__name__)

FREE_SONG_LIMIT = 1


def normalize_ids(ids: Iterable[str | None]) -> list[str]:
    """Trimmed, non-empty, de-duplicated ids in first-seen order."""
    seen: dict[str, None] = {}
    for raw in ids:
        if not raw:
            continue
        value = raw.strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def is_quota_exhausted(free_songs_used: int, limit: int = FREE_SONG_LIMIT) -> bool:
    return free_songs_used >= limit


def should_consume_free_song(free_songs_used: int, limit: int = FREE_SONG_LIMIT) -> bool:
    """True while the caller still has free songs left to consume."""
    return not is_quota_exhausted(free_songs_used, limit)


@dataclass
class PaywallDecision:
    allowed: bool
    free_songs_used: int
    limit: int
    unlimited: bool = False


def check_paywall(
    song_store: SongStore,
    identity: Identity,
    limit: int = FREE_SONG_LIMIT,
) -> PaywallDecision:
    """Decide whether ``identity`` may start a new (non lyrics-only) song."""
    device_ids = identity.device_ids
    if song_store.has_unlimited_access(identity.user_id, device_ids):
        logger.info("Paywall: unlimited access for %s", identity.describe())
        return PaywallDecision(allowed=True, free_songs_used=0, limit=limit, unlimited=True)

    used = song_store.get_free_songs_used(identity.user_id, device_ids)
    if not is_quota_exhausted(used, limit):
        logger.info("Paywall: allowed %s (%d/%d free songs used)", identity.describe(), used, limit)
        return PaywallDecision(allowed=True, free_songs_used=used, limit=limit)

    # A payment may have landed between the two lookups.
    if song_store.has_unlimited_access(identity.user_id, device_ids):
        logger.info("Paywall: unlimited access confirmed on re-check for %s", identity.describe())
        return PaywallDecision(allowed=True, free_songs_used=used, limit=limit, unlimited=True)

    logger.info("Paywall: blocked %s (%d/%d free songs used)", identity.describe(), used, limit)
    return PaywallDecision(allowed=False, free_songs_used=used, limit=limit)
