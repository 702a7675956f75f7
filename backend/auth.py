"""Optional caller identification.

A bearer token is resolved to a user id through Supabase Auth when it is
configured. Missing, invalid or unverifiable tokens never block the request:
the caller simply continues as a guest identified by the X-Guest-ID and
X-Device-ID headers.
"""

import logging
from typing import Optional

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from songgen.config import Settings
from songgen.identity import Identity

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

USER_LOOKUP_TIMEOUT_S = 5.0


async def resolve_user_id(token: str, settings: Settings) -> Optional[str]:
    """Return the Supabase user id for ``token``, or None."""
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.debug("Supabase not configured, ignoring bearer token")
        return None
    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": settings.supabase_service_key,
    }
    try:
        async with httpx.AsyncClient(timeout=USER_LOOKUP_TIMEOUT_S) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("Token lookup failed, continuing as guest: %s", e)
        return None
    if response.status_code != 200:
        logger.info("Invalid or expired token (HTTP %d), continuing as guest", response.status_code)
        return None
    try:
        user_id = response.json().get("id")
    except ValueError:
        return None
    if user_id:
        logger.info("Authenticated user %s", user_id)
    return user_id or None


async def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Identity:
    """FastAPI dependency: who is calling, as far as we can tell."""
    settings: Settings = request.app.state.services.settings
    user_id = None
    if credentials and credentials.credentials:
        user_id = await resolve_user_id(credentials.credentials, settings)
    guest_id = (request.headers.get("x-guest-id") or "").strip() or None
    device_id = (request.headers.get("x-device-id") or "").strip() or None
    return Identity(user_id=user_id, guest_id=guest_id, device_id=device_id)
