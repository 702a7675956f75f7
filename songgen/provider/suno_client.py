"""Suno API client: start generation, poll status, request cover art."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from songgen.provider.errors import (
    ErrorKind,
    ProviderAuthError,
    ProviderGenerationError,
    ProviderHTTPError,
    classify_status,
)
from songgen.provider.retry import Sleep, request_with_retry
from songgen.tasks.models import Clip

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({"SUCCESS", "FIRST_SUCCESS"})
PENDING_STATUSES = frozenset({"PENDING", "PROCESSING"})


class ProviderStatus(BaseModel):
    """``data`` block of a record-info response."""

    status: str = ""
    response: list[dict[str, Any]] = Field(default_factory=list)
    error_message: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ProviderStatus":
        raw = data.get("response")
        if raw is None:
            jobs: list[dict[str, Any]] = []
        elif isinstance(raw, list):
            jobs = [j for j in raw if isinstance(j, dict)]
        elif isinstance(raw, dict):
            jobs = [raw]
        else:
            jobs = []
        return cls(
            status=str(data.get("status") or ""),
            response=jobs,
            error_message=data.get("errorMessage"),
        )

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES and bool(self.response)

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    def extract_clips(self, fallback_title: str = "", start_index: int = 0) -> list[Clip]:
        """Clips from every job's ``sunoData`` that carry an audio URL.

        ``start_index`` is the number of clips already known; it only feeds
        the fallback title numbering.
        """
        clips: list[Clip] = []
        for job_index, job in enumerate(self.response):
            suno_data = job.get("sunoData")
            if not isinstance(suno_data, list):
                continue
            for clip_index, item in enumerate(suno_data):
                if not isinstance(item, dict):
                    continue
                audio_url = item.get("audioUrl") or item.get("sourceAudioUrl")
                if not audio_url:
                    continue
                option = start_index + len(clips) + 1
                clips.append(
                    Clip(
                        id=item.get("id") or f"clip_{job_index}_{clip_index}",
                        title=item.get("title") or f"{fallback_title} - Option {option}",
                        audio_url=audio_url,
                        image_url=item.get("imageUrl") or item.get("sourceImageUrl"),
                    )
                )
        return clips


class CoverStatus(BaseModel):
    status: str = ""
    image_url: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.status in ("SUCCESS", "COMPLETED") and bool(self.image_url)


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class SunoClient:
    """Thin async wrapper over the Suno HTTP API.

    Uses one long-lived ``httpx.AsyncClient``; call ``aclose`` on shutdown.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.sunoapi.org/api/v1",
        callback_url: str = "http://localhost:5173/api/suno-callback",
        timeout: float = 30.0,
        submit_attempts: int = 3,
        sleep: Sleep = asyncio.sleep,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._callback_url = callback_url
        self._timeout = timeout
        self._submit_attempts = submit_attempts
        self._sleep = sleep
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def submit(
        self,
        prompt: str,
        style: str,
        title: str,
        model: str,
        instrumental: bool = False,
        custom_mode: bool = True,
    ) -> str:
        """Start a generation job. Returns the provider task id."""
        url = f"{self._base_url}/generate"
        body = {
            "prompt": prompt,
            "style": style,
            "title": title,
            "customMode": custom_mode,
            "instrumental": instrumental,
            "model": model,
            "callBackUrl": self._callback_url,
        }
        logger.info("Submitting generation: title=%r style=%r model=%s", title, style, model)
        response = await request_with_retry(
            lambda: self.client.post(url, json=body, headers=self._headers()),
            max_attempts=self._submit_attempts,
            label="POST /generate",
            sleep=self._sleep,
        )
        payload = _json_or_empty(response)
        msg = payload.get("msg") or response.reason_phrase

        if response.status_code in (401, 403):
            raise ProviderAuthError(
                f"Authentication with music provider failed: {msg or 'invalid API key or missing permissions'}",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise ProviderGenerationError(
                f"Generation failed: HTTP {response.status_code} - {msg}",
                classify_status(response.status_code),
                response.status_code,
            )
        if payload.get("code") != 200 or not isinstance(payload.get("data"), dict):
            if payload.get("code") in (401, 403):
                raise ProviderAuthError(
                    f"Authentication with music provider failed: {msg}",
                    status_code=payload.get("code"),
                )
            raise ProviderGenerationError(f"Generation failed: {msg}", ErrorKind.CLIENT, response.status_code)

        task_id = payload["data"].get("taskId")
        if not task_id:
            raise ProviderGenerationError("Provider response did not include a taskId", ErrorKind.CLIENT)
        logger.info("Generation started, provider taskId=%s", task_id)
        return task_id

    async def get_status(self, provider_task_id: str, max_attempts: int = 2) -> ProviderStatus:
        """Fetch record-info for one or more (comma-joined) provider ids."""
        url = f"{self._base_url}/generate/record-info"
        response = await request_with_retry(
            lambda: self.client.get(url, params={"taskId": provider_task_id}, headers=self._headers()),
            max_attempts=max_attempts,
            label="GET /generate/record-info",
            sleep=self._sleep,
        )
        if not response.is_success:
            raise ProviderHTTPError(
                f"Status check failed: HTTP {response.status_code} - {response.text[:200]}",
                classify_status(response.status_code),
                response.status_code,
            )
        payload = _json_or_empty(response)
        if payload.get("code") != 200:
            raise ProviderGenerationError(f"Status check failed: {payload.get('msg')}", ErrorKind.CLIENT)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProviderGenerationError("Invalid status response: missing data field", ErrorKind.CLIENT)
        return ProviderStatus.from_payload(data)

    # ------------------------------------------------------------------
    # Cover art
    # ------------------------------------------------------------------

    async def request_cover(self, provider_task_id: str, callback_url: str) -> str | None:
        """Ask for cover art for a finished generation. Returns the cover task id."""
        url = f"{self._base_url}/suno/cover/generate"
        response = await request_with_retry(
            lambda: self.client.post(
                url,
                json={"taskId": provider_task_id, "callBackUrl": callback_url},
                headers=self._headers(),
            ),
            max_attempts=3,
            label="POST /suno/cover/generate",
            sleep=self._sleep,
        )
        if not response.is_success:
            logger.warning("Cover request failed: HTTP %d %s", response.status_code, response.text[:200])
            return None
        payload = _json_or_empty(response)
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        return data.get("taskId") or payload.get("taskId")

    async def get_cover_status(self, cover_task_id: str) -> CoverStatus | None:
        url = f"{self._base_url}/suno/cover/record-info"
        response = await request_with_retry(
            lambda: self.client.get(url, params={"taskId": cover_task_id}, headers=self._headers(json_body=False)),
            max_attempts=2,
            label="GET /suno/cover/record-info",
            sleep=self._sleep,
        )
        if not response.is_success:
            logger.warning("Cover status HTTP %d for %s", response.status_code, cover_task_id)
            return None
        return parse_cover_payload(_json_or_empty(response))


def parse_cover_payload(payload: dict[str, Any]) -> CoverStatus:
    """Read status and image URL from the known cover payload shapes."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    status = data.get("status") or payload.get("status") or ""
    image_url = (
        data.get("imageUrl")
        or data.get("image_url")
        or payload.get("imageUrl")
        or payload.get("image_url")
    )
    return CoverStatus(status=str(status), image_url=image_url)
