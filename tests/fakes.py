"""Hand-written stand-ins for the provider, lyricist and clock."""

from songgen.provider.suno_client import CoverStatus, ProviderStatus


class FakeSleep:
    """Records requested delays and returns immediately."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def suno_status(status: str = "SUCCESS", clips=(), jobs: int = 1) -> ProviderStatus:
    """Record-info ``data`` block with the given clip ids spread over ``jobs`` jobs."""
    response = []
    for job in range(jobs):
        response.append({
            "taskId": f"job-{job}",
            "sunoData": [
                {
                    "id": clip_id,
                    "title": f"Track {clip_id}",
                    "audioUrl": f"https://cdn.example.com/{clip_id}.mp3",
                    "imageUrl": f"https://cdn.example.com/{clip_id}.jpg",
                }
                for i, clip_id in enumerate(clips)
                if i % jobs == job
            ],
        })
    return ProviderStatus.from_payload({"status": status, "response": response})


class FakeProvider:
    """Scripted stand-in for SunoClient.

    ``statuses`` are returned in order; the last one repeats. Exceptions in
    the script are raised instead of returned.
    """

    def __init__(self, statuses=None, submit_result="suno-abc", cover_task_id="cover-1", cover_statuses=None):
        self.statuses = list(statuses or [suno_status("PENDING")])
        self.submit_result = submit_result
        self.cover_task_id = cover_task_id
        self.cover_statuses = list(cover_statuses or [])
        self.submitted: list[dict] = []
        self.status_calls: list[str] = []
        self.cover_requests: list[tuple[str, str]] = []
        self.closed = False

    async def submit(self, prompt, style, title, model, instrumental=False, custom_mode=True):
        self.submitted.append({"prompt": prompt, "style": style, "title": title, "model": model})
        if isinstance(self.submit_result, Exception):
            raise self.submit_result
        return self.submit_result

    async def get_status(self, provider_task_id, max_attempts=2):
        self.status_calls.append(provider_task_id)
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def request_cover(self, provider_task_id, callback_url):
        self.cover_requests.append((provider_task_id, callback_url))
        return self.cover_task_id

    async def get_cover_status(self, cover_task_id):
        if not self.cover_statuses:
            return CoverStatus(status="PENDING")
        item = self.cover_statuses.pop(0) if len(self.cover_statuses) > 1 else self.cover_statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self):
        self.closed = True


class FakeLyricist:
    def __init__(self, lyrics="Verse one\nChorus", title="Song Title", error=None):
        self.lyrics = lyrics
        self.title = title
        self.error = error
        self.calls = 0

    async def write_lyrics(self, request):
        self.calls += 1
        if self.error:
            raise self.error
        return self.lyrics

    async def write_title_and_lyrics(self, request):
        self.calls += 1
        if self.error:
            raise self.error
        return self.title, self.lyrics
