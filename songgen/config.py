"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root .env, independent of CWD
_THIS_DIR = Path(__file__).resolve().parent          # songgen/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Suno music provider
    suno_api_key: str | None = None
    suno_api_base: str = "https://api.sunoapi.org/api/v1"
    suno_model: str = "V4_5PLUS"
    suno_timeout_s: float = 30.0

    # Public URLs: frontend is sent as the provider callBackUrl base,
    # backend receives cover callbacks.
    frontend_url: str = "http://localhost:5173"
    backend_url: str | None = None

    # Lyrics LLM provider: openai | anthropic
    songgen_llm_provider: str = "openai"
    openai_api_key: str | None = None
    songgen_openai_model: str = "gpt-4"
    anthropic_api_key: str | None = None
    songgen_anthropic_model: str = "claude-3-5-sonnet-20241022"

    # Supabase Auth (bearer token -> user id). Optional.
    supabase_url: str | None = None
    supabase_service_key: str | None = None

    # Data directory for file-backed stores
    songgen_data_dir: str = "./data"

    # Song store backend: Postgres when set, else JSON files under data dir
    songgen_database_url: str | None = None

    # Task registry backend: "memory" (default) or "file"
    songgen_task_backend: str = "memory"
    task_ttl_hours: float = 24.0
    task_purge_interval_s: float = 15 * 60

    # Background poller
    poll_initial_wait_s: float = 10.0
    poll_interval_s: float = 7.0
    poll_max_attempts: int = 45
    poll_status_attempts: int = 2
    submit_attempts: int = 3
    expected_clips: int = 2

    # Cover art polling
    cover_poll_timeout_s: float = 120.0
    cover_poll_interval_s: float = 5.0

    # Paywall
    free_song_limit: int = 1

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
    cors_origin_regex: str | None = None

    # Server port (hosting platform injects PORT)
    port: int = 3003

    @property
    def data_dir(self) -> Path:
        """Get data directory as Path.

        Relative paths are resolved against the project root (not CWD).
        """
        p = Path(self.songgen_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def tasks_dir(self) -> Path:
        return self.data_dir / "tasks"

    @property
    def songs_dir(self) -> Path:
        return self.data_dir / "songs"

    @property
    def callback_base_url(self) -> str:
        """Public base URL of this server, for provider callbacks."""
        if self.backend_url:
            return self.backend_url.rstrip("/")
        return f"http://localhost:{self.port}"

    @property
    def provider_callback_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/api/suno-callback"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def lyrics_api_key(self) -> str | None:
        if self.songgen_llm_provider.lower() == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def lyrics_model(self) -> str:
        if self.songgen_llm_provider.lower() == "anthropic":
            return self.songgen_anthropic_model
        return self.songgen_openai_model

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        self.songs_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings
