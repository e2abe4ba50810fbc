from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client-side knobs. Independent of the server settings so no database credentials are needed."""

    SERVER_URL: str = "http://localhost:5000"

    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_DELAY: float = 1.0

    LOGOUT_TIMEOUT: float = 5.0

    PAGE_SIZE: int = 50

    READ_VISIBILITY_THRESHOLD: float = 0.6
    LOAD_OLDER_SCROLL_THRESHOLD: float = 80.0

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CLIENT_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def ws_url(self) -> str:
        base = self.SERVER_URL.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/ws"
