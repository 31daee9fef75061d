"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """VoxNotes application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        storage_backend: Durable medium for annotations ("file", "sqlite", "memory").
        storage_key: The single key the annotation collection is stored under.
        capture_backend: Audio capture mechanism ("sounddevice").
        capture_mime_types: Container preference order for new recordings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Annotation storage ---
    # One serialized collection under one key, kept in the chosen medium
    storage_backend: str = "file"
    storage_dir: str = "data"  # Directory used by the "file" medium
    database_url: str = "sqlite:///data/voxnotes.db"  # Used by the "sqlite" medium
    storage_key: str = "whisper-web-annotations"

    # --- Audio capture ---
    capture_backend: str = "sounddevice"
    capture_device: str = ""  # Input device name substring; empty = system default
    capture_sample_rate: int = 16000
    capture_channels: int = 1
    capture_mime_types: list[str] = [
        "audio/webm",
        "audio/mp4",
        "audio/ogg",
        "audio/wav",
        "audio/aac",
    ]

    # --- Application ---
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    cors_origins: list[str] = [
        "http://localhost:5173",  # Vite dev frontend
        "http://localhost:3000",
    ]
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
