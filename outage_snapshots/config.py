"""Configuration management from environment variables."""
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
IMAGES_DIR = PROJECT_ROOT / "images"
TEMPLATES_DIR = PROJECT_ROOT / "templates" / "html"
RECORD_TEMPLATE = DATA_DIR / "_template.json"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Extraction
    MARKER_PREFIX: str = os.getenv("MARKER_PREFIX", "DisconSchedule")
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Kyiv")
    LOCALE: str = os.getenv("LOCALE", "uk-UA")
    SCHEMA_VERSION: str = os.getenv("SCHEMA_VERSION", "1.0.0")
    NORMALIZE_INTERVALS: bool = _env_bool("NORMALIZE_INTERVALS", "true")

    # Rendering
    RENDER_CONCURRENCY: int = int(os.getenv("RENDER_CONCURRENCY", "4"))
    DEVICE_SCALE_FACTOR: float = float(os.getenv("DEVICE_SCALE_FACTOR", "4"))
    MAX_DEVICE_SCALE_FACTOR: float = float(os.getenv("MAX_DEVICE_SCALE_FACTOR", "4"))
    RENDER_TIMEOUT_MS: int = int(os.getenv("RENDER_TIMEOUT_MS", "30000"))
    NAVIGATION_TIMEOUT_MS: int = int(os.getenv("NAVIGATION_TIMEOUT_MS", "10000"))
    THEME: str = os.getenv("THEME", "light")

    # Upstream fetch
    FETCH_TIMEOUT: int = int(os.getenv("FETCH_TIMEOUT", "20"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "5"))
    USER_AGENT: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0 Safari/537.36",
    )

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        errors = []
        if cls.RENDER_CONCURRENCY < 1:
            errors.append("RENDER_CONCURRENCY must be >= 1")
        if cls.MAX_DEVICE_SCALE_FACTOR <= 0:
            errors.append("MAX_DEVICE_SCALE_FACTOR must be > 0")
        if cls.RENDER_TIMEOUT_MS <= 0:
            errors.append("RENDER_TIMEOUT_MS must be > 0")
        if cls.FETCH_TIMEOUT <= 0:
            errors.append("FETCH_TIMEOUT must be > 0")
        if cls.THEME not in ("light", "dark"):
            errors.append(f"THEME must be 'light' or 'dark', got {cls.THEME!r}")
        try:
            ZoneInfo(cls.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown TIMEZONE {cls.TIMEZONE!r}")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @classmethod
    def clamp_scale(cls, scale: float | None) -> float:
        """Return a usable device scale factor, capped to MAX_DEVICE_SCALE_FACTOR."""
        if scale is None or scale <= 0:
            scale = cls.DEVICE_SCALE_FACTOR
        if scale <= 0:
            scale = 4
        return min(scale, cls.MAX_DEVICE_SCALE_FACTOR)


config = Config()
