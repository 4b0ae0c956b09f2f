"""
config.py — Environment configuration for the renderer.

Values are read from CARDRENDER_* environment variables, with an optional
.env file in the working directory filling in anything not already set.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


# Load .env file if it exists
def _load_dotenv(env_path: Optional[Path] = None):
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip()
                    if key and value and key not in os.environ:
                        os.environ[key] = value

_load_dotenv()


class Settings:
    """Renderer settings loaded from environment variables."""

    def __init__(self):
        # Fonts
        self.font_dir: str = os.environ.get("CARDRENDER_FONT_DIR", "")
        self.fallback_font: str = os.environ.get("CARDRENDER_FALLBACK_FONT", "DejaVuSans.ttf")

        # Remote assets
        self.http_timeout: float = float(os.environ.get("CARDRENDER_HTTP_TIMEOUT", "30"))

        # Fit-to-box termination
        self.max_scale_iterations: int = int(os.environ.get("CARDRENDER_MAX_SCALE_ITERATIONS", "200"))
        self.min_text_scale: float = float(os.environ.get("CARDRENDER_MIN_TEXT_SCALE", "0.01"))

        # Logging
        self.log_level: str = os.environ.get("CARDRENDER_LOG_LEVEL", "INFO").upper()

    @property
    def has_font_dir(self) -> bool:
        """Check if a custom font directory is configured."""
        return bool(self.font_dir) and Path(self.font_dir).is_dir()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
