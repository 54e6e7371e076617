"""Environment-driven settings.

Keys are read from the process environment at call time so tests can
monkeypatch them. Missing keys only produce warnings; the affected feature
fails later with a clear error.
"""

import logging
import os
from dataclasses import dataclass

from callassist.constants import DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    google_credentials: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def load_settings() -> Settings:
    """Read settings from the environment."""
    return Settings(
        openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
        google_credentials=os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", ""),
        host=os.environ.get("CALLASSIST_HOST", DEFAULT_HOST),
        port=int(os.environ.get("CALLASSIST_PORT", DEFAULT_PORT)),
    )


def warn_missing(settings: Settings, recognizer: str = "google") -> list[str]:
    """Log a warning for every credential the server will need but lacks.

    Returns:
        Names of the missing environment variables.
    """
    missing = []
    if recognizer == "google" and not settings.google_credentials:
        logger.warning(
            "GOOGLE_APPLICATION_CREDENTIALS is not set; "
            "speech-to-text may not work correctly"
        )
        missing.append("GOOGLE_APPLICATION_CREDENTIALS")
    if not settings.openai_api_key:
        logger.warning(
            "OPENAI_API_KEY is not set; response generation will not work"
        )
        missing.append("OPENAI_API_KEY")
    return missing
