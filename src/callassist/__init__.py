"""Call assistant: streaming speech-to-text and suggested replies."""

from callassist.constants import (
    DEFAULT_PORT,
    GENERATE_PATH,
    LANGUAGE_CODE,
    SAMPLE_RATE,
    SPEECH_PATH,
)

__all__ = [
    "DEFAULT_PORT",
    "GENERATE_PATH",
    "LANGUAGE_CODE",
    "SAMPLE_RATE",
    "SPEECH_PATH",
]
