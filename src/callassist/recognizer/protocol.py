"""Recognizer protocol defining the interface for speech-to-text backends.

This boundary keeps the websocket server independent of any cloud SDK, so
the server can be tested with a fake backend.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class TranscriptResult:
    """One recognition result for the audio received so far."""

    transcript: str
    is_final: bool

    def to_message(self) -> dict:
        """Wire form pushed back to the websocket client."""
        return {"transcript": self.transcript, "final": self.is_final}


class RecognitionStream(Protocol):
    """A single streaming recognition session, bound to one websocket."""

    def send(self, audio: bytes) -> list[TranscriptResult]:
        """Feed one audio chunk and return the results it produced.

        May block; the server calls it from a worker thread.

        Raises:
            RecognitionError: If the backend rejected the chunk.
        """
        ...

    def close(self) -> None:
        """Signal end of audio and release backend resources."""
        ...


class Recognizer(Protocol):
    """Factory for recognition streams."""

    def open_stream(self) -> RecognitionStream:
        """Start a new streaming recognition session."""
        ...
