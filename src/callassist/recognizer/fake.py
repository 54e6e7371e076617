"""Fake recognizer for testing.

Returns deterministic transcripts based on chunk content, allowing the
whole websocket pipeline to run without cloud credentials.
"""

import hashlib

from callassist.recognizer.protocol import TranscriptResult


class FakeRecognitionStream:
    """Emits one result per chunk; every ``final_every``-th result is final."""

    def __init__(self, final_every: int = 3):
        self._final_every = final_every
        self._chunks = 0
        self.closed = False

    def send(self, audio: bytes) -> list[TranscriptResult]:
        self._chunks += 1
        digest = hashlib.sha256(audio).hexdigest()
        text = f"[fake:{digest[:8]}|{len(audio)}B|#{self._chunks}]"
        is_final = self._final_every > 0 and self._chunks % self._final_every == 0
        return [TranscriptResult(text, is_final)]

    def close(self) -> None:
        self.closed = True

    @property
    def chunk_count(self) -> int:
        """Number of chunks received so far."""
        return self._chunks


class FakeRecognizer:
    """Deterministic recognizer for tests and local demos."""

    def __init__(self, final_every: int = 3):
        """Initialize the fake recognizer.

        Args:
            final_every: Mark every Nth result final. 0 disables final results.
        """
        self._final_every = final_every
        self.streams: list[FakeRecognitionStream] = []

    def open_stream(self) -> FakeRecognitionStream:
        stream = FakeRecognitionStream(self._final_every)
        self.streams.append(stream)
        return stream
