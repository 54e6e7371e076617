"""Speech recognizer backends.

The Google backend is imported on demand since it needs google-cloud-speech
and credentials.
"""

from callassist.recognizer.fake import FakeRecognizer
from callassist.recognizer.protocol import (
    RecognitionStream,
    Recognizer,
    TranscriptResult,
)

__all__ = [
    "FakeRecognizer",
    "RecognitionStream",
    "Recognizer",
    "TranscriptResult",
]
