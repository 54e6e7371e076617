"""Demo clients for the speech and reply generation endpoints."""

from callassist.client.generate import (
    build_generate_url,
    generate_response,
    run_generate_response,
)
from callassist.client.streaming import (
    SessionResult,
    SessionState,
    StreamingSession,
    TranscriptMessage,
    build_speech_url,
    parse_message,
    stream_demo,
)

__all__ = [
    "SessionResult",
    "SessionState",
    "StreamingSession",
    "TranscriptMessage",
    "build_generate_url",
    "build_speech_url",
    "generate_response",
    "parse_message",
    "run_generate_response",
    "stream_demo",
]
