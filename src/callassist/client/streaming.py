"""Streaming speech-to-text client session.

Opens a websocket to the speech endpoint, pushes a placeholder audio chunk
once per interval for a bounded number of ticks, logs every transcription
message the server sends back, then hangs up.

Real audio capture and encoding (LINEAR16, 16kHz) are up to the caller; the
session only ever sends ``chunk``.
"""

import asyncio
import enum
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from callassist.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEMO_CHUNK,
    DEMO_CHUNK_LIMIT,
    DEMO_CLOSE_DELAY_S,
    DEMO_INTERVAL_S,
    SPEECH_PATH,
    USERNAME_PARAM,
)
from callassist.errors import MalformedMessage, TransportFailure

logger = logging.getLogger(__name__)


def build_speech_url(
    username: str,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> str:
    """Build the speech websocket URL with the percent-encoded username.

    Raises:
        ValueError: If ``username`` is empty.
    """
    if not username:
        raise ValueError("username must not be empty")
    return f"ws://{host}:{port}{SPEECH_PATH}?{USERNAME_PARAM}={quote(username, safe='')}"


class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    DRAINING = "draining"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class TranscriptMessage:
    """A parsed server message. Fields are best-effort and may be None."""

    transcript: Any
    final: Any
    raw: dict


@dataclass
class SessionResult:
    """Everything observed during one session."""

    url: str
    chunks_sent: int = 0
    transcripts: list[TranscriptMessage] = field(default_factory=list)
    malformed: list[MalformedMessage] = field(default_factory=list)
    close_code: int | None = None
    close_reason: str = ""
    error: TransportFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_message(message: str | bytes) -> TranscriptMessage:
    """Parse one inbound message.

    Raises:
        MalformedMessage: If the payload is not a JSON object.
    """
    try:
        data = json.loads(message)
    except ValueError as e:
        raise MalformedMessage(message, e) from e
    if not isinstance(data, dict):
        error = TypeError(f"expected object, got {type(data).__name__}")
        raise MalformedMessage(message, error)
    return TranscriptMessage(
        transcript=data.get("transcript"),
        final=data.get("final"),
        raw=data,
    )


def _log_transcript(message: TranscriptMessage) -> None:
    logger.info("Transcription: %s", message.transcript)
    logger.info("Is final: %s", message.final)


def _log_malformed(error: MalformedMessage) -> None:
    logger.error("Error parsing server message: %s", error)


def _log_close(code: int | None, reason: str) -> None:
    logger.info("Connection closed with code: %s %s", code, reason)


def _log_error(error: TransportFailure) -> None:
    logger.error("WebSocket error: %s", error)


class StreamingSession:
    """One bounded record-and-stream session against the speech endpoint.

    The send loop ticks every ``interval`` seconds. Each of the first
    ``chunk_limit`` ticks sends ``chunk``; the next tick stops the loop and,
    after ``close_delay`` seconds, the session closes the channel. Inbound
    messages are handled as they arrive, interleaved with the ticks.

    Outcomes go to the ``on_*`` handlers (logging by default) and are also
    collected in the ``SessionResult`` returned by ``run``. Failures never
    propagate out of ``run``.
    """

    def __init__(
        self,
        url: str,
        *,
        chunk: bytes = DEMO_CHUNK,
        chunk_limit: int = DEMO_CHUNK_LIMIT,
        interval: float = DEMO_INTERVAL_S,
        close_delay: float = DEMO_CLOSE_DELAY_S,
        connect: Callable[[str], Awaitable[Any]] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_transcript: Callable[[TranscriptMessage], None] = _log_transcript,
        on_malformed: Callable[[MalformedMessage], None] = _log_malformed,
        on_close: Callable[[int | None, str], None] = _log_close,
        on_error: Callable[[TransportFailure], None] = _log_error,
    ):
        """Initialize the session.

        Args:
            url: Speech websocket URL, see ``build_speech_url``.
            chunk: Payload sent on each tick.
            chunk_limit: Number of chunks to send before hanging up.
            interval: Seconds between ticks.
            close_delay: Seconds to wait after the last tick before closing.
            connect: Coroutine function opening the websocket; defaults to
                ``websockets.connect``.
            sleep: Coroutine function used for ticks; defaults to ``asyncio.sleep``.
        """
        self.url = url
        self.chunk = chunk
        self.chunk_limit = chunk_limit
        self.interval = interval
        self.close_delay = close_delay
        self._connect = connect or websockets.connect
        self._sleep = sleep or asyncio.sleep
        self._on_transcript = on_transcript
        self._on_malformed = on_malformed
        self._on_close = on_close
        self._on_error = on_error

        self._state = SessionState.IDLE
        self._ws = None
        self._close_requested = False
        self.result = SessionResult(url=url)

    @classmethod
    def for_user(
        cls,
        username: str,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        **kwargs,
    ) -> "StreamingSession":
        """Create a session for ``username`` against ``host:port``."""
        return cls(build_speech_url(username, host, port), **kwargs)

    @property
    def state(self) -> SessionState:
        return self._state

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session %s: %s -> %s", self.url, self._state.value, state.value)
        self._state = state

    async def run(self) -> SessionResult:
        """Connect, stream, and wait until the channel is closed.

        Raises:
            RuntimeError: If the session was already started.
        """
        if self._state is not SessionState.IDLE:
            raise RuntimeError("session already started")

        self._transition(SessionState.CONNECTING)
        try:
            self._ws = await self._connect(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._fail(TransportFailure(f"Could not connect to {self.url}: {e}", cause=e))
            return self.result

        self._transition(SessionState.OPEN)
        logger.info("Connected to server")

        sender = asyncio.create_task(self._send_loop())
        try:
            await self._receive_loop()
        finally:
            if not self._close_requested:
                sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            if self._state is not SessionState.CLOSED:
                await self._close()
                self._transition(SessionState.CLOSED)

        return self.result

    async def _send_loop(self) -> None:
        """Send one chunk per tick until the limit, then close after a delay."""
        logger.info("Simulating sending audio data...")
        try:
            while True:
                await self._sleep(self.interval)
                if self.result.chunks_sent >= self.chunk_limit:
                    break
                await self._ws.send(self.chunk)
                self.result.chunks_sent += 1
                logger.info("Sent audio data chunk %d", self.result.chunks_sent)
        except ConnectionClosed:
            # Reported by the receive loop
            return

        self._transition(SessionState.DRAINING)
        logger.info("Finished sending audio data")
        await self._sleep(self.close_delay)
        await self._close()

    async def _receive_loop(self) -> None:
        """Handle inbound messages until the channel closes."""
        try:
            async for message in self._ws:
                logger.info("Received message from server: %s", message)
                self._handle_message(message)
        except ConnectionClosedError as e:
            self._record_close()
            self._fail(TransportFailure(f"Connection lost: {e}", cause=e))
            self._on_close(self.result.close_code, self.result.close_reason)
            return

        self._record_close()
        self._transition(SessionState.CLOSED)
        self._on_close(self.result.close_code, self.result.close_reason)

    def _handle_message(self, message: str | bytes) -> None:
        try:
            parsed = parse_message(message)
        except MalformedMessage as e:
            self.result.malformed.append(e)
            self._on_malformed(e)
            return
        self.result.transcripts.append(parsed)
        self._on_transcript(parsed)

    async def _close(self) -> None:
        """Close the channel; later calls are no-ops."""
        if self._close_requested or self._ws is None:
            return
        self._close_requested = True
        self._transition(SessionState.CLOSING)
        await self._ws.close()
        logger.info("Connection closed")

    def _record_close(self) -> None:
        self.result.close_code = getattr(self._ws, "close_code", None)
        self.result.close_reason = getattr(self._ws, "close_reason", None) or ""

    def _fail(self, error: TransportFailure) -> None:
        self.result.error = error
        self._transition(SessionState.CLOSED)
        self._on_error(error)


async def stream_demo(
    username: str,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    **kwargs,
) -> SessionResult:
    """Run the demo session for ``username`` and return what was observed."""
    logger.info("Started recording...")
    session = StreamingSession.for_user(username, host, port, **kwargs)
    return await session.run()
