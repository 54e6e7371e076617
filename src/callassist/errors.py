"""Exception types shared by the clients and the server."""


class ClientError(Exception):
    """Base class for failures reported by the demo clients."""


class MalformedMessage(ClientError):
    """An inbound streaming message was not valid JSON.

    Reported and skipped; the session keeps running.
    """

    def __init__(self, payload: str | bytes, cause: Exception):
        self.payload = payload
        self.cause = cause
        super().__init__(f"Malformed server message {payload!r}: {cause}")


class TransportFailure(ClientError):
    """The connection or request failed, or the server returned an error status.

    Exactly one of ``status_code`` or ``cause`` is normally set.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class OpenAIError(Exception):
    """Raised when the OpenAI API call fails or returns an unusable envelope."""

    def __init__(self, status_code: int | None, message: str):
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"OpenAI API error {status_code}: {message}")


class RecognitionError(Exception):
    """Raised by a recognition stream when a chunk cannot be processed."""
