"""Client for the reply generation endpoint."""

import logging

import httpx

from callassist.constants import DEFAULT_HOST, DEFAULT_PORT, GENERATE_PATH
from callassist.errors import TransportFailure

logger = logging.getLogger(__name__)


def build_generate_url(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> str:
    return f"http://{host}:{port}{GENERATE_PATH}"


async def generate_response(
    url: str,
    username: str,
    context: dict[str, str],
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """POST one reply generation request and return the parsed JSON reply.

    Args:
        url: Full endpoint URL, see ``build_generate_url``.
        username: User whose latest question should be answered.
        context: Free-form context, e.g. ``{"service": ..., "issue": ...}``.
        transport: Optional httpx transport (tests use MockTransport).

    Raises:
        TransportFailure: On network errors or a non-2xx status.
    """
    body = {"username": username, "context": context}
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                url,
                json=body,
                headers={"Content-Type": "application/json"},
            )
    except httpx.HTTPError as e:
        raise TransportFailure(f"Request to {url} failed: {e}", cause=e) from e

    if not response.is_success:
        raise TransportFailure(
            f"HTTP error! status: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise TransportFailure(f"Invalid JSON in response from {url}: {e}", cause=e) from e


async def run_generate_response(
    username: str,
    context: dict[str, str],
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict | None:
    """Call the endpoint and log the outcome. Returns None on failure."""
    url = build_generate_url(host, port)
    try:
        data = await generate_response(url, username, context, transport=transport)
    except TransportFailure as e:
        logger.error("Error testing response generation: %s", e)
        return None
    logger.info("Generated response: %s", data)
    return data
