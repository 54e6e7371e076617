"""Suggested-reply generation backed by the OpenAI chat completions API.

Given the caller's latest question (plus the previous exchange, if any), the
model is asked for a Korean translation of the question and two German
replies with Korean translations. Model output that does not match that
shape is replaced by a fixed fallback payload.
"""

import json
import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from callassist.constants import OPENAI_MODEL, OPENAI_TEMPERATURE, OPENAI_URL
from callassist.conversations import Conversation
from callassist.errors import OpenAIError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a customer service assistant that helps with German and Korean "
    "languages."
)

PROMPT_TEMPLATE = """You are a customer service assistant for German customers.
Context: User is contacting about {service} service regarding {issue} issue.

{previous}Latest user question: {question}

Please provide:
1. Korean translation of the latest user's question
2. Two recommended responses in German for a customer service agent to reply with
3. Korean translations of each of those recommended responses

Format your response as a JSON object with the following structure:
{{
  "korean_translation": "Korean translation of user's question",
  "responses": [
    {{
      "german": "First recommended response in German",
      "korean": "Korean translation of first response"
    }},
    {{
      "german": "Second recommended response in German",
      "korean": "Korean translation of second response"
    }}
  ]
}}"""


class SuggestedResponse(BaseModel):
    german: str = ""
    korean: str = ""


class GeneratedResponse(BaseModel):
    """Shape the model is asked to return."""

    korean_translation: str = ""
    responses: list[SuggestedResponse] = Field(default_factory=list)


FALLBACK_RESPONSE = GeneratedResponse(
    korean_translation="Translation could not be parsed",
    responses=[
        SuggestedResponse(
            german=(
                "Es tut uns leid, wir konnten Ihre Anfrage nicht richtig "
                "verarbeiten. Könnten Sie bitte Ihre Frage wiederholen?"
            ),
            korean=(
                "죄송합니다. 귀하의 요청을 제대로 처리할 수 없었습니다. "
                "질문을 반복해 주시겠습니까?"
            ),
        ),
        SuggestedResponse(
            german=(
                "Entschuldigung für die Unannehmlichkeiten. Bitte versuchen "
                "Sie es erneut oder kontaktieren Sie uns später."
            ),
            korean="불편을 끼쳐 드려 죄송합니다. 다시 시도하시거나 나중에 문의해 주세요.",
        ),
    ],
)


def build_prompt(
    service: str,
    issue: str,
    question: str,
    previous: Conversation | None = None,
) -> str:
    """Render the user prompt for the latest question.

    Args:
        service: Service the caller is contacting about.
        issue: Kind of issue the caller has.
        question: Latest transcribed question.
        previous: The exchange before the latest question, if any.
    """
    previous_block = ""
    if previous is not None and previous.question:
        previous_block = (
            f"Previous user question: {previous.question}\n"
            f"Previous response: {previous.answer}\n\n"
        )
    return PROMPT_TEMPLATE.format(
        service=service,
        issue=issue,
        previous=previous_block,
        question=question,
    )


def parse_model_content(content: str) -> dict:
    """Validate model output, falling back to the canned reply when unusable."""
    try:
        parsed = GeneratedResponse.model_validate_json(content)
    except ValidationError as e:
        logger.warning("Model did not return valid JSON: %s", e)
        logger.warning("Model content: %s", content)
        return FALLBACK_RESPONSE.model_dump()

    logger.info(
        "Valid model response (translation=%s, suggestions=%d)",
        parsed.korean_translation,
        len(parsed.responses),
    )
    return json.loads(content)


class OpenAIResponder:
    """Calls the chat completions endpoint and returns the suggested replies."""

    def __init__(
        self,
        api_key: str,
        url: str = OPENAI_URL,
        model: str = OPENAI_MODEL,
        temperature: float = OPENAI_TEMPERATURE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the responder.

        Args:
            api_key: OpenAI API key sent as a bearer token.
            url: Chat completions endpoint.
            model: Model name.
            temperature: Sampling temperature.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._api_key = api_key
        self._url = url
        self._model = model
        self._temperature = temperature
        self._transport = transport

    async def generate(
        self,
        context: dict[str, str],
        history: list[Conversation],
    ) -> dict:
        """Generate suggested replies for the latest question in ``history``.

        Raises:
            ValueError: If ``history`` is empty.
            OpenAIError: If the API call fails or returns no choices.
        """
        if not history:
            raise ValueError("history must contain at least one conversation")

        latest = history[-1]
        previous = history[-2] if len(history) > 1 else None
        logger.info("Latest question: %s", latest.question)
        if previous is None:
            logger.info("No previous conversation")

        prompt = build_prompt(
            context.get("service", ""),
            context.get("issue", ""),
            latest.question,
            previous,
        )
        content = await self._complete(prompt)
        return parse_model_content(content)

    async def _complete(self, prompt: str) -> str:
        """POST the prompt and return the first choice's message content."""
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise OpenAIError(None, f"request failed: {e}") from e

        logger.info("OpenAI API responded with status %d", response.status_code)
        if response.status_code != httpx.codes.OK:
            raise OpenAIError(response.status_code, response.text)

        try:
            choices = response.json()["choices"]
            if not choices:
                raise OpenAIError(response.status_code, "no response from OpenAI")
            # A refusal carries null content; treat it as unparsable output
            content = choices[0]["message"].get("content") or ""
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise OpenAIError(response.status_code, f"unexpected envelope: {e}") from e

        logger.info("OpenAI content length: %d characters", len(content))
        return content
