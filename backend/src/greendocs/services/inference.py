"""
Thin wrapper around the OpenAI chat completions API.

Both the extraction and the error-analysis clients go through here. The
wrapper always asks for JSON mode and translates SDK failures into the
domain error taxonomy, so callers never see an ``openai`` exception.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

import openai
from openai import AsyncOpenAI

from greendocs.config import Settings
from greendocs.domain.errors import MalformedAIResponseError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InferenceConfig:
    """Explicit configuration for the inference clients."""
    api_key: str
    base_url: str | None = None
    extraction_model: str = "gpt-4o"
    analysis_model: str = "gpt-4o-mini"
    max_completion_tokens: int = 2048
    timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        """Fail at construction rather than on the first call."""
        if not self.api_key or not self.api_key.strip():
            raise ValueError("OPENAI_API_KEY is not configured")

    @classmethod
    def from_settings(cls, settings: Settings) -> "InferenceConfig":
        return cls(
            api_key=settings.openai_api_key.get_secret_value(),
            base_url=settings.openai_base_url,
            extraction_model=settings.extraction_model,
            analysis_model=settings.analysis_model,
            max_completion_tokens=settings.max_completion_tokens,
            timeout_seconds=settings.inference_timeout_seconds,
        )


class InferenceClient:
    """
    JSON-mode chat completions.

    Example:
        client = InferenceClient(InferenceConfig(api_key="sk-..."))
        raw = await client.complete_json(model="gpt-4o-mini", prompt="...")
    """

    def __init__(self, config: InferenceConfig, client: AsyncOpenAI | None = None) -> None:
        self.config = config
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=2,
        )

    async def complete_json(
        self,
        *,
        model: str,
        prompt: str,
        image_url: str | None = None,
    ) -> str:
        """
        Send one user message and return the raw message content.

        Args:
            model: Model name
            prompt: Instruction text
            image_url: Optional image (usually a base64 data URL)

        Raises:
            UpstreamUnavailableError: On API, connection or timeout errors.
        """
        if image_url is None:
            content: Any = prompt
        else:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": content}],
                max_completion_tokens=self.config.max_completion_tokens,
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error from {model}: {e.status_code} {e.message}")
            raise UpstreamUnavailableError(
                f"OpenAI API Error: {e.status_code} {type(e).__name__} - {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            # Connection failures and timeouts carry no status code.
            logger.error(f"OpenAI request to {model} failed: {e}")
            raise UpstreamUnavailableError(f"OpenAI API Error: {type(e).__name__} - {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def load_json_object(raw: str, context: str) -> dict[str, Any]:
    """
    Parse model output that must be a JSON object.

    Raises:
        MalformedAIResponseError: If ``raw`` is empty, not JSON, or not an object.
    """
    if not raw or not raw.strip():
        raise MalformedAIResponseError(f"The model returned an empty response during {context}.")

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedAIResponseError(
            f"The model response during {context} was not valid JSON: {e}"
        ) from e

    if not isinstance(parsed, dict):
        raise MalformedAIResponseError(
            f"The model response during {context} was not a JSON object."
        )
    return parsed
