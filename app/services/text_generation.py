"""Text generation service client.

The content service drafts curriculum text through an external HTTP
endpoint. Failures surface as UpstreamFailure and are not retried.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from app.config import settings
from app.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedText:
    """Text returned by the generation service."""

    text: str


class TextGenerator(Protocol):
    """Capability to turn a prompt into text."""

    async def generate_text(
        self, prompt: str, options: Optional[dict[str, Any]] = None,
    ) -> GeneratedText:
        ...


class HttpTextGenerator:
    """TextGenerator backed by a JSON-over-HTTP completion endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.text_service_url
        self.api_key = api_key if api_key is not None else settings.text_service_api_key
        self.model = model or settings.text_service_model
        self.timeout_seconds = timeout_seconds or settings.text_service_timeout_seconds
        self._transport = transport

    async def generate_text(
        self, prompt: str, options: Optional[dict[str, Any]] = None,
    ) -> GeneratedText:
        """
        Request a completion for ``prompt``.

        Args:
            prompt: Prompt text
            options: Extra request fields passed through to the service

        Returns:
            GeneratedText

        Raises:
            UpstreamFailure: On transport errors, non-2xx responses,
                or a response without a ``text`` string
        """
        payload: dict[str, Any] = {"model": self.model, "prompt": prompt, **(options or {})}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport,
            ) as client:
                response = await client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "Text generation request failed: %s", e,
                extra={"error_code": UpstreamFailure.code},
            )
            raise UpstreamFailure("Text generation service unavailable") from e
        except ValueError as e:
            logger.error("Text generation returned invalid JSON: %s", e)
            raise UpstreamFailure("Text generation service unavailable") from e

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            logger.error("Text generation response missing 'text' field")
            raise UpstreamFailure("Text generation service unavailable")

        return GeneratedText(text=text)


def get_text_generator() -> TextGenerator:
    """Dependency providing the configured text generator."""
    return HttpTextGenerator()
