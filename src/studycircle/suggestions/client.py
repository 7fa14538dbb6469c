"""OpenAI-compatible chat completion client for suggestions."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from studycircle.config import Settings, get_settings
from studycircle.errors import UpstreamFailure
from studycircle.suggestions.prompts import SYSTEM_INSTRUCTION

logger = structlog.get_logger()


def parse_suggestion(text: str) -> Any:  # noqa: ANN401
    """Model output as JSON when it parses, else wrapped as ``{"content": text}``."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return {"content": text}


class SuggestionClient:
    """Forwards one prompt to the completion endpoint and returns the reply text."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def _request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.settings.suggestion_model,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.settings.suggestion_temperature,
        }

    async def complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the first choice's message content.

        Raises:
            UpstreamFailure: Missing key, transport error, non-2xx, or malformed body.
        """
        if not self.settings.suggestion_api_key:
            msg = "Suggestion service is not configured"
            raise UpstreamFailure(msg)

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.suggestion_timeout_seconds,
            ) as client:
                response = await client.post(
                    self.settings.suggestion_api_url,
                    headers={
                        "Authorization": f"Bearer {self.settings.suggestion_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=self._request_body(prompt),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("suggestion_upstream_timeout", error=str(e))
            msg = f"Suggestion service timed out: {e}"
            raise UpstreamFailure(msg) from e
        except httpx.HTTPStatusError as e:
            logger.warning("suggestion_upstream_status", status=e.response.status_code)
            msg = f"Suggestion service returned {e.response.status_code}: {e.response.text}"
            raise UpstreamFailure(msg) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("suggestion_upstream_error", error=str(e))
            msg = f"Suggestion service request failed: {e}"
            raise UpstreamFailure(msg) from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.warning("suggestion_upstream_malformed", error=repr(e))
            msg = f"Suggestion service returned an unexpected response: {e!r}"
            raise UpstreamFailure(msg) from e


def get_suggestion_client() -> SuggestionClient:
    """FastAPI dependency."""
    return SuggestionClient()
