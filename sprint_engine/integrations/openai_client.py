"""OpenAI Chat Completions integration for sprint proposal generation."""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx

from sprint_engine.core.config import get_settings
from sprint_engine.core.errors import (
    ConfigurationError,
    UpstreamAuthError,
    UpstreamFailureError,
    UpstreamQuotaError,
    UpstreamTimeoutError,
)
from sprint_engine.models import AIUsage, CompletionResponse

logger = logging.getLogger(__name__)


class OpenAIService:
    """
    Service for OpenAI Chat Completions API calls.

    One request per proposal attempt with a JSON-object output contract.
    Failures are mapped to typed upstream errors and never retried here.
    """

    def __init__(self):
        """Initialize service with settings."""
        self._settings = None

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def is_configured(self) -> bool:
        return bool(self.settings.OPENAI_API_KEY)

    def build_headers(self, idempotency_key: str) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.settings.OPENAI_API_KEY}",
            "Content-Type": "application/json",
            "Idempotency-Key": idempotency_key,
        }
        if self.settings.OPENAI_PROJECT_ID:
            headers["OpenAI-Project"] = self.settings.OPENAI_PROJECT_ID
        if self.settings.OPENAI_ORG_ID:
            headers["OpenAI-Organization"] = self.settings.OPENAI_ORG_ID
        return headers

    def build_payload(self, model: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": model,
            "temperature": self.settings.OPENAI_TEMPERATURE,
            "max_tokens": self.settings.OPENAI_MAX_TOKENS,
            "response_format": {"type": "json_object"},
            "messages": messages,
        }

    async def create_chat_completion(
        self,
        model: str,
        messages: List[Dict[str, str]],
        idempotency_key: Optional[str] = None
    ) -> CompletionResponse:
        """
        Request one JSON-object completion.

        Args:
            model: Allow-listed model identifier
            messages: Chat messages (system first)
            idempotency_key: Token for this logical attempt; generated when absent

        Returns:
            CompletionResponse with raw content and usage

        Raises:
            ConfigurationError: No API key configured
            UpstreamTimeoutError: Wall-clock budget exceeded
            UpstreamAuthError: 401/403 from the provider
            UpstreamQuotaError: 429 from the provider
            UpstreamFailureError: Any other non-2xx or transport error
        """
        if not self.is_configured():
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        idempotency_key = idempotency_key or str(uuid.uuid4())
        payload = self.build_payload(model, messages)
        url = f"{self.settings.OPENAI_API_URL.rstrip('/')}/chat/completions"

        logger.info(
            f"Sending OpenAI request: model={model}, "
            f"messages={len(messages)}, idempotency_key={idempotency_key}"
        )

        budget = self.settings.OPENAI_TIMEOUT_SECONDS
        try:
            # httpx timeouts are per phase; wait_for bounds the whole call
            response = await asyncio.wait_for(
                self._post(url, payload, self.build_headers(idempotency_key), budget),
                timeout=budget,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.error(f"OpenAI API timeout after {budget}s")
            raise UpstreamTimeoutError(
                "The language model did not answer in time",
                details={"timeout_seconds": budget},
            )
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transport error: {e}")
            raise UpstreamFailureError(f"Could not reach the language model: {e}")

        if response.status_code >= 300:
            self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError:
            logger.error("OpenAI returned a non-JSON envelope")
            raise UpstreamFailureError(
                "The language model returned an unreadable envelope",
                details=response.text[:500],
            )

        return self.parse_completion(data, model)

    @staticmethod
    async def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, json=payload, headers=headers)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        body = response.text[:500]
        logger.error(f"OpenAI API error: {status} - {body}")

        if status in (401, 403):
            raise UpstreamAuthError(
                f"OpenAI rejected the credentials ({status})",
                details={"status": status, "body": body},
            )
        if status == 429:
            raise UpstreamQuotaError(
                "OpenAI rate limit or quota exceeded",
                details={"status": status, "body": body},
            )
        raise UpstreamFailureError(
            f"OpenAI API error: {status}",
            details={"status": status, "body": body},
        )

    @staticmethod
    def parse_completion(data: Dict[str, Any], model: str) -> CompletionResponse:
        """Pull content, finish reason and usage out of a provider envelope."""
        choices = data.get("choices") if isinstance(data, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else {}
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        usage = data.get("usage") if isinstance(data, dict) else None

        completion = CompletionResponse(
            content=content if isinstance(content, str) else "",
            model=data.get("model") or model,
            provider_response_id=data.get("id"),
            finish_reason=first.get("finish_reason") if isinstance(first, dict) else None,
            usage=AIUsage(**usage) if isinstance(usage, dict) else AIUsage(),
        )

        logger.info(
            f"OpenAI response {completion.provider_response_id}: "
            f"finish_reason={completion.finish_reason}, "
            f"content_length={len(completion.content)}, "
            f"total_tokens={completion.usage.total_tokens}"
        )
        return completion


# Singleton instance
openai_service = OpenAIService()
