"""OpenAI HTTP clients for metadata classification and speech synthesis.

Responsibilities:
- Send chat-completions (JSON mode) and `/audio/speech` requests with bounded timeouts.
- Pace requests through an optional shared `RateLimiter`.
- Raise `OpenAIProviderError` with a failure kind the pipeline maps to stage errors.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests

from .rate_limiter import RateLimiter

DEFAULT_BASE_URL = "https://api.openai.com/v1"
_MAX_PROVIDER_MESSAGE_CHARS = 180
_FAILURE_HEADLINES = {
    "invalid_api_key": "OpenAI authentication failed",
    "insufficient_quota": "OpenAI quota is insufficient for this request",
    "rate_limited": "OpenAI rate limit reached",
    "invalid_model": "OpenAI rejected the selected model",
    "timeout": "OpenAI request timed out",
}


class OpenAIProviderError(RuntimeError):
    """Raised when an OpenAI request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code

    @property
    def retryable(self) -> bool:
        """Return whether a retry could plausibly succeed."""

        if self.failure_kind in {"timeout", "transport", "rate_limited"}:
            return True
        return self.status_code is not None and self.status_code >= 500


def redact_secrets(text: str) -> str:
    """Redact API-key-like tokens from provider error content."""

    redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
    return re.sub(r"(?i)bearer\s+[A-Za-z0-9._-]{12,}", "Bearer [redacted-token]", redacted)


def _short_message(text: str) -> str:
    """Collapse whitespace and cap user-facing message length."""

    compact = " ".join(text.split())
    if len(compact) <= _MAX_PROVIDER_MESSAGE_CHARS:
        return compact
    return f"{compact[: _MAX_PROVIDER_MESSAGE_CHARS - 1]}..."


def _provider_message(body: str) -> tuple[str, str | None]:
    """Extract a concise message and optional error code from an error body."""

    if not body:
        return "", None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return _short_message(redact_secrets(body)), None

    message = body
    provider_code: str | None = None
    error_payload = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error_payload, dict):
        code_value = error_payload.get("code")
        if isinstance(code_value, str) and code_value.strip():
            provider_code = code_value.strip()
        message_value = error_payload.get("message")
        if isinstance(message_value, str) and message_value.strip():
            message = message_value.strip()
    return _short_message(redact_secrets(message)), provider_code


def _classify_http_failure(status_code: int, message: str, provider_code: str | None) -> str:
    """Classify an HTTP error into a failure kind."""

    lowered = message.lower()
    code = (provider_code or "").lower()
    if status_code == 401 or "api key" in lowered:
        return "invalid_api_key"
    if code == "insufficient_quota" or (status_code == 429 and "quota" in lowered):
        return "insufficient_quota"
    if status_code == 429:
        return "rate_limited"
    if code == "model_not_found" or (
        "model" in lowered
        and any(phrase in lowered for phrase in ("not found", "does not exist", "invalid"))
    ):
        return "invalid_model"
    if status_code in {408, 504} or "timed out" in lowered or "timeout" in lowered:
        return "timeout"
    return "http_error"


class _OpenAIBaseClient:
    """Shared HTTP settings for OpenAI clients."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Set `OPENAI_API_KEY` or pass `--api-key`.",
                failure_kind="invalid_api_key",
            )

    def _post_json(self, endpoint_path: str, payload: dict[str, Any]) -> bytes:
        """POST a JSON payload and return the raw response body."""

        self._require_api_key()
        if self.rate_limiter is not None:
            self.rate_limiter.acquire(f"openai:{endpoint_path}")
        try:
            response = requests.post(
                f"{self.base_url}{endpoint_path}",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._from_http_error(exc) from exc
        except requests.RequestException as exc:
            if isinstance(exc, requests.Timeout):
                raise OpenAIProviderError(
                    "OpenAI request timed out.", failure_kind="timeout"
                ) from exc
            raise OpenAIProviderError(
                f"OpenAI request transport error: {_short_message(redact_secrets(str(exc)))}",
                failure_kind="transport",
            ) from exc
        except (TimeoutError, socket.timeout) as exc:
            raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout") from exc

        body = bytes(response.content)
        if not body:
            raise OpenAIProviderError(f"OpenAI `{endpoint_path}` response is empty.")
        return body

    @staticmethod
    def _from_http_error(exc: requests.HTTPError) -> OpenAIProviderError:
        """Convert an HTTP error into a provider error with metadata."""

        response = exc.response
        status_code = response.status_code if response is not None else 0
        body = ""
        if response is not None:
            body = bytes(response.content or b"").decode("utf-8", errors="replace").strip()
        message, provider_code = _provider_message(body)
        failure_kind = _classify_http_failure(status_code, message, provider_code)
        headline = _FAILURE_HEADLINES.get(failure_kind, "OpenAI request failed")
        detail = f"{headline} (HTTP {status_code})"
        detail = f"{detail}: {message}" if message else f"{detail}."
        return OpenAIProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )


class OpenAIChatClient(_OpenAIBaseClient):
    """Requests-based OpenAI chat-completions client."""

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        """Return the first assistant message text for a two-message prompt."""

        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        raw_payload = self._post_json("/chat/completions", payload).decode("utf-8")
        return self._extract_message_text(raw_payload)

    @staticmethod
    def _extract_message_text(raw_payload: str) -> str:
        """Extract `choices[0].message.content` as plain text."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise OpenAIProviderError("OpenAI returned invalid JSON payload.") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise OpenAIProviderError("OpenAI response missing non-empty `choices` list.")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise OpenAIProviderError("OpenAI response missing `choices[0].message` object.")

        content = message.get("content")
        if isinstance(content, list):
            content = "".join(
                item["text"]
                for item in content
                if isinstance(item, dict)
                and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            )
        text = content.strip() if isinstance(content, str) else ""
        if not text:
            raise OpenAIProviderError("OpenAI response message content is empty.")
        return text


class OpenAISpeechClient(_OpenAIBaseClient):
    """Requests-based OpenAI `/audio/speech` client."""

    def synthesize_speech(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        instructions: str | None = None,
        response_format: str = "wav",
        speed: float = 1.0,
    ) -> bytes:
        """Return synthesized audio bytes."""

        payload: dict[str, Any] = {
            "model": model,
            "voice": voice,
            "input": text,
            "response_format": response_format,
            "speed": speed,
        }
        if instructions:
            payload["instructions"] = instructions
        return self._post_json("/audio/speech", payload)
