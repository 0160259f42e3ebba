"""HTTP client for OpenAI-compatible chat completion APIs."""

from __future__ import annotations

import json
import random
import re
import time
from typing import Any, Final

import requests

from GraphSearch.utils.log import log

RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def normalize_endpoint(base_url: str) -> str:
    """Expand a base URL to the chat completions endpoint.

    ``https://host``, ``https://host/v1`` and ``https://host/v1/chat/completions``
    all resolve to the last form.

    Raises:
        ValueError: If base_url is empty.
    """
    if not base_url:
        raise ValueError("base_url cannot be empty")
    url = base_url.rstrip("/")
    if url.endswith("/chat/completions"):
        return url
    if url.endswith("/v1"):
        return f"{url}/chat/completions"
    return f"{url}/v1/chat/completions"


def extract_json(text: str) -> dict[str, Any]:
    """Parse the first JSON object embedded in model output.

    Returns an empty dict when nothing parseable is found.
    """
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return {}
    candidate = match.group(0)
    for attempt in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
        try:
            data = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        return data if isinstance(data, dict) else {}
    return {}


class LLMApiClient:
    """Chat completion client with exponential backoff on transient failures."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 30,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 8.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize API client.

        Args:
            base_url: Base URL (normalized to the full endpoint).
            api_key: Bearer token.
            timeout: Request timeout in seconds.
            max_retries: Retries after the first attempt.
            retry_base_delay: First backoff delay in seconds.
            retry_max_delay: Upper bound for a single backoff delay.
            session: Optional session, e.g. for connection reuse in tests.
        """
        self.endpoint = normalize_endpoint(base_url)
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.session = session or requests.Session()
        log.debug("LLMApiClient initialized: endpoint=%s timeout=%d max_retries=%d", self.endpoint, timeout, max_retries)

    def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 512,
    ) -> str:
        """Send a chat completion request and return the message text.

        Raises:
            requests.HTTPError: On a non-retryable status or after all retries.
            requests.Timeout: If every attempt timed out.
            requests.ConnectionError: If every attempt failed to connect.
        """
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
                if response.status_code in RETRYABLE_STATUS:
                    raise requests.HTTPError(f"HTTP {response.status_code}", response=response)
                response.raise_for_status()
                return _message_text(response.json())
            except (requests.Timeout, requests.ConnectionError) as error:
                last_error = error
                log.debug("LLM request failed (network): %s", type(error).__name__)
            except requests.HTTPError as error:
                status = getattr(error.response, "status_code", None)
                if status is not None and status not in RETRYABLE_STATUS:
                    log.error("LLM request failed (non-retryable): HTTP %s", status)
                    raise
                last_error = error
                log.debug("LLM request failed (retryable): HTTP %s", status)

            if attempt < self.max_retries:
                delay = self.backoff_delay(attempt)
                log.info("LLM retry %d/%d after %.1fs (error: %s)", attempt + 1, self.max_retries, delay, last_error)
                time.sleep(delay)

        log.error("LLM request failed after %d attempts: %s", self.max_retries + 1, last_error)
        assert last_error is not None
        raise last_error

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay for a 0-indexed attempt, capped, with +/-25% jitter."""
        delay = min(self.retry_base_delay * (2**attempt), self.retry_max_delay)
        return delay * random.uniform(0.75, 1.25)

    def close(self) -> None:
        self.session.close()


def _message_text(data: Any) -> str:
    try:
        return data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as error:
        log.warning("Unexpected API response format: %s", error)
        return ""
