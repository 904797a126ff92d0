"""
Rate-limited client for the OpenRouter API.

Provides a small capability interface (`ModelClient`) shared by the test
orchestrator and the content evaluator, and an httpx implementation that
paces requests and retries on HTTP 429.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import httpx
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from llm_scoring.config import ClientConfig
from llm_scoring.exceptions import ApiError
from llm_scoring.models import ModelRegistry

logger = logging.getLogger(__name__)


class RateLimited(Exception):
    """A 429 response that may be retried after `retry_after` seconds."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after}s")


class ModelClient(ABC):
    """Capabilities the rest of the suite needs from a generation API."""

    @abstractmethod
    def has_credentials(self) -> bool:
        """Whether an API key is configured."""

    @abstractmethod
    def fetch_catalog(self) -> list[dict[str, Any]]:
        """Fetch raw model descriptors."""

    @abstractmethod
    def send_completion(
        self,
        model_id: str,
        messages: list[dict[str, str]],
        options: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send a chat completion request and return the decoded response."""

    def fetch_models(self) -> ModelRegistry:
        """Fetch the catalog as a model registry."""
        return ModelRegistry.from_catalog(self.fetch_catalog())


class OpenRouterClient(ModelClient):
    """
    OpenRouter client with request pacing and retry on rate limits.

    Assumes one request in flight at a time; the pacing state is process-local.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration (key, pacing, retry budget)
            http_client: Optional preconfigured httpx client
            sleep: Blocking sleep function
            clock: Monotonic clock in seconds
        """
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self._last_request_time: Optional[float] = None
        self._http = http_client or self._create_client()

    def _create_client(self) -> httpx.Client:
        """Create the underlying httpx client."""
        return httpx.Client(
            base_url=self.config.base_url.rstrip("/") + "/",
            timeout=self.config.timeout,
            headers={
                "Authorization": f"Bearer {self.config.api_key or ''}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "HTTP-Referer": self.config.referer,
                "X-Title": self.config.title,
            },
        )

    def has_credentials(self) -> bool:
        return self.config.has_api_key

    @property
    def min_delay(self) -> float:
        return self.config.min_delay

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "OpenRouterClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch_catalog(self) -> list[dict[str, Any]]:
        """
        Fetch all available models from OpenRouter.

        Returns:
            Raw model descriptors from the `data` field

        Raises:
            ApiError: On request failure or an unexpected response shape
        """
        data = self._decode(self._request("GET", "models"))

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise ApiError("Invalid response format from OpenRouter API")

        logger.info("Fetched %d models from catalog", len(data["data"]))
        return data["data"]

    def send_completion(
        self,
        model_id: str,
        messages: list[dict[str, str]],
        options: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Send a chat completion request.

        Args:
            model_id: The model to use
            messages: Messages with 'role' and 'content'
            options: Extra body fields (temperature, max_tokens, ...)

        Returns:
            The decoded response body

        Raises:
            ApiError: On any non-recoverable failure
        """
        body = {"model": model_id, "messages": messages, **(options or {})}
        data = self._decode(self._request("POST", "chat/completions", json=body))

        if not isinstance(data, dict):
            raise ApiError(f"Unexpected response from {model_id}")
        if data.get("error") and not data.get("choices"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            code = error.get("code") if isinstance(error, dict) else None
            raise ApiError(
                f"API error from {model_id}: {message}",
                status_code=code if isinstance(code, int) else None,
            )
        return data

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON in response: {e}", status_code=response.status_code
            ) from e

    def _enforce_rate_limit(self) -> None:
        """Sleep until at least `min_delay` has passed since the last attempt."""
        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            delay = max(0.0, self.config.min_delay - elapsed)
            if delay > 0:
                self._sleep(delay)

        self._last_request_time = self._clock()

    def _retry_after_seconds(self, response: httpx.Response) -> float:
        """Retry-After header in seconds, or the pacing delay if absent."""
        value = response.headers.get("Retry-After", "").strip()
        try:
            seconds = float(value)
        except ValueError:
            return self.config.min_delay
        if math.isnan(seconds) or seconds < 0:
            return self.config.min_delay
        return seconds

    def _attempt(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Perform a single paced request."""
        self._enforce_rate_limit()

        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"API request failed: {e}") from e

        if response.status_code == 429:
            retry_after = self._retry_after_seconds(response)
            if retry_after > self.config.max_retry_after:
                raise ApiError(
                    f"Rate limit: Retry-After value ({retry_after:g}s) exceeds "
                    f"maximum allowed ({self.config.max_retry_after:g}s)",
                    status_code=429,
                )
            logger.warning("Rate limited on %s %s, retry after %gs", method, path, retry_after)
            raise RateLimited(retry_after)

        if response.status_code >= 400:
            raise ApiError(
                f"API request failed: HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )

        return response

    def _wait_retry_after(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception()
        return exc.retry_after if isinstance(exc, RateLimited) else self.config.min_delay

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make a request, retrying on rate limits."""
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=self._wait_retry_after,
            retry=retry_if_exception_type(RateLimited),
            sleep=self._sleep,
        )
        try:
            return retrying(self._attempt, method, path, **kwargs)
        except RetryError as e:
            last = e.last_attempt.exception()
            raise ApiError(
                f"Rate limit exceeded after {self.config.max_retries} attempts. "
                f"Retry after: {last.retry_after:g}s",
                status_code=429,
            ) from last


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from an error response body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if error:
            return str(error)
    return response.reason_phrase


def extract_message_content(response: dict[str, Any]) -> str:
    """Generated text from a chat completion response, or '' if absent."""
    if not isinstance(response, dict):
        return ""
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}
    for value in (message.get("content"), message.get("reasoning_content"), choice.get("content")):
        if isinstance(value, str) and value:
            return value
    return ""


def extract_usage(response: dict[str, Any]) -> dict[str, Any]:
    """Token usage block of a response, or an empty dict."""
    if not isinstance(response, dict):
        return {}
    usage = response.get("usage")
    return usage if isinstance(usage, dict) else {}
