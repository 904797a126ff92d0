"""
Unit tests for the rate-limited OpenRouter client.

HTTP is served by httpx.MockTransport; sleeping and the clock are faked so
pacing and retry waits can be asserted without real delays.
"""

import json

import httpx
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.config import ClientConfig
from llm_scoring.exceptions import ApiError
from llm_scoring.model_client import (
    OpenRouterClient,
    extract_message_content,
    extract_usage,
)

BASE_URL = "https://openrouter.test/api/v1/"


class FakeClock:
    """Monotonic clock advanced only by sleeping."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_client(handler, clock=None, **config):
    clock = clock or FakeClock()
    settings = {"api_key": "test-key", "min_delay": 1.0, "max_retries": 3}
    settings.update(config)
    http = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return OpenRouterClient(ClientConfig(**settings), http_client=http, sleep=clock.sleep, clock=clock)


def ok_completion(content="Hello"):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestCredentials:
    """Tests for API key handling."""

    @pytest.mark.parametrize("key,expected", [
        ("sk-or-123", True),
        ("", False),
        (None, False),
        ("your_api_key_here", False),
    ])
    def test_has_credentials(self, key, expected):
        client = OpenRouterClient(ClientConfig(api_key=key))
        assert client.has_credentials() is expected
        client.close()

    def test_default_headers(self):
        client = OpenRouterClient(ClientConfig(api_key="sk-or-123", title="Suite"))
        assert client._http.headers["Authorization"] == "Bearer sk-or-123"
        assert client._http.headers["X-Title"] == "Suite"
        assert "HTTP-Referer" in client._http.headers
        client.close()


class TestFetchCatalog:
    """Tests for GET /models."""

    def test_fetch_catalog(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/api/v1/models"
            return httpx.Response(200, json={"data": [{"id": "a/b", "name": "AB"}]})

        client = make_client(handler)
        assert client.fetch_catalog() == [{"id": "a/b", "name": "AB"}]

    def test_fetch_models_builds_registry(self):
        client = make_client(lambda r: httpx.Response(200, json={"data": [{"id": "a"}, {"id": "b"}]}))
        assert client.fetch_models().ids() == ["a", "b"]

    @pytest.mark.parametrize("body", [{"models": []}, {"data": "nope"}, []])
    def test_invalid_format(self, body):
        client = make_client(lambda r: httpx.Response(200, json=body))
        with pytest.raises(ApiError, match="Invalid response format"):
            client.fetch_catalog()

    def test_auth_failure(self):
        client = make_client(lambda r: httpx.Response(401, json={"error": {"message": "No auth"}}))
        with pytest.raises(ApiError) as exc_info:
            client.fetch_catalog()
        assert exc_info.value.status_code == 401
        assert "No auth" in str(exc_info.value)


class TestSendCompletion:
    """Tests for POST /chat/completions."""

    def test_request_body(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return ok_completion()

        client = make_client(handler)
        response = client.send_completion(
            "a/b", [{"role": "user", "content": "Hi"}], {"temperature": 0.2}
        )
        assert seen["path"] == "/api/v1/chat/completions"
        assert seen["body"] == {
            "model": "a/b",
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 0.2,
        }
        assert extract_message_content(response) == "Hello"

    def test_server_error(self):
        client = make_client(lambda r: httpx.Response(500, text="Internal"))
        with pytest.raises(ApiError) as exc_info:
            client.send_completion("a/b", [])
        assert exc_info.value.status_code == 500

    def test_error_body_with_success_status(self):
        body = {"error": {"message": "Provider returned error", "code": 502}}
        client = make_client(lambda r: httpx.Response(200, json=body))
        with pytest.raises(ApiError, match="Provider returned error") as exc_info:
            client.send_completion("a/b", [])
        assert exc_info.value.status_code == 502

    def test_invalid_json(self):
        client = make_client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ApiError, match="Invalid JSON"):
            client.send_completion("a/b", [])

    def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ApiError, match="connection refused"):
            client.send_completion("a/b", [])


class TestPacing:
    """Tests for the minimum delay between requests."""

    def test_first_request_not_delayed(self):
        clock = FakeClock()
        client = make_client(lambda r: ok_completion(), clock=clock)
        client.send_completion("a/b", [])
        assert clock.sleeps == []

    def test_back_to_back_requests_spaced(self):
        clock = FakeClock()
        client = make_client(lambda r: ok_completion(), clock=clock, min_delay=2.0)
        client.send_completion("a/b", [])
        clock.now += 0.5
        client.send_completion("a/b", [])
        assert clock.sleeps == [1.5]

    def test_no_delay_when_enough_time_passed(self):
        clock = FakeClock()
        client = make_client(lambda r: ok_completion(), clock=clock)
        client.send_completion("a/b", [])
        clock.now += 5
        client.send_completion("a/b", [])
        assert clock.sleeps == []


class TestRateLimitRetry:
    """Tests for HTTP 429 handling."""

    def test_retry_after_then_success(self):
        clock = FakeClock()
        responses = [
            httpx.Response(429, headers={"Retry-After": "2"}),
            ok_completion("done"),
        ]
        calls = []

        def handler(request):
            calls.append(request)
            return responses[len(calls) - 1]

        client = make_client(handler, clock=clock)
        response = client.send_completion("a/b", [])
        assert extract_message_content(response) == "done"
        assert len(calls) == 2
        assert clock.sleeps == [2.0]

    def test_missing_retry_after_uses_min_delay(self):
        clock = FakeClock()
        responses = [httpx.Response(429), ok_completion()]
        calls = []

        def handler(request):
            calls.append(request)
            return responses[len(calls) - 1]

        client = make_client(handler, clock=clock, min_delay=1.5)
        client.send_completion("a/b", [])
        assert clock.sleeps == [1.5]

    def test_retry_after_above_ceiling_raises_immediately(self):
        clock = FakeClock()
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "31"})

        client = make_client(handler, clock=clock)
        with pytest.raises(ApiError, match="exceeds maximum allowed") as exc_info:
            client.send_completion("a/b", [])
        assert exc_info.value.status_code == 429
        assert len(calls) == 1
        assert clock.sleeps == []

    def test_retry_after_at_ceiling_is_waited(self):
        clock = FakeClock()
        responses = [httpx.Response(429, headers={"Retry-After": "30"}), ok_completion()]
        calls = []

        def handler(request):
            calls.append(request)
            return responses[len(calls) - 1]

        client = make_client(handler, clock=clock)
        client.send_completion("a/b", [])
        assert clock.sleeps == [30.0]

    def test_nan_retry_after_uses_min_delay(self):
        clock = FakeClock()
        responses = [httpx.Response(429, headers={"Retry-After": "NaN"}), ok_completion("ok")]
        calls = []

        def handler(request):
            calls.append(request)
            return responses[len(calls) - 1]

        client = make_client(handler, clock=clock, min_delay=1.5)
        response = client.send_completion("a/b", [])
        assert extract_message_content(response) == "ok"
        assert clock.sleeps == [1.5]

    def test_infinite_retry_after_is_fatal(self):
        clock = FakeClock()
        client = make_client(
            lambda r: httpx.Response(429, headers={"Retry-After": "inf"}), clock=clock
        )
        with pytest.raises(ApiError, match="exceeds maximum allowed"):
            client.send_completion("a/b", [])
        assert clock.sleeps == []

    def test_retries_exhausted(self):
        clock = FakeClock()
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "1"})

        client = make_client(handler, clock=clock, max_retries=3)
        with pytest.raises(ApiError, match="after 3 attempts") as exc_info:
            client.send_completion("a/b", [])
        assert exc_info.value.status_code == 429
        assert len(calls) == 3
        assert clock.sleeps == [1.0, 1.0]

    def test_other_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        client = make_client(handler)
        with pytest.raises(ApiError):
            client.send_completion("a/b", [])
        assert len(calls) == 1


class TestResponseHelpers:
    """Tests for response extraction helpers."""

    def test_content(self):
        assert extract_message_content({"choices": [{"message": {"content": "x"}}]}) == "x"

    def test_reasoning_content_fallback(self):
        response = {"choices": [{"message": {"content": None, "reasoning_content": "thought"}}]}
        assert extract_message_content(response) == "thought"

    def test_choice_content_fallback(self):
        assert extract_message_content({"choices": [{"content": "legacy"}]}) == "legacy"

    def test_empty(self):
        assert extract_message_content({}) == ""
        assert extract_message_content({"choices": []}) == ""

    def test_usage(self):
        assert extract_usage({"usage": {"total_tokens": 5}}) == {"total_tokens": 5}
        assert extract_usage({}) == {}

    @pytest.mark.parametrize("response", [
        {"choices": [{"message": "oops"}]},
        {"choices": {"message": {"content": "x"}}},
        {"choices": ["oops"]},
        ["not", "a", "dict"],
    ])
    def test_malformed_shapes(self, response):
        assert extract_message_content(response) == ""

    def test_string_message_falls_back_to_choice_content(self):
        assert extract_message_content({"choices": [{"message": "oops", "content": "x"}]}) == "x"

    def test_usage_of_non_dict(self):
        assert extract_usage([1, 2]) == {}
