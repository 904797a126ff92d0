"""
Shared fixtures for the LLM Scoring Suite tests.
"""

import sys
from pathlib import Path
from typing import Any, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.exceptions import ApiError
from llm_scoring.model_client import ModelClient
from llm_scoring.models import Model, ModelRegistry


def completion(content: str, total_tokens: int = 30, cost: float = 0.001) -> dict:
    """A chat completion response body carrying `content`."""
    return {
        "id": "gen-123",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": total_tokens - 10,
            "total_tokens": total_tokens,
            "cost": cost,
        },
    }


class FakeClient(ModelClient):
    """In-memory ModelClient recording every call."""

    def __init__(
        self,
        replies: Optional[dict[str, Any]] = None,
        failures: Optional[dict[str, str]] = None,
        catalog: Optional[list[dict]] = None,
        credentials: bool = True,
        default_reply: Optional[str] = None,
    ):
        self.replies = replies or {}
        self.failures = failures or {}
        self.catalog = catalog or []
        self.credentials = credentials
        self.default_reply = default_reply
        self.calls: list[tuple[str, list, Optional[dict]]] = []
        self.closed = False

    def has_credentials(self) -> bool:
        return self.credentials

    def fetch_catalog(self) -> list[dict]:
        return self.catalog

    def send_completion(self, model_id, messages, options=None):
        self.calls.append((model_id, messages, options))
        if model_id in self.failures:
            raise ApiError(self.failures[model_id], status_code=500)
        reply = self.replies.get(model_id, self.default_reply)
        if reply is None:
            reply = f"Response from {model_id}"
        if isinstance(reply, dict):
            return reply
        return completion(reply)

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def fake_client():
    """Factory for FakeClient instances."""
    return FakeClient


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def registry():
    """Registry with a mix of free, paid and disabled models."""
    return ModelRegistry([
        Model("openai/gpt-4o", "GPT-4o", "0.0000025", "0.00001", 128000, True, 5, "OpenAI"),
        Model("meta-llama/llama-3.1-8b-instruct:free", "Llama 3.1 8B", "0", "0", 131072, True, 10, "Meta"),
        Model("mistralai/mistral-7b", "Mistral 7B", "0.0", "0.00", 32768, True, 1, "Mistral"),
        Model("google/gemma-2-9b", "Gemma 2 9B", "0", "0", 8192, False, 20, "Google"),
    ])
