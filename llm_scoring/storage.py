"""
Artifact storage for model test runs.

Layout::

    {data_dir}/{experiment}/models/{normalized_model_id}/
        01_test_prompt.json
        01_raw_response.json
        01_evaluation.json
        conversation.json
        state.json

Directory names are lookup keys only. Every record stores the canonical
model id, which is what callers get back when listing models.
"""

import logging
import re
from pathlib import Path
from typing import Any, Optional

from llm_scoring.exceptions import NotFoundError, StorageError
from llm_scoring.models import Model
from llm_scoring.utils import read_json, timestamp, write_json_atomic

logger = logging.getLogger(__name__)

UNSAFE_PATH_CHARS = re.compile(r'[/\\:*?"<>|]')
MAX_MODEL_DIR_LENGTH = 200
MAX_EXPERIMENT_DIR_LENGTH = 100

PROMPT_FILE = "{:02d}_test_prompt.json"
RESPONSE_FILE = "{:02d}_raw_response.json"
EVALUATION_FILE = "{:02d}_evaluation.json"
CONVERSATION_FILE = "conversation.json"
STATE_FILE = "state.json"

RESPONSE_PATTERN = re.compile(r"^(\d+)_raw_response\.json$")
EVALUATION_PATTERN = re.compile(r"^(\d+)_evaluation\.json$")


def normalize_model_id(model_id: str, max_length: int = MAX_MODEL_DIR_LENGTH) -> str:
    """
    Normalize a model ID to a safe directory name.

    "meta-llama/llama-3.1-8b-instruct" -> "meta-llama_llama-3.1-8b-instruct"

    Not injective: distinct ids may collide after normalization.
    """
    return UNSAFE_PATH_CHARS.sub("_", model_id)[:max_length]


def experiment_models_dir(data_dir: Path, experiment: str) -> Path:
    """Directory holding per-model folders for an experiment."""
    return Path(data_dir) / normalize_model_id(experiment, MAX_EXPERIMENT_DIR_LENGTH) / "models"


class ArtifactStore:
    """
    Saves and loads prompts, raw responses, evaluations and conversations.

    Test numbers are per model, start at 1 and are assigned by
    `next_test_number`. Gaps left by external deletions are tolerated.
    """

    def __init__(self, data_dir: Path, experiment: str = "default"):
        """
        Initialize the artifact store.

        Args:
            data_dir: Root data directory
            experiment: Experiment namespace partitioning the results
        """
        self.data_dir = Path(data_dir)
        self.experiment = experiment
        self.models_dir = experiment_models_dir(self.data_dir, experiment)

    def model_path(self, model_id: str) -> Path:
        """Get the storage directory for a model."""
        return self.models_dir / normalize_model_id(model_id)

    def _record(self, model: Model, test_number: int, **payload: Any) -> dict[str, Any]:
        return {
            "model_id": model.id,
            "model_name": model.name,
            "test_number": test_number,
            **payload,
            "timestamp": timestamp(),
        }

    def save_test_prompt(self, model: Model, prompt: str, test_number: int = 1) -> Path:
        """Save a test prompt to the model directory."""
        path = self.model_path(model.id) / PROMPT_FILE.format(test_number)
        return write_json_atomic(path, self._record(model, test_number, prompt=prompt))

    def save_raw_response(
        self, model: Model, response: dict[str, Any], test_number: int = 1
    ) -> Path:
        """Save a raw API response to the model directory."""
        path = self.model_path(model.id) / RESPONSE_FILE.format(test_number)
        return write_json_atomic(path, self._record(model, test_number, response=response))

    def save_evaluation(
        self, model: Model, evaluation: dict[str, Any], test_number: int = 1, **extra: Any
    ) -> Path:
        """
        Save an evaluation result to the model directory.

        `extra` fields (evaluator model, content type, raw judge reply) are
        stored next to the scoring block.
        """
        path = self.model_path(model.id) / EVALUATION_FILE.format(test_number)
        return write_json_atomic(
            path, self._record(model, test_number, evaluation=evaluation, **extra)
        )

    def save_conversation(
        self, model: Model, messages: list[dict[str, Any]], test_number: int = 1
    ) -> Path:
        """Save the conversation history, replacing any previous one."""
        path = self.model_path(model.id) / CONVERSATION_FILE
        return write_json_atomic(
            path,
            {
                "model_id": model.id,
                "model_name": model.name,
                "test_number": test_number,
                "messages": messages,
                "last_updated": timestamp(),
            },
        )

    def load_conversation(self, model_id: str) -> Optional[dict[str, Any]]:
        """Load the conversation history, or None if there is none."""
        path = self.model_path(model_id) / CONVERSATION_FILE
        if not path.exists():
            return None
        return read_json(path)

    def _load(self, model_id: str, template: str, test_number: int, kind: str) -> dict[str, Any]:
        path = self.model_path(model_id) / template.format(test_number)
        if not path.exists():
            raise NotFoundError(f"{kind} not found for test {test_number} of model {model_id}")
        return read_json(path)

    def load_test_prompt(self, model_id: str, test_number: int) -> dict[str, Any]:
        return self._load(model_id, PROMPT_FILE, test_number, "Prompt")

    def load_raw_response(self, model_id: str, test_number: int) -> dict[str, Any]:
        return self._load(model_id, RESPONSE_FILE, test_number, "Response")

    def load_evaluation(self, model_id: str, test_number: int) -> dict[str, Any]:
        return self._load(model_id, EVALUATION_FILE, test_number, "Evaluation")

    def _scan(self, model_id: str, pattern: re.Pattern) -> list[int]:
        path = self.model_path(model_id)
        if not path.is_dir():
            return []
        numbers = []
        for entry in path.iterdir():
            match = pattern.match(entry.name)
            if match:
                numbers.append(int(match.group(1)))
        return sorted(numbers)

    def list_test_numbers(self, model_id: str) -> list[int]:
        """Test numbers that have a raw response, ascending."""
        return self._scan(model_id, RESPONSE_PATTERN)

    def list_evaluation_numbers(self, model_id: str) -> list[int]:
        """Test numbers that have an evaluation, ascending."""
        return self._scan(model_id, EVALUATION_PATTERN)

    def next_test_number(self, model_id: str) -> int:
        """Next unused test number for a model."""
        numbers = self.list_test_numbers(model_id)
        return numbers[-1] + 1 if numbers else 1

    def get_latest_test_result(self, model_id: str) -> Optional[dict[str, Any]]:
        """Raw response record with the highest test number, or None."""
        numbers = self.list_test_numbers(model_id)
        if not numbers:
            return None
        return self.load_raw_response(model_id, numbers[-1])

    def is_model_tested(self, model_id: str) -> bool:
        return bool(self.list_test_numbers(model_id))

    def is_model_evaluated(self, model_id: str, test_number: int = 1) -> bool:
        return (self.model_path(model_id) / EVALUATION_FILE.format(test_number)).exists()

    def has_any_evaluation(self, model_id: str) -> bool:
        return bool(self.list_evaluation_numbers(model_id))

    def _canonical_id(self, directory: Path) -> str:
        """Read the stored model id for a directory, falling back to its name."""
        candidates = [directory / STATE_FILE]
        candidates += sorted(
            (p for p in directory.iterdir() if RESPONSE_PATTERN.match(p.name)),
            reverse=True,
        )
        for path in candidates:
            if not path.exists():
                continue
            try:
                data = read_json(path)
            except StorageError as e:
                logger.warning("Skipping unreadable record %s: %s", path, e)
                continue
            if isinstance(data, dict) and data.get("model_id"):
                return str(data["model_id"])
        return directory.name

    def tested_model_ids(self) -> list[str]:
        """Canonical ids of all models with at least one raw response."""
        if not self.models_dir.is_dir():
            return []

        model_ids = []
        for directory in sorted(self.models_dir.iterdir()):
            if not directory.is_dir():
                continue
            if any(RESPONSE_PATTERN.match(p.name) for p in directory.iterdir()):
                model_ids.append(self._canonical_id(directory))
        return model_ids

    def unevaluated_model_ids(self) -> list[str]:
        """Tested models that have no evaluation yet."""
        return [
            model_id
            for model_id in self.tested_model_ids()
            if not self.has_any_evaluation(model_id)
        ]
