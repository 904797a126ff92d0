"""
Test orchestration.

Runs one prompt against many models, one at a time, recording each model's
progress in the state store so an interrupted run picks up where it left off.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from llm_scoring.exceptions import ApiError, StateTransitionError, StorageError
from llm_scoring.model_client import ModelClient, extract_message_content, extract_usage
from llm_scoring.models import Model, ModelRegistry
from llm_scoring.state import EvaluationStateStore
from llm_scoring.storage import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Selection and request options for a test run."""

    enabled_only: bool = True
    free_only: bool = False
    # 0 means no limit
    limit: int = 0
    completion_options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelRunResult:
    """Outcome of testing a single model."""

    model_id: str
    model_name: str
    success: bool
    test_number: Optional[int] = None
    response_length: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "model_id": self.model_id,
            "model_name": self.model_name,
            "status": "success" if self.success else "failed",
            "test_number": self.test_number,
            "response_length": self.response_length,
            "error": self.error,
        }


@dataclass
class RunSummary:
    """Aggregate outcome of a test run."""

    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    results: list[ModelRunResult] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed_count > 0 else 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "results": [r.to_dict() for r in self.results],
        }


def select_candidates(models: ModelRegistry, options: RunOptions) -> ModelRegistry:
    """Apply the enabled/free filters and order by descending priority."""
    if options.enabled_only:
        models = models.filter_enabled(True)
    if options.free_only:
        models = models.filter_free()
    return models.sort_by_priority()


class TestOrchestrator:
    """
    Drives a prompt through a set of models.

    Each model is started, called, persisted and then completed or failed.
    Models already completed in the state store are skipped, so running the
    same selection twice only retries what did not finish.
    """

    # Not a pytest test class
    __test__ = False

    def __init__(
        self,
        client: ModelClient,
        state_store: EvaluationStateStore,
        artifact_store: ArtifactStore,
        options: Optional[RunOptions] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Client used to send completions
            state_store: Durable per-model progress
            artifact_store: Where prompts and responses are written
            options: Selection and request options
        """
        self.client = client
        self.state_store = state_store
        self.artifacts = artifact_store
        self.options = options or RunOptions()

    def pending_models(self, models: ModelRegistry) -> tuple[list[Model], int]:
        """
        Candidates still to be tested, and how many were skipped as completed.

        The limit applies after completed models are excluded.
        """
        candidates = select_candidates(models, self.options)
        completed = set(self.state_store.get_completed_model_ids())

        pending = [m for m in candidates if m.id not in completed]
        skipped = len(candidates) - len(pending)

        if self.options.limit > 0:
            pending = pending[: self.options.limit]

        return pending, skipped

    def run(
        self,
        models: ModelRegistry,
        prompt: str,
        progress: Optional[Callable[[ModelRunResult], None]] = None,
    ) -> RunSummary:
        """
        Test every pending model with the prompt.

        Args:
            models: Registry to select candidates from
            prompt: Prompt sent to each model
            progress: Called with each model's result as it finishes

        Returns:
            RunSummary of this run
        """
        pending, skipped = self.pending_models(models)
        summary = RunSummary(skipped_count=skipped)

        if skipped:
            logger.info("Resuming: %d models already completed", skipped)
        logger.info("Testing %d models", len(pending))

        for model in pending:
            result = self.test_model(model, prompt)
            summary.results.append(result)
            if result.success:
                summary.success_count += 1
            else:
                summary.failed_count += 1
            if progress:
                progress(result)

        logger.info(
            "Run finished: %d successful, %d failed, %d skipped",
            summary.success_count, summary.failed_count, summary.skipped_count,
        )
        return summary

    def _record_failure(self, model: Model, message: str) -> ModelRunResult:
        logger.warning("Model %s failed: %s", model.id, message)
        try:
            self.state_store.fail(model, message)
        except (StorageError, StateTransitionError) as e:
            logger.error("Could not record failure of %s: %s", model.id, e)
        return ModelRunResult(model.id, model.name, success=False, error=message)

    def test_model(self, model: Model, prompt: str) -> ModelRunResult:
        """Test one model, recording the outcome in the state store."""
        messages = [{"role": "user", "content": prompt}]

        try:
            self.state_store.start(model)
            response = self.client.send_completion(
                model.id, messages, self.options.completion_options or None
            )
            content = extract_message_content(response)

            test_number = self.artifacts.next_test_number(model.id)
            self.artifacts.save_test_prompt(model, prompt, test_number)
            self.artifacts.save_raw_response(model, response, test_number)
            self.artifacts.save_conversation(
                model,
                messages + [{"role": "assistant", "content": content}],
                test_number,
            )
        except (ApiError, StorageError) as e:
            return self._record_failure(model, str(e))

        metadata: dict[str, Any] = {
            "prompt": prompt,
            "response_length": len(content),
            "test_number": test_number,
        }
        usage = extract_usage(response)
        if "total_tokens" in usage:
            metadata["total_tokens"] = usage["total_tokens"]
        if "cost" in usage:
            metadata["cost"] = usage["cost"]

        try:
            self.state_store.complete(model, metadata)
        except StorageError as e:
            return self._record_failure(model, str(e))
        logger.info("Model %s completed (test %d)", model.id, test_number)

        return ModelRunResult(
            model.id,
            model.name,
            success=True,
            test_number=test_number,
            response_length=len(content),
        )
