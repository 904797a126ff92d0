"""
Durable, resumable evaluation state.

Each model gets one `state.json` record inside its artifact directory. Every
transition is written atomically (temp file, fsync, rename) before the
mutating call returns, so a crashed run resumes from the last flushed
transition.

The store assumes a single writer per experiment. Two processes racing the
same experiment never corrupt a record, but the last writer wins. Model ids
that normalize to the same directory share one record: the later model
starts fresh and its first transition replaces the earlier model's state.
"""

import logging
import shutil
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_scoring.exceptions import StateTransitionError, StorageError
from llm_scoring.models import Model
from llm_scoring.storage import STATE_FILE, experiment_models_dir, normalize_model_id
from llm_scoring.utils import read_json, timestamp, write_json_atomic

logger = logging.getLogger(__name__)


class StateStatus(str, Enum):
    """Evaluation states for a single model."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


# target -> states it may be entered from
ALLOWED_TRANSITIONS = {
    StateStatus.IN_PROGRESS: {StateStatus.PENDING, StateStatus.IN_PROGRESS, StateStatus.FAILED},
    StateStatus.COMPLETED: {StateStatus.IN_PROGRESS},
    StateStatus.FAILED: {StateStatus.IN_PROGRESS},
}


class EvaluationState(BaseModel):
    """Evaluation state of one model."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    model_name: str
    status: StateStatus = StateStatus.PENDING
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def _check(self, target: StateStatus) -> None:
        if self.status not in ALLOWED_TRANSITIONS[target]:
            raise StateTransitionError(
                f"Cannot move {self.model_id} from {self.status.value} to {target.value}"
            )

    def start(self) -> None:
        """Mark as in progress."""
        self._check(StateStatus.IN_PROGRESS)
        self.status = StateStatus.IN_PROGRESS
        self.started_at = timestamp()
        self.completed_at = None
        self.error_message = None

    def complete(self, metadata: Optional[dict[str, Any]] = None) -> None:
        """Mark as completed, merging metadata into the existing map."""
        self._check(StateStatus.COMPLETED)
        self.status = StateStatus.COMPLETED
        self.completed_at = timestamp()
        self.metadata = {**self.metadata, **(metadata or {})}

    def fail(self, error_message: str) -> None:
        """Mark as failed."""
        self._check(StateStatus.FAILED)
        self.status = StateStatus.FAILED
        self.completed_at = timestamp()
        self.error_message = error_message

    @property
    def is_pending(self) -> bool:
        return self.status == StateStatus.PENDING

    @property
    def is_in_progress(self) -> bool:
        return self.status == StateStatus.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.status == StateStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == StateStatus.FAILED

    @property
    def is_finished(self) -> bool:
        return self.is_completed or self.is_failed


@dataclass
class ProgressSummary:
    """Aggregate progress over an experiment."""

    total: int
    completed: int
    failed: int
    in_progress: int
    pending: int
    percent_complete: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


class EvaluationStateStore:
    """
    Tracks which models are pending, in progress, completed or failed.

    State is keyed by model id and survives process restarts.
    """

    def __init__(self, data_dir: Path, experiment: str = "default"):
        """
        Initialize the state store.

        Args:
            data_dir: Root data directory
            experiment: Experiment namespace
        """
        self.data_dir = Path(data_dir)
        self.experiment = experiment
        self.models_dir = experiment_models_dir(self.data_dir, experiment)

    def _state_path(self, model_id: str) -> Path:
        return self.models_dir / normalize_model_id(model_id) / STATE_FILE

    def _read(self, path: Path) -> Optional[EvaluationState]:
        if not path.exists():
            return None
        try:
            return EvaluationState.model_validate(read_json(path))
        except (StorageError, ValueError) as e:
            logger.warning("Ignoring unreadable state record %s: %s", path, e)
            return None

    def get_state(self, model: Model) -> EvaluationState:
        """Load the persisted state, or a fresh pending one (not persisted)."""
        state = self._read(self._state_path(model.id))
        if state is not None and state.model_id == model.id:
            return state
        if state is not None:
            logger.warning(
                "State record for %s belongs to %s; treating as pending, the next "
                "transition replaces it",
                model.id, state.model_id,
            )
        return EvaluationState(model_id=model.id, model_name=model.name or model.id)

    def save_state(self, state: EvaluationState) -> None:
        """Persist a state record."""
        write_json_atomic(self._state_path(state.model_id), state.model_dump(mode="json"))

    def start(self, model: Model) -> EvaluationState:
        """Mark a model as in progress."""
        state = self.get_state(model)
        state.start()
        self.save_state(state)
        logger.debug("Started %s", model.id)
        return state

    def complete(self, model: Model, metadata: Optional[dict[str, Any]] = None) -> EvaluationState:
        """Mark a model as completed."""
        state = self.get_state(model)
        state.complete(metadata)
        self.save_state(state)
        logger.debug("Completed %s", model.id)
        return state

    def fail(self, model: Model, error_message: str) -> EvaluationState:
        """Mark a model as failed."""
        state = self.get_state(model)
        state.fail(error_message)
        self.save_state(state)
        logger.debug("Failed %s: %s", model.id, error_message)
        return state

    def get_all_states(self) -> dict[str, EvaluationState]:
        """Reconstruct every persisted state, keyed by stored model id."""
        if not self.models_dir.is_dir():
            return {}

        states = {}
        for directory in sorted(self.models_dir.iterdir()):
            if not directory.is_dir():
                continue
            state = self._read(directory / STATE_FILE)
            if state is not None and state.model_id:
                states[state.model_id] = state
        return states

    def get_completed_model_ids(self) -> list[str]:
        """Ids of all models whose state is completed."""
        return [
            model_id for model_id, state in self.get_all_states().items()
            if state.is_completed
        ]

    def is_completed(self, model_id: str) -> bool:
        state = self._read(self._state_path(model_id))
        return state is not None and state.model_id == model_id and state.is_completed

    def get_progress_summary(self, expected_total: Optional[int] = None) -> ProgressSummary:
        """
        Summarize progress across all persisted states.

        Args:
            expected_total: Number of candidate models. When given, pending is
                the remainder after completed, failed and in-progress, which
                covers models that have never been touched.

        Returns:
            ProgressSummary
        """
        states = self.get_all_states().values()

        completed = sum(1 for s in states if s.is_completed)
        failed = sum(1 for s in states if s.is_failed)
        in_progress = sum(1 for s in states if s.is_in_progress)

        if expected_total is not None:
            total = expected_total
            pending = max(0, expected_total - completed - failed - in_progress)
        else:
            total = len(states)
            pending = sum(1 for s in states if s.is_pending)

        percent = round(completed / total * 100, 1) if total > 0 else 0

        return ProgressSummary(
            total=total,
            completed=completed,
            failed=failed,
            in_progress=in_progress,
            pending=pending,
            percent_complete=percent,
        )

    def reset(self, model_id: str) -> None:
        """Discard the persisted state of one model."""
        path = self._state_path(model_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to reset state for {model_id}: {e}") from e

    def reset_all(self) -> None:
        """Delete the experiment's whole model tree, state and artifacts."""
        if not self.models_dir.exists():
            return
        try:
            shutil.rmtree(self.models_dir)
        except OSError as e:
            raise StorageError(f"Failed to reset {self.models_dir}: {e}") from e
        logger.info("Reset evaluation state in %s", self.models_dir)
