"""
Model descriptors and the model registry.

Models come either from the OpenRouter catalog or from a CSV file the user
curates (enabling, disabling and prioritizing models before a test run).
"""

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional
from dataclasses import dataclass

import pandas as pd

from llm_scoring.exceptions import NotFoundError
from llm_scoring.utils import write_json_atomic


CSV_COLUMNS = [
    "model_id",
    "name",
    "pricing_input",
    "pricing_output",
    "context_length",
    "enabled",
    "priority",
    "provider",
]

MUTABLE_FIELDS = ("enabled", "priority")


def _is_zero_price(price: Optional[str]) -> bool:
    """Absent or blank prices count as zero; anything unparsable does not."""
    if price is None or not str(price).strip():
        return True
    try:
        return Decimal(str(price).strip()) == 0
    except InvalidOperation:
        return False


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


@dataclass
class Model:
    """
    A model available through the aggregation API.

    Only `enabled` and `priority` can change after construction.
    """

    id: str
    name: str
    pricing_input: Optional[str] = None
    pricing_output: Optional[str] = None
    context_length: Optional[int] = None
    enabled: bool = True
    priority: int = 0
    provider: Optional[str] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in MUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"Model.{name} is read-only")
        super().__setattr__(name, value)

    def is_free(self) -> bool:
        """Check if this is a free model (no input or output cost)."""
        return _is_zero_price(self.pricing_input) and _is_zero_price(self.pricing_output)

    @classmethod
    def from_catalog_entry(cls, data: dict[str, Any]) -> "Model":
        """
        Create a Model from an OpenRouter `/models` entry.

        Catalog models are always enabled with priority 0.
        """
        model_id = str(data.get("id") or "")
        pricing = data.get("pricing") or {}
        provider = data.get("provider")
        if isinstance(provider, dict):
            provider = provider.get("name")

        return cls(
            id=model_id,
            name=str(data.get("name") or model_id),
            pricing_input=_blank_to_none(pricing.get("prompt")),
            pricing_output=_blank_to_none(pricing.get("completion")),
            context_length=_to_int(data.get("context_length")),
            enabled=True,
            priority=0,
            provider=_blank_to_none(provider),
        )

    @classmethod
    def from_csv_row(cls, row: dict[str, Any]) -> "Model":
        """Create a Model from a CSV row."""
        enabled = str(row.get("enabled", "1") or "1").strip()
        return cls(
            id=str(row.get("model_id") or ""),
            name=str(row.get("name") or ""),
            pricing_input=_blank_to_none(row.get("pricing_input")),
            pricing_output=_blank_to_none(row.get("pricing_output")),
            context_length=_to_int(row.get("context_length")),
            enabled=enabled == "1",
            priority=_to_int(row.get("priority"), 0),
            provider=_blank_to_none(row.get("provider")),
        )

    def to_csv_row(self) -> dict[str, str]:
        """Convert to CSV row format."""
        return {
            "model_id": self.id,
            "name": self.name,
            "pricing_input": self.pricing_input or "",
            "pricing_output": self.pricing_output or "",
            "context_length": "" if self.context_length is None else str(self.context_length),
            "enabled": "1" if self.enabled else "0",
            "priority": str(self.priority),
            "provider": self.provider or "",
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "pricing_input": self.pricing_input,
            "pricing_output": self.pricing_output,
            "context_length": self.context_length,
            "enabled": self.enabled,
            "priority": self.priority,
            "provider": self.provider,
            "is_free": self.is_free(),
        }


class ModelRegistry:
    """
    Keyed collection of models.

    Iteration follows insertion order, or the order produced by the last
    transform. Filters and sorting return new registries.
    """

    def __init__(self, models: Optional[Iterable[Model]] = None):
        self._models: dict[str, Model] = {}
        for model in models or []:
            self.add(model)

    @classmethod
    def from_catalog(cls, entries: Iterable[dict[str, Any]]) -> "ModelRegistry":
        """Build a registry from raw catalog entries."""
        return cls(Model.from_catalog_entry(entry) for entry in entries)

    def add(self, model: Model) -> None:
        """Add a model; a duplicate id replaces the earlier entry."""
        self._models[model.id] = model

    def get(self, model_id: str) -> Optional[Model]:
        return self._models.get(model_id)

    def has(self, model_id: str) -> bool:
        return model_id in self._models

    def remove(self, model_id: str) -> None:
        self._models.pop(model_id, None)

    def filter_enabled(self, enabled: bool = True) -> "ModelRegistry":
        """Filter models by enabled status."""
        return ModelRegistry(m for m in self._models.values() if m.enabled == enabled)

    def filter_free(self) -> "ModelRegistry":
        """Filter models to only free models."""
        return ModelRegistry(m for m in self._models.values() if m.is_free())

    def sort_by_priority(self) -> "ModelRegistry":
        """Sort models by priority, highest first; ties keep their order."""
        return ModelRegistry(
            sorted(self._models.values(), key=lambda m: m.priority, reverse=True)
        )

    def ids(self) -> list[str]:
        return list(self._models.keys())

    def to_list(self) -> list[Model]:
        return list(self._models.values())

    def count(self) -> int:
        return len(self._models)

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self._models.values()))


def load_models_csv(csv_path: Path) -> ModelRegistry:
    """
    Load models from a CSV file.

    Args:
        csv_path: Path to the CSV file

    Returns:
        ModelRegistry in file order

    Raises:
        NotFoundError: If the file does not exist
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise NotFoundError(f"CSV file not found: {csv_path}")

    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    return ModelRegistry(Model.from_csv_row(row) for row in df.to_dict(orient="records"))


def models_to_dataframe(models: Iterable[Model]) -> pd.DataFrame:
    """Tabulate models with the CSV column layout."""
    return pd.DataFrame([m.to_csv_row() for m in models], columns=CSV_COLUMNS)


def save_models_csv(models: Iterable[Model], csv_path: Path) -> Path:
    """Write models to a CSV file, creating parent directories."""
    csv_path = Path(csv_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    models_to_dataframe(models).to_csv(csv_path, index=False)
    return csv_path


def export_models_json(models: Iterable[Model], output_path: Optional[Path] = None) -> str:
    """Serialize models to JSON, writing to `output_path` when given."""
    data = [m.to_dict() for m in models]
    if output_path is not None:
        write_json_atomic(Path(output_path), data)
    return json.dumps(data, indent=2)
