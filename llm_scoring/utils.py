"""
Utility functions for LLM Scoring Suite.
"""

import json
import os
import statistics
import tempfile
from pathlib import Path
from typing import Any
from datetime import datetime
from dataclasses import dataclass, asdict

import numpy as np
from scipy import stats

from llm_scoring.exceptions import StorageError


@dataclass
class StatisticalResult:
    """Statistical analysis result."""

    mean: float
    median: float
    std_dev: float
    min_val: float
    max_val: float
    confidence_interval_95: tuple[float, float]
    sample_size: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


def calculate_statistics(values: list[float]) -> StatisticalResult:
    """
    Calculate comprehensive statistics for a list of values.

    Args:
        values: List of numeric values

    Returns:
        StatisticalResult with all statistics
    """
    if not values:
        return StatisticalResult(
            mean=0.0,
            median=0.0,
            std_dev=0.0,
            min_val=0.0,
            max_val=0.0,
            confidence_interval_95=(0.0, 0.0),
            sample_size=0,
        )

    n = len(values)
    mean = statistics.mean(values)
    median = statistics.median(values)
    std_dev = statistics.stdev(values) if n > 1 else 0.0
    min_val = min(values)
    max_val = max(values)

    # Calculate 95% confidence interval
    if n > 1 and std_dev > 0:
        se = std_dev / np.sqrt(n)
        ci = stats.t.interval(0.95, n - 1, loc=mean, scale=se)
        confidence_interval_95 = (float(ci[0]), float(ci[1]))
    else:
        confidence_interval_95 = (mean, mean)

    return StatisticalResult(
        mean=mean,
        median=median,
        std_dev=std_dev,
        min_val=min_val,
        max_val=max_val,
        confidence_interval_95=confidence_interval_95,
        sample_size=n,
    )


def timestamp() -> str:
    """Current local time as an ISO-8601 string with UTC offset."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def write_json_atomic(path: Path, data: Any) -> Path:
    """
    Write JSON to a file so readers never observe a partial record.

    The payload goes to a temporary file in the same directory, is flushed
    and fsynced, then renamed over the target.

    Args:
        path: Destination file
        data: JSON-serializable payload

    Returns:
        The destination path

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e

    return path


def read_json(path: Path) -> Any:
    """
    Read a JSON file.

    Raises:
        StorageError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path}: {e}") from e


def format_cost(cost: float) -> str:
    """
    Format cost to human-readable string.

    Args:
        cost: Cost in dollars

    Returns:
        Formatted string
    """
    if cost == 0:
        return "$0.00"
    elif cost < 0.01:
        return f"${cost:.6f}"
    elif cost < 1.0:
        return f"${cost:.4f}"
    else:
        return f"${cost:.2f}"


def truncate_text(text: str, max_length: int = 100) -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
