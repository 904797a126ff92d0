"""
Unit tests for utility functions.
"""

import json

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.exceptions import StorageError
from llm_scoring.utils import (
    calculate_statistics,
    format_cost,
    read_json,
    timestamp,
    truncate_text,
    write_json_atomic,
)


class TestStatistics:
    """Tests for calculate_statistics."""

    def test_calculate_statistics_empty(self):
        """Test statistics with empty list."""
        result = calculate_statistics([])
        assert result.mean == 0.0
        assert result.sample_size == 0

    def test_calculate_statistics_single(self):
        """Test statistics with single value."""
        result = calculate_statistics([5.0])
        assert result.mean == 5.0
        assert result.median == 5.0
        assert result.std_dev == 0.0
        assert result.confidence_interval_95 == (5.0, 5.0)

    def test_calculate_statistics_multiple(self):
        """Test statistics with multiple values."""
        result = calculate_statistics([1.0, 2.0, 3.0, 4.0, 5.0])
        assert result.mean == 3.0
        assert result.median == 3.0
        assert result.min_val == 1.0
        assert result.max_val == 5.0
        assert result.sample_size == 5
        low, high = result.confidence_interval_95
        assert low < 3.0 < high


class TestFormatting:
    """Tests for formatting helpers."""

    def test_format_cost(self):
        assert format_cost(0) == "$0.00"
        assert format_cost(0.005) == "$0.005000"
        assert format_cost(0.5) == "$0.5000"
        assert format_cost(2) == "$2.00"

    def test_truncate_text_short(self):
        assert truncate_text("short", 10) == "short"

    def test_truncate_text_long(self):
        text = "a" * 20
        result = truncate_text(text, 10)
        assert len(result) == 10
        assert result.endswith("...")

    def test_timestamp_is_iso(self):
        value = timestamp()
        assert "T" in value
        assert value[:4].isdigit()


class TestJsonFiles:
    """Tests for atomic JSON writes and reads."""

    def test_write_creates_parents(self, tmp_path):
        path = tmp_path / "a" / "b" / "record.json"
        write_json_atomic(path, {"x": 1})
        assert json.loads(path.read_text()) == {"x": 1}

    def test_write_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "record.json"
        write_json_atomic(path, {"x": 1})
        write_json_atomic(path, {"x": 2})
        assert [p.name for p in tmp_path.iterdir()] == ["record.json"]
        assert read_json(path) == {"x": 2}

    def test_write_into_file_path_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(StorageError):
            write_json_atomic(blocker / "record.json", {})

    def test_read_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            read_json(path)

    def test_read_missing(self, tmp_path):
        with pytest.raises(StorageError):
            read_json(tmp_path / "missing.json")
