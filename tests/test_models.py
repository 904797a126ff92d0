"""
Unit tests for models and the model registry.
"""

import json

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.exceptions import NotFoundError
from llm_scoring.models import (
    CSV_COLUMNS,
    Model,
    ModelRegistry,
    export_models_json,
    load_models_csv,
    models_to_dataframe,
    save_models_csv,
)


class TestModel:
    """Tests for the Model type."""

    @pytest.mark.parametrize("price", [None, "", "0", "0.0", "0.00", " 0 "])
    def test_zero_prices_are_free(self, price):
        assert Model("a", "A", price, price).is_free()

    @pytest.mark.parametrize("inp,out", [
        ("0.0000025", "0"),
        ("0", "0.00001"),
        ("abc", "0"),
        ("0", "-"),
    ])
    def test_non_zero_or_unparsable_is_not_free(self, inp, out):
        assert not Model("a", "A", inp, out).is_free()

    def test_from_catalog_entry(self):
        model = Model.from_catalog_entry({
            "id": "openai/gpt-4o",
            "name": "GPT-4o",
            "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
            "context_length": 128000,
        })
        assert model.id == "openai/gpt-4o"
        assert model.pricing_input == "0.0000025"
        assert model.context_length == 128000
        assert model.enabled is True
        assert model.priority == 0
        assert model.provider is None

    def test_from_catalog_entry_name_falls_back_to_id(self):
        model = Model.from_catalog_entry({"id": "x/y", "provider": {"name": "X"}})
        assert model.name == "x/y"
        assert model.provider == "X"
        assert model.is_free()

    def test_from_csv_row(self):
        model = Model.from_csv_row({
            "model_id": "a/b",
            "name": "AB",
            "pricing_input": "",
            "pricing_output": "0.1",
            "context_length": "4096",
            "enabled": "0",
            "priority": "7",
            "provider": "",
        })
        assert model.pricing_input is None
        assert model.context_length == 4096
        assert model.enabled is False
        assert model.priority == 7
        assert model.provider is None

    def test_from_csv_row_defaults(self):
        model = Model.from_csv_row({})
        assert model.id == ""
        assert model.enabled is True
        assert model.priority == 0

    def test_csv_row_round_trip(self):
        model = Model("a/b", "AB", "0", "0.1", None, False, 3, "P")
        assert Model.from_csv_row(model.to_csv_row()) == model

    @pytest.mark.parametrize("field", [
        "id", "name", "pricing_input", "pricing_output", "context_length", "provider",
    ])
    def test_identity_fields_read_only(self, field):
        model = Model("a/b", "AB", "0", "0")
        with pytest.raises(AttributeError, match="read-only"):
            setattr(model, field, "changed")
        assert model.id == "a/b"

    def test_enabled_and_priority_mutable(self):
        model = Model("a/b", "AB")
        model.enabled = False
        model.priority = 7
        assert (model.enabled, model.priority) == (False, 7)


class TestModelRegistry:
    """Tests for ModelRegistry."""

    def test_add_get_has(self, registry):
        assert registry.has("openai/gpt-4o")
        assert "openai/gpt-4o" in registry
        assert registry.get("openai/gpt-4o").name == "GPT-4o"
        assert registry.get("missing") is None

    def test_duplicate_id_replaces_in_place(self):
        registry = ModelRegistry([Model("a", "first"), Model("b", "B")])
        registry.add(Model("a", "second"))
        assert registry.count() == 2
        assert registry.ids() == ["a", "b"]
        assert registry.get("a").name == "second"

    def test_remove_missing_is_noop(self, registry):
        registry.remove("missing")
        registry.remove("openai/gpt-4o")
        assert len(registry) == 3

    def test_filter_enabled(self, registry):
        assert "google/gemma-2-9b" not in registry.filter_enabled()
        assert registry.filter_enabled(False).ids() == ["google/gemma-2-9b"]

    def test_filter_free(self, registry):
        assert registry.filter_free().ids() == [
            "meta-llama/llama-3.1-8b-instruct:free",
            "mistralai/mistral-7b",
            "google/gemma-2-9b",
        ]

    def test_sort_by_priority_descending(self, registry):
        assert registry.sort_by_priority().ids() == [
            "google/gemma-2-9b",
            "meta-llama/llama-3.1-8b-instruct:free",
            "openai/gpt-4o",
            "mistralai/mistral-7b",
        ]

    def test_sort_is_stable(self):
        registry = ModelRegistry([Model("a", "A"), Model("b", "B"), Model("c", "C", priority=1)])
        assert registry.sort_by_priority().ids() == ["c", "a", "b"]

    def test_transforms_return_new_registries(self, registry):
        filtered = registry.filter_free()
        assert filtered is not registry
        assert len(registry) == 4

    def test_from_catalog(self):
        registry = ModelRegistry.from_catalog([{"id": "a"}, {"id": "b"}])
        assert registry.ids() == ["a", "b"]


class TestCsv:
    """Tests for CSV loading and saving."""

    def test_load_missing_raises(self, tmp_path):
        with pytest.raises(NotFoundError):
            load_models_csv(tmp_path / "missing.csv")

    def test_save_and_load(self, tmp_path, registry):
        path = save_models_csv(registry, tmp_path / "out" / "models.csv")
        loaded = load_models_csv(path)
        assert loaded.ids() == registry.ids()
        assert loaded.get("google/gemma-2-9b").enabled is False
        assert loaded.get("mistralai/mistral-7b").pricing_input == "0.0"

    def test_csv_header_order(self, tmp_path, registry):
        path = save_models_csv(registry, tmp_path / "models.csv")
        header = path.read_text().splitlines()[0]
        assert header.split(",") == CSV_COLUMNS

    def test_dataframe_columns(self, registry):
        df = models_to_dataframe(registry)
        assert list(df.columns) == CSV_COLUMNS
        assert len(df) == 4

    def test_export_json(self, tmp_path, registry):
        out = tmp_path / "models.json"
        text = export_models_json(registry.filter_free(), out)
        data = json.loads(text)
        assert len(data) == 3
        assert all(m["is_free"] for m in data)
        assert json.loads(out.read_text()) == data
