"""
Unit tests for artifact storage and path normalization.
"""

import json

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.exceptions import NotFoundError
from llm_scoring.models import Model
from llm_scoring.storage import ArtifactStore, experiment_models_dir, normalize_model_id


class TestNormalizeModelId:
    """Tests for model id normalization."""

    def test_slash_replaced(self):
        assert normalize_model_id("meta-llama/llama-3.1-8b-instruct") == "meta-llama_llama-3.1-8b-instruct"

    def test_all_unsafe_characters(self):
        assert normalize_model_id('a/b\\c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"

    def test_idempotent(self):
        once = normalize_model_id("x/y:free")
        assert normalize_model_id(once) == once

    def test_truncated(self):
        assert len(normalize_model_id("a" * 300)) == 200

    def test_experiment_dir(self, tmp_path):
        assert experiment_models_dir(tmp_path, "my/exp") == tmp_path / "my_exp" / "models"


@pytest.fixture
def store(data_dir):
    return ArtifactStore(data_dir, "exp")


@pytest.fixture
def model():
    return Model("meta-llama/llama-3.1-8b-instruct", "Llama 3.1 8B")


class TestArtifactStore:
    """Tests for ArtifactStore."""

    def test_layout(self, store, model, data_dir):
        store.save_test_prompt(model, "hello", 1)
        expected = data_dir / "exp" / "models" / "meta-llama_llama-3.1-8b-instruct" / "01_test_prompt.json"
        assert expected.exists()

    def test_records_carry_canonical_id(self, store, model):
        path = store.save_raw_response(model, {"choices": []}, 3)
        record = json.loads(path.read_text())
        assert path.name == "03_raw_response.json"
        assert record["model_id"] == model.id
        assert record["model_name"] == model.name
        assert record["test_number"] == 3
        assert "timestamp" in record

    def test_load_round_trip(self, store, model):
        store.save_test_prompt(model, "hello", 1)
        store.save_evaluation(model, {"overall_score": 80}, 1, evaluator_model="judge")
        assert store.load_test_prompt(model.id, 1)["prompt"] == "hello"
        evaluation = store.load_evaluation(model.id, 1)
        assert evaluation["evaluation"]["overall_score"] == 80
        assert evaluation["evaluator_model"] == "judge"

    def test_load_missing_raises(self, store, model):
        with pytest.raises(NotFoundError):
            store.load_raw_response(model.id, 1)

    def test_latest_test_result(self, store, model):
        store.save_raw_response(model, {"n": 1}, 1)
        store.save_raw_response(model, {"n": 2}, 2)
        latest = store.get_latest_test_result(model.id)
        assert latest["test_number"] == 2
        assert latest["response"] == {"n": 2}

    def test_latest_test_result_none(self, store, model):
        assert store.get_latest_test_result(model.id) is None

    def test_next_test_number_tolerates_gaps(self, store, model):
        assert store.next_test_number(model.id) == 1
        store.save_raw_response(model, {}, 1)
        store.save_raw_response(model, {}, 4)
        assert store.list_test_numbers(model.id) == [1, 4]
        assert store.next_test_number(model.id) == 5

    def test_conversation_overwritten(self, store, model):
        store.save_conversation(model, [{"role": "user", "content": "a"}], 1)
        store.save_conversation(model, [{"role": "user", "content": "b"}], 2)
        conversation = store.load_conversation(model.id)
        assert conversation["test_number"] == 2
        assert conversation["messages"][0]["content"] == "b"

    def test_conversation_missing(self, store, model):
        assert store.load_conversation(model.id) is None

    def test_tested_and_evaluated_flags(self, store, model):
        assert not store.is_model_tested(model.id)
        store.save_raw_response(model, {}, 1)
        assert store.is_model_tested(model.id)
        assert not store.is_model_evaluated(model.id, 1)
        store.save_evaluation(model, {}, 1)
        assert store.is_model_evaluated(model.id, 1)
        assert store.has_any_evaluation(model.id)

    def test_tested_model_ids_are_canonical(self, store):
        store.save_raw_response(Model("vendor/model:free", "M"), {}, 1)
        store.save_test_prompt(Model("other/untested", "U"), "only a prompt", 1)
        assert store.tested_model_ids() == ["vendor/model:free"]

    def test_unevaluated_model_ids(self, store):
        a = Model("a/one", "One")
        b = Model("b/two", "Two")
        store.save_raw_response(a, {}, 1)
        store.save_raw_response(b, {}, 1)
        store.save_evaluation(a, {"overall_score": 70}, 1)
        assert store.unevaluated_model_ids() == ["b/two"]

    def test_empty_experiment(self, store):
        assert store.tested_model_ids() == []
        assert store.unevaluated_model_ids() == []
