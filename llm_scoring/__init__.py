"""
LLM Scoring Suite

Benchmarks LLMs available through OpenRouter: sends one prompt to many
models, stores every response, scores the responses with a judge model
and reports the results.
"""

from llm_scoring.model_client import ModelClient, OpenRouterClient
from llm_scoring.models import Model, ModelRegistry
from llm_scoring.state import EvaluationState, EvaluationStateStore
from llm_scoring.storage import ArtifactStore
from llm_scoring.runner import TestOrchestrator, RunOptions, RunSummary
from llm_scoring.evaluator import ContentEvaluator, EvaluationResult
from llm_scoring.report_generator import ReportGenerator

__all__ = [
    "ModelClient",
    "OpenRouterClient",
    "Model",
    "ModelRegistry",
    "EvaluationState",
    "EvaluationStateStore",
    "ArtifactStore",
    "TestOrchestrator",
    "RunOptions",
    "RunSummary",
    "ContentEvaluator",
    "EvaluationResult",
    "ReportGenerator",
]

__version__ = "1.0.0"
