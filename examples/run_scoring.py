"""
Example: Scoring free models end to end

Sends one prompt to a handful of free models, evaluates every response
with the judge model and writes an HTML report.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from llm_scoring.config import get_config
from llm_scoring.evaluator import ContentEvaluator
from llm_scoring.exceptions import ApiError
from llm_scoring.model_client import OpenRouterClient, extract_message_content
from llm_scoring.models import Model
from llm_scoring.report_generator import ReportGenerator
from llm_scoring.runner import RunOptions, TestOrchestrator
from llm_scoring.state import EvaluationStateStore
from llm_scoring.storage import ArtifactStore

EXPERIMENT = "example"
PROMPT = "Write a PHP function that checks whether a string is a palindrome."


def main():
    """Run a small scoring experiment."""
    config = get_config()
    data_dir = config.storage.data_dir

    client = OpenRouterClient(config.client)
    if not client.has_credentials():
        print("Error: OPENROUTER_API_KEY environment variable not set")
        print("Please set your API key: export OPENROUTER_API_KEY=your_key_here")
        return

    print("=" * 60)
    print("LLM Scoring Suite - Example")
    print("=" * 60)

    with client:
        models = client.fetch_models()
        print(f"\nCatalog size: {len(models)} models")

        artifacts = ArtifactStore(data_dir, EXPERIMENT)
        orchestrator = TestOrchestrator(
            client,
            EvaluationStateStore(data_dir, EXPERIMENT),
            artifacts,
            RunOptions(free_only=True, limit=3),
        )

        print("\nTesting models...")
        print("-" * 40)
        summary = orchestrator.run(
            models,
            PROMPT,
            progress=lambda r: print(f"  {'ok  ' if r.success else 'FAIL'} {r.model_id}"),
        )
        print(f"\n{summary.success_count} successful, {summary.failed_count} failed")

        evaluator = ContentEvaluator(client, config.evaluator.model)
        print("\nEvaluating responses...")
        print("-" * 40)
        for model_id in artifacts.unevaluated_model_ids():
            record = artifacts.get_latest_test_result(model_id)
            content = extract_message_content(record["response"])
            try:
                result = evaluator.evaluate(content, PROMPT, model_id, record["model_name"], "PHP code")
            except ApiError as e:
                print(f"  {model_id}: evaluation failed ({e})")
                continue
            artifacts.save_evaluation(
                Model(id=model_id, name=record["model_name"]),
                result.evaluation_dict(),
                record["test_number"],
                **result.record_extras(),
            )
            print(f"  {model_id}: {result.overall_score}%")

    output = data_dir / EXPERIMENT / "results.html"
    ReportGenerator(artifacts).generate("html", str(output))
    print(f"\nReport saved to: {output}")


if __name__ == "__main__":
    main()
