"""
Command-line interface for the LLM Scoring Suite.

Fetch the OpenRouter catalog, run a prompt against the selected models,
evaluate the stored responses with a judge model and report the results.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from llm_scoring import __version__
from llm_scoring.config import AppConfig, get_config
from llm_scoring.evaluator import ContentEvaluator, EvaluationResult
from llm_scoring.exceptions import ApiError, NotFoundError, ScoringError, StorageError
from llm_scoring.model_client import OpenRouterClient, extract_message_content, extract_usage
from llm_scoring.models import (
    Model,
    ModelRegistry,
    export_models_json,
    load_models_csv,
    models_to_dataframe,
    save_models_csv,
)
from llm_scoring.report_generator import REPORT_FORMATS, ReportGenerator, score_style
from llm_scoring.runner import RunOptions, TestOrchestrator, select_candidates
from llm_scoring.state import EvaluationStateStore, StateStatus
from llm_scoring.storage import ArtifactStore
from llm_scoring.tasks import default_models_csv, load_evaluator_hints, load_task
from llm_scoring.utils import format_cost, truncate_text

logger = logging.getLogger(__name__)

console = Console()

NO_API_KEY = "No API key configured. Please set OPENROUTER_API_KEY in .env file."
NOTHING_TESTED = "No models have been tested yet. Run 'llm-scoring test' to test models."

STATUS_ICONS = {
    StateStatus.COMPLETED: "✅",
    StateStatus.FAILED: "❌",
    StateStatus.IN_PROGRESS: "⏳",
    StateStatus.PENDING: "⏸️",
}


def experiment_option(f):
    return click.option(
        "--experiment-code",
        "-e",
        "experiment",
        default="default",
        show_default=True,
        help="Experiment code for organizing results.",
    )(f)


def fail(message: str, hint: Optional[str] = None) -> None:
    """Print an error (and optional hint) and exit with status 1."""
    console.print(f"❌ {escape(message)}", style="red")
    if hint:
        console.print(escape(hint), style="yellow")
    sys.exit(1)


def make_client(config: AppConfig) -> OpenRouterClient:
    """Create an API client, exiting when no key is configured."""
    client = OpenRouterClient(config.client)
    if not client.has_credentials():
        client.close()
        fail(NO_API_KEY)
    return client


def load_registry(csv_path: Path, hint: str) -> ModelRegistry:
    try:
        return load_models_csv(csv_path)
    except NotFoundError as e:
        fail(str(e), hint)


def print_models(models: ModelRegistry, title: str = "Models") -> None:
    """Print models in a formatted table."""
    table = Table(title=title)
    table.add_column("Model ID", justify="left")
    table.add_column("Name", justify="left")
    table.add_column("Provider", justify="left")
    table.add_column("Input $", justify="right")
    table.add_column("Output $", justify="right")
    table.add_column("Context", justify="right")
    table.add_column("Enabled", justify="center")
    table.add_column("Priority", justify="right")

    for m in models:
        table.add_row(
            escape(m.id),
            escape(truncate_text(m.name, 40)),
            escape(m.provider or "-"),
            m.pricing_input or "-",
            m.pricing_output or "-",
            "-" if m.context_length is None else str(m.context_length),
            "✓" if m.enabled else "✗",
            str(m.priority),
        )

    console.print(table)


def print_evaluation(result: EvaluationResult) -> None:
    """Print an evaluation result."""
    style = score_style(result.overall_score)
    console.print(f"Overall Score: [{style}]{result.overall_score}%[/{style}]")

    table = Table(title="Detailed Scores")
    table.add_column("Criterion", justify="left")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Weighted", justify="right")
    table.add_column("Feedback", justify="left")

    for name, criterion in (("Logic", result.logic), ("Syntax", result.syntax), ("Output", result.output)):
        table.add_row(
            name,
            f"{criterion.score}%",
            f"{int(criterion.weight * 100)}%",
            str(criterion.weighted_score),
            escape(truncate_text(criterion.feedback, 60)),
        )
    console.print(table)

    for title, items, marker in (
        ("Strengths", result.strengths, "✓"),
        ("Weaknesses", result.weaknesses, "✗"),
        ("Suggestions", result.suggestions, "→"),
    ):
        if items:
            console.print(title, style="bold")
            for item in items:
                console.print(f"  {marker} {escape(item)}")

    console.print(f"Evaluator Model: {escape(result.evaluator_model)}", style="dim")


@click.group()
@click.version_option(version=__version__, prog_name="llm-scoring")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Data directory (default: LLM_SCORING_DATA_DIR or ./data).",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Optional[Path], verbose: bool) -> None:
    """LLM Scoring Suite - benchmark LLMs through OpenRouter.

    Send one prompt to many models, store every response, and score the
    results with a judge model.
    """
    config = get_config()
    if data_dir is not None:
        config = config.model_copy(
            update={"storage": config.storage.model_copy(update={"data_dir": data_dir})}
        )

    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output CSV path (default: DATA_DIR/models.csv).",
)
@click.pass_obj
def fetch(config: AppConfig, output: Optional[Path]) -> None:
    """Fetch all models from the OpenRouter API and save them to CSV."""
    output = output or config.storage.data_dir / "models.csv"
    console.print("Fetching models from OpenRouter API...", style="cyan")

    with make_client(config) as client:
        try:
            models = client.fetch_models()
        except ApiError as e:
            fail(f"Failed to fetch models: {e}")

    try:
        save_models_csv(models, output)
    except OSError as e:
        fail(f"Failed to write {output}: {e}")

    console.print(f"✅ Saved {len(models)} models to {output}", style="green")


@cli.command("list-models")
@click.option(
    "--input",
    "-i",
    "input_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Input CSV path (default: DATA_DIR/models.csv).",
)
@click.option("--enabled", "-e", is_flag=True, help="Only show enabled models.")
@click.option("--free-only", "-f", is_flag=True, help="Only show free models.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "csv"]),
    default="table",
    show_default=True,
)
@click.pass_obj
def list_models(
    config: AppConfig,
    input_path: Optional[Path],
    enabled: bool,
    free_only: bool,
    output_format: str,
) -> None:
    """List models from the CSV file."""
    input_path = input_path or config.storage.data_dir / "models.csv"
    models = load_registry(input_path, "Run 'llm-scoring fetch' first.")

    if enabled:
        models = models.filter_enabled(True)
    if free_only:
        models = models.filter_free()

    if output_format == "csv":
        click.echo(models_to_dataframe(models).to_csv(index=False), nl=False)
        return

    console.print(f"Found {len(models)} models:")
    print_models(models)


@cli.command("export-models")
@click.option(
    "--input",
    "-i",
    "input_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Input CSV path (default: DATA_DIR/models.csv).",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: stdout).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["csv", "json"]),
    default="csv",
    show_default=True,
)
@click.option("--enabled", is_flag=True, help="Only export enabled models.")
@click.option("--free-only", is_flag=True, help="Only export free models.")
@click.pass_obj
def export_models(
    config: AppConfig,
    input_path: Optional[Path],
    output: Optional[Path],
    output_format: str,
    enabled: bool,
    free_only: bool,
) -> None:
    """Export models from the CSV file as CSV or JSON."""
    input_path = input_path or config.storage.data_dir / "models.csv"
    models = load_registry(input_path, "Run 'llm-scoring fetch' first.")

    if enabled:
        models = models.filter_enabled(True)
    if free_only:
        models = models.filter_free()

    try:
        if output_format == "json":
            text = export_models_json(models, output)
        elif output is not None:
            save_models_csv(models, output)
            text = None
        else:
            text = models_to_dataframe(models).to_csv(index=False)
    except (OSError, StorageError) as e:
        fail(f"Export failed: {e}")

    if output is not None:
        console.print(f"Exported {len(models)} models to {output}", style="green")
    else:
        click.echo(text, nl=False)


@cli.command()
@click.option(
    "--from-csv",
    "csv_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Models CSV (default: DATA_DIR/EXPERIMENT/models.csv or DATA_DIR/models.csv).",
)
@click.option("--all", "-a", "test_all", is_flag=True, help="Test all models, even disabled.")
@click.option("--free-only", "-f", is_flag=True, help="Only test free models.")
@click.option("--limit", "-l", default=0, type=int, help="Limit number of models to test.")
@click.option("--prompt", "-p", help="Prompt to send (default: read from task.md).")
@experiment_option
@click.option("--reset", is_flag=True, help="Reset evaluation state before starting.")
@click.pass_obj
def test(
    config: AppConfig,
    csv_path: Optional[Path],
    test_all: bool,
    free_only: bool,
    limit: int,
    prompt: Optional[str],
    experiment: str,
    reset: bool,
) -> None:
    """Send the task prompt to every selected model.

    Runs resume automatically: models already completed in this experiment
    are skipped. Failed models are retried on the next run.

    Examples:

        llm-scoring test --free-only --limit 5

        llm-scoring test -e poem -p "Write a haiku about rain"
    """
    data_dir = config.storage.data_dir

    if not prompt:
        try:
            prompt = load_task(data_dir, experiment).prompt
        except NotFoundError as e:
            fail(
                str(e),
                f"Optional: create {data_dir / experiment / 'evaluator-hints.md'} "
                "for evaluation guidance.",
            )

    csv_path = csv_path or default_models_csv(data_dir, experiment)
    if not csv_path.exists():
        fail(
            f"CSV file not found: {csv_path}",
            f"Run 'llm-scoring fetch' first or create {data_dir / experiment / 'models.csv'}.",
        )

    state_store = EvaluationStateStore(data_dir, experiment)
    artifacts = ArtifactStore(data_dir, experiment)
    options = RunOptions(enabled_only=not test_all, free_only=free_only, limit=limit)

    with make_client(config) as client:
        if reset:
            console.print("Resetting evaluation state...", style="yellow")
            try:
                state_store.reset_all()
            except StorageError as e:
                fail(str(e))

        models = load_registry(csv_path, "Run 'llm-scoring fetch' first.")
        candidates = select_candidates(models, options)
        if len(candidates) == 0:
            console.print("No models found matching criteria.")
            return

        orchestrator = TestOrchestrator(client, state_store, artifacts, options)
        pending, skipped = orchestrator.pending_models(models)
        if skipped:
            console.print(f"Resuming - {skipped} models already completed", style="cyan")
        if not pending:
            console.print("All models have already been tested. Use --reset to start over.")
            return

        console.print(f"Testing {len(pending)} models in experiment [cyan]{escape(experiment)}[/cyan]")
        console.print(f"Prompt: {escape(truncate_text(prompt, 60))}")

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Testing models...", total=len(pending))

            def on_result(result) -> None:
                mark = "[green]✓[/green]" if result.success else "[red]✗[/red]"
                progress.console.print(f"  {mark} {escape(result.model_id)}")
                progress.advance(task)

            try:
                summary = orchestrator.run(models, prompt, progress=on_result)
            except StorageError as e:
                fail(f"Could not record state: {e}")

    overall = state_store.get_progress_summary(len(candidates))
    console.print("\nTesting complete!", style="bold")
    console.print(
        f"  This run: {summary.success_count} successful, {summary.failed_count} failed"
    )
    console.print(
        f"  Total progress: {overall.completed}/{overall.total} ({overall.percent_complete}%)"
    )

    for result in summary.results:
        if not result.success:
            console.print(
                f"  ❌ {escape(result.model_id)}: {escape(truncate_text(result.error or '', 100))}",
                style="red",
            )

    if summary.exit_code:
        sys.exit(summary.exit_code)


@cli.command()
@experiment_option
@click.pass_obj
def status(config: AppConfig, experiment: str) -> None:
    """Show evaluation progress of an experiment."""
    store = EvaluationStateStore(config.storage.data_dir, experiment)
    summary = store.get_progress_summary()
    states = store.get_all_states()

    console.print("LLM Scoring - Evaluation Status", style="bold cyan")

    table = Table(title="Progress Summary", show_header=False)
    table.add_column("Metric", justify="left")
    table.add_column("Value", justify="right")
    table.add_row("Total models", str(summary.total))
    table.add_row("Completed", str(summary.completed))
    table.add_row("Failed", str(summary.failed))
    table.add_row("In progress", str(summary.in_progress))
    table.add_row("Pending", str(summary.pending))
    table.add_row("Progress", f"{summary.percent_complete}%")
    console.print(table)

    if not states:
        console.print("No evaluation state recorded yet.")
        return

    console.print("Model Status", style="bold")
    for model_id, state in states.items():
        console.print(f"  {STATUS_ICONS[state.status]} {escape(model_id)} - {state.status.value}")
        if state.is_failed and state.error_message:
            console.print(f"    Error: {escape(truncate_text(state.error_message, 100))}", style="red")


def _tested_model_rows(artifacts: ArtifactStore) -> list[dict[str, Any]]:
    rows = []
    for model_id in artifacts.tested_model_ids():
        total_cost = 0.0
        total_tokens = 0
        last_tested = None
        numbers = artifacts.list_test_numbers(model_id)
        for number in numbers:
            try:
                record = artifacts.load_raw_response(model_id, number)
            except StorageError as e:
                logger.warning("Skipping unreadable response %d of %s: %s", number, model_id, e)
                continue
            usage = extract_usage(record.get("response") or {})
            total_cost += float(usage.get("cost") or 0)
            total_tokens += int(usage.get("total_tokens") or 0)
            stamp = record.get("timestamp")
            if stamp and (last_tested is None or stamp > last_tested):
                last_tested = stamp
        rows.append({
            "model_id": model_id,
            "tests": len(numbers),
            "last_tested": last_tested or "Unknown",
            "path": str(artifacts.model_path(model_id)),
            "total_cost": total_cost,
            "total_tokens": total_tokens,
        })

    rows.sort(key=lambda r: r["last_tested"], reverse=True)
    return rows


@cli.command("list")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
)
@click.option("--details", "-d", is_flag=True, help="Show storage paths.")
@experiment_option
@click.pass_obj
def list_tested(config: AppConfig, output_format: str, details: bool, experiment: str) -> None:
    """List all tested models of an experiment."""
    artifacts = ArtifactStore(config.storage.data_dir, experiment)
    rows = _tested_model_rows(artifacts)

    if not rows:
        console.print(NOTHING_TESTED)
        return

    if output_format == "json":
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="Tested Models")
    table.add_column("Model ID", justify="left")
    table.add_column("Tests", justify="right")
    table.add_column("Last Tested", justify="left")
    table.add_column("Total Cost", justify="right")
    table.add_column("Cost/1K", justify="right")
    if details:
        table.add_column("Path", justify="left")

    for row in rows:
        per_1k = row["total_cost"] / row["total_tokens"] * 1000 if row["total_tokens"] else 0.0
        cells = [
            escape(row["model_id"]),
            str(row["tests"]),
            row["last_tested"],
            format_cost(row["total_cost"]),
            format_cost(per_1k),
        ]
        if details:
            cells.append(escape(row["path"]))
        table.add_row(*cells)

    console.print(table)

    grand_cost = sum(r["total_cost"] for r in rows)
    console.print(f"Total: {len(rows)} model(s)")
    console.print(f"Grand Total Cost: {format_cost(grand_cost)}")


def _print_response(record: dict[str, Any]) -> None:
    response = record.get("response") or {}
    console.print(escape(extract_message_content(response) or "(no content)"))

    usage = extract_usage(response)
    if usage:
        console.print("Token Usage:", style="bold")
        console.print(f"  Prompt tokens: {usage.get('prompt_tokens', 'N/A')}")
        console.print(f"  Completion tokens: {usage.get('completion_tokens', 'N/A')}")
        console.print(f"  Total tokens: {usage.get('total_tokens', 'N/A')}")
        if "cost" in usage:
            console.print(f"  Cost: {format_cost(float(usage['cost']))}")


@cli.command()
@click.argument("model_id")
@click.option("--test", "-t", "test_number", type=int, help="Show a specific test number.")
@click.option("--raw", "-r", is_flag=True, help="Show raw JSON records.")
@experiment_option
@click.pass_obj
def show(
    config: AppConfig,
    model_id: str,
    test_number: Optional[int],
    raw: bool,
    experiment: str,
) -> None:
    """Show stored results of a tested model.

    MODEL_ID is the model id, e.g. meta-llama/llama-3.1-8b-instruct.
    """
    artifacts = ArtifactStore(config.storage.data_dir, experiment)
    path = artifacts.model_path(model_id)
    if not path.is_dir():
        fail(f"Model not found: {model_id}", "Use 'llm-scoring list' to see all tested models.")

    console.print(f"Model: {escape(model_id)}", style="bold cyan")
    console.print(f"Path: {escape(str(path))}")

    numbers = [test_number] if test_number is not None else artifacts.list_test_numbers(model_id)
    if not numbers:
        console.print("No test data found for this model.", style="yellow")
        return

    try:
        for number in numbers:
            response = artifacts.load_raw_response(model_id, number)
            console.rule(f"Test {number}")

            try:
                prompt = artifacts.load_test_prompt(model_id, number)
            except NotFoundError:
                prompt = None
            evaluation = None
            if artifacts.is_model_evaluated(model_id, number):
                evaluation = artifacts.load_evaluation(model_id, number)

            if raw:
                for record in (prompt, response, evaluation):
                    if record is not None:
                        click.echo(json.dumps(record, indent=2, ensure_ascii=False))
                continue

            if prompt is not None:
                console.print("Prompt", style="bold")
                console.print(escape(str(prompt.get("prompt", "N/A"))))
            console.print("Response", style="bold")
            _print_response(response)
            if evaluation is not None:
                score = (evaluation.get("evaluation") or {}).get("overall_score", 0)
                style = score_style(score)
                console.print(f"Evaluation: [{style}]{score}%[/{style}]")

        if test_number is None and raw:
            conversation = artifacts.load_conversation(model_id)
            if conversation is not None:
                click.echo(json.dumps(conversation, indent=2, ensure_ascii=False))
    except NotFoundError as e:
        fail(str(e))
    except StorageError as e:
        fail(f"Could not read results: {e}")


def _evaluate_model(
    evaluator: ContentEvaluator,
    artifacts: ArtifactStore,
    model_id: str,
    test_number: Optional[int],
    content_type: Optional[str],
    raw: bool,
) -> None:
    """Evaluate one stored response and persist the result."""
    numbers = artifacts.list_test_numbers(model_id)
    if not numbers:
        raise NotFoundError(f"No test data found for model {model_id}")

    number = test_number if test_number is not None else numbers[-1]
    if number not in numbers:
        raise NotFoundError(
            f"Test {number} not found for model {model_id}. "
            f"Available tests: {', '.join(str(n) for n in numbers)}"
        )

    prompt_record = artifacts.load_test_prompt(model_id, number)
    response_record = artifacts.load_raw_response(model_id, number)
    model = Model(
        id=str(response_record.get("model_id") or model_id),
        name=str(response_record.get("model_name") or model_id),
    )
    content = extract_message_content(response_record.get("response") or {})

    console.print(f"Evaluating [cyan]{escape(model.id)}[/cyan] (test {number})")
    result = evaluator.evaluate(
        content,
        str(prompt_record.get("prompt", "")),
        model.id,
        model.name,
        content_type,
    )

    if raw:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_evaluation(result)

    saved = artifacts.save_evaluation(
        model, result.evaluation_dict(), number, **result.record_extras()
    )
    console.print(f"✅ Saved: {escape(str(saved))}", style="green")


@cli.command()
@click.argument("model_id", required=False)
@click.option("--test", "-t", "test_number", type=int, help="Test number to evaluate (default: latest).")
@click.option("--model", "-m", "evaluator_model", help="Evaluator model (default: EVALUATOR_MODEL).")
@click.option("--raw", "-r", is_flag=True, help="Show raw JSON output.")
@click.option("--all", "-a", "evaluate_all", is_flag=True, help="Evaluate all unevaluated models.")
@experiment_option
@click.pass_obj
def evaluate(
    config: AppConfig,
    model_id: Optional[str],
    test_number: Optional[int],
    evaluator_model: Optional[str],
    raw: bool,
    evaluate_all: bool,
    experiment: str,
) -> None:
    """Evaluate stored model responses with a judge model.

    Without MODEL_ID (or with --all) every tested model that has no
    evaluation yet is evaluated.
    """
    data_dir = config.storage.data_dir
    artifacts = ArtifactStore(data_dir, experiment)

    try:
        content_type = load_task(data_dir, experiment).content_type
    except NotFoundError:
        content_type = None

    if evaluate_all or model_id is None:
        model_ids = artifacts.unevaluated_model_ids()
        if not model_ids:
            console.print("✅ All models have been evaluated!", style="green")
            return
        console.print(f"Found {len(model_ids)} unevaluated model(s)")
    else:
        if not artifacts.model_path(model_id).is_dir():
            fail(f"Model not found: {model_id}", "Use 'llm-scoring list' to see all tested models.")
        model_ids = [model_id]

    with make_client(config) as client:
        evaluator = ContentEvaluator(
            client,
            evaluator_model or config.evaluator.model,
            hints=load_evaluator_hints(data_dir, experiment),
        )

        success_count = 0
        failed_count = 0
        for current in model_ids:
            try:
                _evaluate_model(evaluator, artifacts, current, test_number, content_type, raw)
                success_count += 1
            except ScoringError as e:
                console.print(f"❌ Failed {escape(current)}: {escape(str(e))}", style="red")
                failed_count += 1

    if len(model_ids) > 1:
        console.print("\nEvaluation complete!", style="bold")
        console.print(f"  ✓ Success: {success_count}", style="green")
        console.print(f"  ✗ Failed: {failed_count}", style="red")

    if failed_count:
        sys.exit(1)


@cli.command()
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(list(REPORT_FORMATS)),
    default="cli",
    show_default=True,
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (HTML default: DATA_DIR/EXPERIMENT/results.html).",
)
@experiment_option
@click.pass_obj
def report(config: AppConfig, output_format: str, output: Optional[Path], experiment: str) -> None:
    """Generate an evaluation report."""
    artifacts = ArtifactStore(config.storage.data_dir, experiment)
    generator = ReportGenerator(artifacts)
    data = generator.collect()

    if data["total_models"] == 0:
        console.print(NOTHING_TESTED)
        return

    if output_format == "cli" and output is None:
        generator.print_cli(data, console)
        return

    if output_format == "html" and output is None:
        output = config.storage.data_dir / experiment / "results.html"

    try:
        result = generator.generate(output_format, str(output) if output else None, report=data)
    except StorageError as e:
        fail(f"Failed to generate report: {e}")

    if output is None:
        click.echo(result)
        return

    stats = data["statistics"]
    console.print(f"Report saved to: {escape(result)}", style="green")
    console.print(f"  Total Models:  {stats['total_models']}")
    console.print(f"  Evaluated:     {stats['evaluated_count']}")
    console.print(f"  Average Score: {stats['average_score']:.1f}%")
    console.print(f"  Highest Score: {stats['highest_score']:.1f}%")


@cli.command()
@click.option("--json", "-j", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--detailed", is_flag=True, help="Show the score distribution.")
@experiment_option
@click.pass_obj
def stats(config: AppConfig, as_json: bool, detailed: bool, experiment: str) -> None:
    """Display evaluation statistics."""
    generator = ReportGenerator(ArtifactStore(config.storage.data_dir, experiment))
    data = generator.collect()

    if data["total_models"] == 0:
        console.print(NOTHING_TESTED)
        return

    if as_json:
        click.echo(json.dumps(generator.stats_summary(data), indent=2))
        return

    s = data["statistics"]
    console.rule("[bold]Evaluation Statistics")

    overview = Table(title="Overview", show_header=False)
    overview.add_column("Metric", justify="left")
    overview.add_column("Value", justify="right")
    overview.add_row("Total Models Tested", str(s["total_models"]))
    overview.add_row("Models Evaluated", str(s["evaluated_count"]))
    overview.add_row("Pending Evaluation", str(s["total_models"] - s["evaluated_count"]))
    console.print(overview)

    if s["evaluated_count"] > 0:
        scores = Table(title="Score Statistics", show_header=False)
        scores.add_column("Metric", justify="left")
        scores.add_column("Value", justify="right")
        scores.add_row("Average Score", f"{s['average_score']:.1f}%")
        scores.add_row("Highest Score", f"{s['highest_score']:.1f}%")
        scores.add_row("Lowest Score", f"{s['lowest_score']:.1f}%")
        scores.add_row("Score Std Deviation", f"{s['std_deviation']:.2f}")
        console.print(scores)

        criteria = Table(title="Criterion Breakdown")
        criteria.add_column("Criterion", justify="left")
        criteria.add_column("Average Score", justify="right")
        criteria.add_column("Weight", justify="right")
        criteria.add_row("Logic", f"{s['avg_logic']:.1f}%", "40%")
        criteria.add_row("Syntax", f"{s['avg_syntax']:.1f}%", "30%")
        criteria.add_row("Output", f"{s['avg_output']:.1f}%", "30%")
        console.print(criteria)

    usage = Table(title="Resource Usage", show_header=False)
    usage.add_column("Metric", justify="left")
    usage.add_column("Value", justify="right")
    usage.add_row("Total Tokens", f"{s['total_tokens']:,}")
    usage.add_row("Total Cost", f"${s['total_cost']:.4f}")
    usage.add_row("Avg Cost/1K Tokens", f"${s['avg_cost_per_1k']:.4f}")
    console.print(usage)

    if detailed and s["evaluated_count"] > 0:
        generator.print_distribution(data, console)

    console.print(f"Generated at: {data['generated_at']}", style="dim")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
