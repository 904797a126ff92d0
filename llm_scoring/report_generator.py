"""
Report Generator Module.

Aggregates stored test results and evaluations of an experiment into
reports. Supports multiple output formats: CLI, HTML, JSON, Markdown.
"""

import html
import io
import json
import logging
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots
from rich.console import Console
from rich.table import Table

from llm_scoring.exceptions import StorageError
from llm_scoring.model_client import extract_usage
from llm_scoring.storage import ArtifactStore
from llm_scoring.utils import calculate_statistics, timestamp, truncate_text

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("cli", "html", "json", "markdown")
CRITERIA = ("logic", "syntax", "output")

# Lower bounds, checked in order
SCORE_BUCKETS = (
    ("excellent", 80),
    ("good", 60),
    ("fair", 40),
    ("poor", 0),
)


def score_bucket(score: float) -> str:
    """Name of the distribution bucket a score falls in."""
    for name, lower in SCORE_BUCKETS:
        if score >= lower:
            return name
    return "poor"


def score_style(score: float) -> str:
    """Rich style for a score."""
    return {
        "excellent": "green",
        "good": "yellow",
        "fair": "red",
        "poor": "magenta",
    }[score_bucket(score)]


class ReportGenerator:
    """
    Generates evaluation reports for an experiment.

    Reads raw responses and evaluations through an `ArtifactStore`; nothing
    is cached between calls.
    """

    def __init__(self, artifact_store: ArtifactStore):
        """Initialize the report generator."""
        self.artifacts = artifact_store

    # ------------------------------------------------------------------
    # Data collection
    # ------------------------------------------------------------------

    def _model_row(self, model_id: str) -> dict[str, Any]:
        """Latest scores and summed usage of one tested model."""
        total_tokens = 0
        total_cost = 0.0
        test_numbers = self.artifacts.list_test_numbers(model_id)

        for number in test_numbers:
            try:
                record = self.artifacts.load_raw_response(model_id, number)
            except StorageError as e:
                logger.warning("Skipping unreadable response %d of %s: %s", number, model_id, e)
                continue
            usage = extract_usage(record.get("response") or {})
            total_tokens += int(usage.get("total_tokens") or 0)
            total_cost += float(usage.get("cost") or 0)

        evaluation: dict[str, Any] = {}
        evaluation_numbers = self.artifacts.list_evaluation_numbers(model_id)
        if evaluation_numbers:
            try:
                record = self.artifacts.load_evaluation(model_id, evaluation_numbers[-1])
                evaluation = record.get("evaluation") or {}
            except StorageError as e:
                logger.warning("Skipping unreadable evaluation of %s: %s", model_id, e)

        return {
            "model_id": model_id,
            "test_count": len(test_numbers),
            "overall_score": evaluation.get("overall_score", 0),
            "logic_score": (evaluation.get("logic") or {}).get("score", 0),
            "syntax_score": (evaluation.get("syntax") or {}).get("score", 0),
            "output_score": (evaluation.get("output") or {}).get("score", 0),
            "total_tokens": total_tokens,
            "total_cost": total_cost,
        }

    def compute_statistics(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Summary statistics over the evaluated models (overall score > 0).

        Args:
            rows: Model rows from `collect`

        Returns:
            Statistics dictionary
        """
        evaluated = [r for r in rows if r["overall_score"] > 0]
        scores = calculate_statistics([float(r["overall_score"]) for r in evaluated])

        def average(key: str) -> float:
            if not evaluated:
                return 0.0
            return sum(r[key] for r in evaluated) / len(evaluated)

        total_tokens = sum(r["total_tokens"] for r in evaluated)
        total_cost = sum(r["total_cost"] for r in evaluated)

        distribution = {name: 0 for name, _ in SCORE_BUCKETS}
        for row in evaluated:
            distribution[score_bucket(row["overall_score"])] += 1

        return {
            "total_models": len(rows),
            "evaluated_count": len(evaluated),
            "average_score": scores.mean,
            "highest_score": scores.max_val,
            "lowest_score": scores.min_val,
            "std_deviation": scores.std_dev,
            "confidence_interval_95": list(scores.confidence_interval_95),
            "avg_logic": average("logic_score"),
            "avg_syntax": average("syntax_score"),
            "avg_output": average("output_score"),
            "total_tokens": total_tokens,
            "total_cost": total_cost,
            "avg_cost_per_1k": (total_cost / total_tokens * 1000) if total_tokens > 0 else 0.0,
            "distribution": distribution,
        }

    def collect(self) -> dict[str, Any]:
        """
        Gather report data for every tested model.

        Returns:
            Report dictionary with models sorted by overall score, best first
        """
        rows = [self._model_row(model_id) for model_id in self.artifacts.tested_model_ids()]
        rows.sort(key=lambda r: r["overall_score"], reverse=True)

        return {
            "generated_at": timestamp(),
            "experiment": self.artifacts.experiment,
            "total_models": len(rows),
            "models": rows,
            "statistics": self.compute_statistics(rows),
        }

    def stats_summary(self, report: dict[str, Any]) -> dict[str, Any]:
        """Compact, rounded statistics for machine consumption."""
        stats = report["statistics"]
        return {
            "generated_at": report["generated_at"],
            "experiment": report["experiment"],
            "total_models": stats["total_models"],
            "evaluated_count": stats["evaluated_count"],
            "score_statistics": {
                "average": round(stats["average_score"], 2),
                "highest": round(stats["highest_score"], 2),
                "lowest": round(stats["lowest_score"], 2),
                "std_deviation": round(stats["std_deviation"], 2),
            },
            "criterion_breakdown": {
                "logic": round(stats["avg_logic"], 2),
                "syntax": round(stats["avg_syntax"], 2),
                "output": round(stats["avg_output"], 2),
            },
            "resource_usage": {
                "total_tokens": stats["total_tokens"],
                "total_cost": round(stats["total_cost"], 6),
                "cost_per_1k_tokens": round(stats["avg_cost_per_1k"], 4),
            },
            "distribution": stats["distribution"],
        }

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def generate(
        self,
        format: str = "cli",
        output_path: Optional[str] = None,
        report: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Generate a report.

        Args:
            format: Output format (cli, html, json, markdown)
            output_path: Path to save the report
            report: Pre-collected report data

        Returns:
            Path to the generated report, or its content when not saved
        """
        if format not in REPORT_FORMATS:
            raise ValueError(f"Unsupported format: {format}")

        report = report or self.collect()

        if format == "html":
            content = self._generate_html(report)
        elif format == "json":
            content = self._generate_json(report)
        elif format == "markdown":
            content = self._generate_markdown(report)
        else:
            content = self._generate_cli_text(report)

        if output_path:
            output_path = Path(output_path)
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                with open(output_path, "w", encoding="utf-8") as f:
                    f.write(content)
            except OSError as e:
                raise StorageError(f"Failed to write report {output_path}: {e}") from e
            return str(output_path)

        return content

    def print_cli(self, report: dict[str, Any], console: Console) -> None:
        """Print the report as rich tables."""
        stats = report["statistics"]

        console.rule("[bold]LLM Model Evaluation Report")
        console.print(f"Experiment: [cyan]{report['experiment']}[/cyan]")
        console.print()

        summary = Table(title="Summary", show_header=False)
        summary.add_column("Metric", justify="left")
        summary.add_column("Value", justify="right")
        summary.add_row("Total Models Tested", str(stats["total_models"]))
        summary.add_row("Models with Evaluations", str(stats["evaluated_count"]))
        if stats["evaluated_count"] > 0:
            summary.add_row("Average Overall Score", f"{stats['average_score']:.1f}%")
            summary.add_row("Highest Score", f"{stats['highest_score']:.1f}%")
            summary.add_row("Lowest Score", f"{stats['lowest_score']:.1f}%")
            summary.add_row("Avg Logic", f"{stats['avg_logic']:.1f}%")
            summary.add_row("Avg Syntax", f"{stats['avg_syntax']:.1f}%")
            summary.add_row("Avg Output", f"{stats['avg_output']:.1f}%")
        summary.add_row("Total Tokens", f"{stats['total_tokens']:,}")
        summary.add_row("Total Cost", f"${stats['total_cost']:.4f}")
        summary.add_row("Avg Cost/1K Tokens", f"${stats['avg_cost_per_1k']:.4f}")
        console.print(summary)

        models = report["models"]
        if not models:
            console.print("No models with evaluations found.", style="yellow")
            return

        table = Table(title="Model Rankings")
        table.add_column("Rank", justify="right")
        table.add_column("Model ID", justify="left")
        table.add_column("Score", justify="right")
        table.add_column("Logic", justify="right")
        table.add_column("Syntax", justify="right")
        table.add_column("Output", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right")

        for rank, row in enumerate(models, start=1):
            style = score_style(row["overall_score"])
            table.add_row(
                f"#{rank}",
                truncate_text(row["model_id"], 40),
                f"[{style}]{row['overall_score']}%[/{style}]",
                f"{row['logic_score']}%",
                f"{row['syntax_score']}%",
                f"{row['output_score']}%",
                f"{row['total_tokens']:,}",
                f"${row['total_cost']:.4f}",
            )
        console.print(table)

        evaluated = [r for r in models if r["overall_score"] > 0]
        if len(evaluated) >= 3:
            console.print("\nTop Performers", style="bold")
            for medal, row in zip(("🥇", "🥈", "🥉"), evaluated[:3]):
                console.print(
                    f"  {medal} [green]{row['model_id']}[/green]  "
                    f"Score: {row['overall_score']}% | Logic: {row['logic_score']}% | "
                    f"Syntax: {row['syntax_score']}% | Output: {row['output_score']}%"
                )

        if evaluated:
            console.print("\nAreas for Improvement", style="bold")
            for criterion in CRITERIA:
                key = f"{criterion}_score"
                lowest = min(evaluated, key=lambda r: r[key])
                console.print(f"  {criterion.title()}: {lowest['model_id']} ({lowest[key]}%)")

        console.print(f"\nReport generated at: {report['generated_at']}", style="dim")

    def print_distribution(self, report: dict[str, Any], console: Console) -> None:
        """Print the score distribution as a bar chart."""
        distribution = report["statistics"]["distribution"]
        total = sum(distribution.values())
        if total == 0:
            return

        labels = {
            "excellent": "Excellent (80%+)",
            "good": "Good (60-79%)",
            "fair": "Fair (40-59%)",
            "poor": "Poor (<40%)",
        }
        console.print("Score Distribution", style="bold")
        for name, count in distribution.items():
            bar = "█" * int(count / total * 20)
            console.print(f"  {labels[name]:<18} [green]{bar}[/green] {count}")

    def _generate_cli_text(self, report: dict[str, Any]) -> str:
        """Render the CLI report to plain text."""
        console = Console(file=io.StringIO(), record=True, width=120)
        self.print_cli(report, console)
        return console.export_text()

    def _create_score_chart(self, models: list[dict[str, Any]]) -> go.Figure:
        """Create overall score comparison chart."""
        names = [m["model_id"] for m in models]
        scores = [m["overall_score"] for m in models]

        fig = go.Figure(data=[
            go.Bar(x=names, y=scores, marker_color="#667eea")
        ])
        fig.update_layout(
            title="Overall Score by Model",
            yaxis_title="Score (%)",
            xaxis_title="Model",
            yaxis=dict(range=[0, 100]),
        )

        return fig

    def _create_criteria_chart(self, models: list[dict[str, Any]]) -> go.Figure:
        """Create per-criterion comparison chart."""
        names = [m["model_id"] for m in models]

        fig = make_subplots(
            rows=1, cols=2,
            subplot_titles=("Criterion Scores (%)", "Total Tokens")
        )

        for criterion in CRITERIA:
            fig.add_trace(
                go.Bar(
                    x=names,
                    y=[m[f"{criterion}_score"] for m in models],
                    name=criterion.title(),
                ),
                row=1, col=1
            )
        fig.add_trace(
            go.Bar(x=names, y=[m["total_tokens"] for m in models], name="Tokens"),
            row=1, col=2
        )

        fig.update_layout(title="Criterion Breakdown", barmode="group")

        return fig

    def _generate_html(self, report: dict[str, Any]) -> str:
        """Generate HTML report."""
        models = report["models"]
        charts_html = []

        if models:
            for chart in (self._create_score_chart(models), self._create_criteria_chart(models)):
                charts_html.append(chart.to_html(full_html=False, include_plotlyjs=False))

        summary_html = self._create_summary(report["statistics"])
        rankings_html = self._create_rankings_table(models)
        experiment = html.escape(str(report["experiment"]))

        page = f"""
<!DOCTYPE html>
<html>
<head>
    <title>LLM Evaluation Report - {experiment}</title>
    <script src="https://cdn.plot.ly/plotly-latest.min.js"></script>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
            background: #f5f5f5;
        }}
        .header {{
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            color: white;
            padding: 30px;
            border-radius: 10px;
            margin-bottom: 20px;
        }}
        .card {{
            background: white;
            border-radius: 10px;
            padding: 20px;
            margin-bottom: 20px;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
        }}
        table {{
            width: 100%;
            border-collapse: collapse;
        }}
        th, td {{
            padding: 12px;
            text-align: left;
            border-bottom: 1px solid #eee;
        }}
        th {{
            background: #f8f9fa;
            font-weight: 600;
        }}
        .metric {{
            display: inline-block;
            background: #e3f2fd;
            padding: 5px 10px;
            border-radius: 5px;
            margin: 5px;
        }}
        .score-excellent {{ color: #2e7d32; font-weight: 600; }}
        .score-good {{ color: #f9a825; font-weight: 600; }}
        .score-fair {{ color: #ef6c00; font-weight: 600; }}
        .score-poor {{ color: #c62828; font-weight: 600; }}
    </style>
</head>
<body>
    <div class="header">
        <h1>LLM Evaluation Report</h1>
        <p>Experiment: {experiment}</p>
        <p>Generated: {html.escape(str(report['generated_at']))}</p>
        <p>Models: {report['total_models']}</p>
    </div>

    <div class="card">
        <h2>Summary</h2>
        {summary_html}
    </div>

    <div class="card">
        <h2>Rankings</h2>
        {rankings_html}
    </div>

    {''.join(f'<div class="card">{c}</div>' for c in charts_html)}

    <div class="card">
        <h2>Detailed Results</h2>
        <details>
            <summary>View Raw JSON</summary>
            <pre>{html.escape(json.dumps(report, indent=2, default=str))}</pre>
        </details>
    </div>
</body>
</html>
"""
        return page

    def _create_rankings_table(self, models: list[dict[str, Any]]) -> str:
        """Create rankings table HTML."""
        if not models:
            return "<p>No models with evaluations found</p>"

        rows = "<table><tr><th>Rank</th><th>Model</th><th>Score</th><th>Logic</th>"
        rows += "<th>Syntax</th><th>Output</th><th>Tests</th><th>Tokens</th><th>Cost</th></tr>"

        for rank, m in enumerate(models, start=1):
            bucket = score_bucket(m["overall_score"])
            rows += (
                f"<tr><td>#{rank}</td><td>{html.escape(m['model_id'])}</td>"
                f"<td class='score-{bucket}'>{m['overall_score']}%</td>"
                f"<td>{m['logic_score']}%</td><td>{m['syntax_score']}%</td>"
                f"<td>{m['output_score']}%</td><td>{m['test_count']}</td>"
                f"<td>{m['total_tokens']:,}</td><td>${m['total_cost']:.4f}</td></tr>"
            )

        rows += "</table>"
        return rows

    def _create_summary(self, stats: dict[str, Any]) -> str:
        """Create summary HTML."""
        summary = f"<p><strong>Models tested:</strong> {stats['total_models']}</p>"
        summary += f"<p><strong>Models evaluated:</strong> {stats['evaluated_count']}</p>"

        if stats["evaluated_count"] > 0:
            summary += f"<span class='metric'>Average: {stats['average_score']:.1f}%</span>"
            summary += f"<span class='metric'>Highest: {stats['highest_score']:.1f}%</span>"
            summary += f"<span class='metric'>Lowest: {stats['lowest_score']:.1f}%</span>"
            summary += f"<span class='metric'>Std dev: {stats['std_deviation']:.2f}</span>"

        summary += f"<span class='metric'>Tokens: {stats['total_tokens']:,}</span>"
        summary += f"<span class='metric'>Cost: ${stats['total_cost']:.4f}</span>"

        return summary

    def _generate_json(self, report: dict[str, Any]) -> str:
        """Generate JSON report."""
        return json.dumps(report, indent=2, default=str)

    def _generate_markdown(self, report: dict[str, Any]) -> str:
        """Generate Markdown report."""
        stats = report["statistics"]
        md = f"""# LLM Evaluation Report

**Experiment:** {report['experiment']}
**Generated:** {report['generated_at']}
**Models:** {report['total_models']}

## Summary

- Models tested: {stats['total_models']}
- Models evaluated: {stats['evaluated_count']}
- Average score: {stats['average_score']:.1f}%
- Highest score: {stats['highest_score']:.1f}%
- Lowest score: {stats['lowest_score']:.1f}%
- Total tokens: {stats['total_tokens']:,}
- Total cost: ${stats['total_cost']:.4f}

## Rankings

| Rank | Model | Score | Logic | Syntax | Output | Tokens | Cost |
|------|-------|-------|-------|--------|--------|--------|------|
"""

        for rank, m in enumerate(report["models"], start=1):
            md += f"| {rank} | {m['model_id']} | {m['overall_score']}% | "
            md += f"{m['logic_score']}% | {m['syntax_score']}% | {m['output_score']}% | "
            md += f"{m['total_tokens']:,} | ${m['total_cost']:.4f} |\n"

        md += "\n## Score Distribution\n\n"
        for name, count in stats["distribution"].items():
            md += f"- {name.title()}: {count}\n"

        return md

    def create_comparison_dataframe(self, report: Optional[dict[str, Any]] = None) -> pd.DataFrame:
        """
        Create a pandas DataFrame for comparison.

        Args:
            report: Report data, collected when omitted

        Returns:
            DataFrame with one row per tested model
        """
        report = report or self.collect()
        columns = [
            "model_id", "test_count", "overall_score", "logic_score",
            "syntax_score", "output_score", "total_tokens", "total_cost",
        ]
        return pd.DataFrame(report["models"], columns=columns)
