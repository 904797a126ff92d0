"""
Task definitions.

A task lives in ``{data_dir}/{experiment}/task.md`` (or ``{data_dir}/task.md``)::

    # Task Definition
    ## Task Prompt
    ```markdown
    Your prompt here
    ```
    ## Content Type
    `PHP code`

Optional judge guidance goes in ``evaluator-hints.md`` next to it.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from llm_scoring.exceptions import NotFoundError

TASK_FILE = "task.md"
HINTS_FILE = "evaluator-hints.md"
MODELS_CSV = "models.csv"

PROMPT_BLOCK = re.compile(r"```markdown\s*\n(.*?)\n\s*```", re.DOTALL)
CONTENT_TYPE = re.compile(r"^##\s*Content Type\s*\n+\s*`([^`]+)`", re.MULTILINE | re.IGNORECASE)

TASK_TEMPLATE = """# Task Definition
## Task Prompt
```markdown
Your prompt here
```
## Content Type
`type`"""


@dataclass
class TaskDefinition:
    """Prompt and optional content type of an experiment."""

    prompt: str
    content_type: Optional[str] = None
    source: Optional[Path] = None


def experiment_file(data_dir: Path, experiment: str, filename: str) -> Path:
    """Experiment-specific file if it exists, else the shared one in `data_dir`."""
    data_dir = Path(data_dir)
    specific = data_dir / experiment / filename
    return specific if specific.exists() else data_dir / filename


def parse_task(text: str) -> TaskDefinition:
    """Extract prompt and content type from task markdown."""
    match = PROMPT_BLOCK.search(text)
    prompt = match.group(1).strip() if match else text.strip()

    content_type = CONTENT_TYPE.search(text)
    return TaskDefinition(
        prompt=prompt,
        content_type=content_type.group(1).strip() if content_type else None,
    )


def load_task(data_dir: Path, experiment: str = "default") -> TaskDefinition:
    """
    Load the task for an experiment.

    Raises:
        NotFoundError: If the task file is missing, empty or has no prompt
    """
    path = experiment_file(data_dir, experiment, TASK_FILE)
    suggested = Path(data_dir) / experiment / TASK_FILE

    if not path.exists():
        raise NotFoundError(
            f"Task file not found. Create {suggested} with:\n{TASK_TEMPLATE}"
        )

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise NotFoundError(f"Task file is empty. Edit {suggested} to define your task prompt.")

    task = parse_task(text)
    if not task.prompt:
        raise NotFoundError(f"No prompt found in {path}")

    task.source = path
    return task


def load_evaluator_hints(data_dir: Path, experiment: str = "default") -> Optional[str]:
    """Task-specific judge guidance, or None when absent or empty."""
    path = experiment_file(data_dir, experiment, HINTS_FILE)
    if not path.exists():
        return None
    hints = path.read_text(encoding="utf-8").strip()
    return hints or None


def default_models_csv(data_dir: Path, experiment: str = "default") -> Path:
    """The experiment's models.csv, falling back to the shared one."""
    return experiment_file(data_dir, experiment, MODELS_CSV)
