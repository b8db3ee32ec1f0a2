"""Command line interface for the task supervisor."""

import asyncio
import logging
import sys
from typing import Optional

import click
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.tree import Tree

from .config.supervisor_config import SupervisorConfig, configure_logging
from .models.progress_models import ProgressUpdate
from .models.supervisor_models import ExecutionMode, MaxComplexity, UnifiedResponse
from .models.task_models import TaskNode, TaskStatus
from .services.factory import build_supervisor
from .services.supervisor_service import new_session_id

logger = logging.getLogger(__name__)

_STATUS_STYLES = {
    TaskStatus.PLANNED: "dim",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.BLOCKED: "magenta",
    TaskStatus.SKIPPED: "dim",
}


def build_rich_tree(node: TaskNode, tree: Optional[Tree] = None) -> Tree:
    """Render a breakdown snapshot as a rich Tree."""
    style = _STATUS_STYLES.get(node.status, "white")
    label = f"[{style}]{node.status.value}[/{style}] {node.description}"
    branch = tree.add(label) if tree is not None else Tree(label)
    for subtask in node.subtasks:
        build_rich_tree(subtask, branch)
    return branch


def render_response(console: Console, response: UnifiedResponse) -> None:
    if response.delegate_back:
        console.print(
            Panel(
                response.delegation_guidance or response.next_response,
                title="Delegated back",
                border_style="cyan",
            )
        )
        return

    console.print(Panel(Markdown(response.next_response), title="Result", border_style="green"))

    if response.planned_steps:
        console.print("[bold]Planned steps[/bold]")
        for index, step in enumerate(response.planned_steps, start=1):
            console.print(f"  {index}. {step}")

    if response.hierarchical_breakdown is not None:
        console.print(build_rich_tree(response.hierarchical_breakdown))

    console.print(
        f"[dim]strategy={response.strategy.value} "
        f"complexity={response.complexity.value} "
        f"progress={response.progress.current}/{response.progress.total} "
        f"time={response.execution_time}ms[/dim]"
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Task supervisor - adaptive strategy selection and hierarchical execution."""
    config = SupervisorConfig()
    configure_logging("DEBUG" if verbose else config.log_level)

    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    ctx.obj = {"config": config, "verbose": verbose}


@main.command()
@click.argument("task")
@click.option("--context", "conversation_context", default="", help="Conversation so far")
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in ExecutionMode]),
    default=ExecutionMode.AUTO.value,
    help="auto/execute run the task, plan only describes it",
)
@click.option(
    "--max-complexity",
    type=click.Choice([cap.value for cap in MaxComplexity]),
    default=None,
    help="Cap the strategy for this run",
)
@click.pass_context
def run(
    ctx: click.Context,
    task: str,
    conversation_context: str,
    mode: str,
    max_complexity: Optional[str],
) -> None:
    """Run TASK and print progress and the final answer."""
    config: SupervisorConfig = ctx.obj["config"]
    console = Console()

    try:
        response = asyncio.run(
            _run_task(
                console,
                config,
                task,
                conversation_context or task,
                ExecutionMode(mode),
                MaxComplexity(max_complexity) if max_complexity else None,
            )
        )
    except KeyboardInterrupt:
        return
    except Exception as e:
        if ctx.obj["verbose"]:
            logger.exception("CLI error")
        else:
            click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    render_response(console, response)


async def _run_task(
    console: Console,
    config: SupervisorConfig,
    task: str,
    conversation_context: str,
    execution_mode: ExecutionMode,
    max_complexity: Optional[MaxComplexity],
) -> UnifiedResponse:
    supervisor = build_supervisor(config)
    session_id = new_session_id()

    def show_progress(update: ProgressUpdate) -> None:
        console.print(f"[cyan]{update.progress:3d}%[/cyan] {update.message}")

    supervisor.progress_bus.on_progress(session_id, show_progress)
    supervisor.context_store.start()
    try:
        return await supervisor.execute(
            task,
            conversation_context,
            execution_mode,
            session_id=session_id,
            max_complexity=max_complexity,
        )
    finally:
        supervisor.progress_bus.cleanup_session(session_id)
        await supervisor.context_store.stop()


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Serve the HTTP/SSE API."""
    uvicorn.run("task_supervisor.api.app:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    main()
