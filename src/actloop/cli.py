"""CLI entry point for actloop."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from actloop.config import ActloopConfig

if TYPE_CHECKING:
    from actloop.agent.state import RunResult
    from actloop.llm.provider import ReasoningProvider
    from actloop.session.wire import Wire, WireEvent

app = typer.Typer(
    name="actloop",
    help="Run a goal through an observe, think, act, learn agent loop.",
    no_args_is_help=True,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _dry_run_provider(goal: str) -> ReasoningProvider:
    """Offline provider: one think-tool step, one learning, then done."""
    from actloop.llm.provider import ScriptedProvider

    think = {
        "action": {
            "type": "tool_use",
            "target": "think",
            "parameters": {"thought": f"Plan how to approach: {goal}"},
        }
    }
    learning = {"success": True, "insights": ["Dry run step recorded"], "adjustments": []}
    return ScriptedProvider.of(json.dumps(think), json.dumps(learning))


@app.command()
def run(
    goal: str = typer.Argument(help="What the agent should accomplish."),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", "-n", min=1, help="Iteration bound (default: from env/config)."
    ),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
    guard_rails: bool = typer.Option(
        False, "--guard-rails", "-g", help="Install the default guard rail hooks."
    ),
    human_in_loop: bool = typer.Option(
        False, "--human-in-loop", help="Flag critical actions for approval."
    ),
    skills_dir: str | None = typer.Option(
        None, "--skills-dir", "-s", help="Directory of markdown skills."
    ),
    cwd: str = typer.Option(
        ".", "--cwd", help="Root directory for the builtin file tools."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Use a scripted provider instead of a real model."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
) -> None:
    """Run GOAL through the agent loop and print a summary."""
    setup_logging(verbose)

    config = ActloopConfig.load(config_file)
    if model:
        config.llm.model = model
    if max_iterations is not None:
        config.loop.max_iterations = max_iterations
    if guard_rails:
        config.loop.enable_guard_rails = True
    if human_in_loop:
        config.loop.enable_human_in_loop = True
    if skills_dir:
        config.skills_dir = skills_dir

    workdir = os.path.abspath(cwd)
    if not os.path.isdir(workdir):
        typer.echo(f"Error: Directory not found: {workdir}", err=True)
        raise typer.Exit(1)

    result = asyncio.run(_run(goal, config, workdir, dry_run))
    _print_summary(result)
    if result.terminated_early:
        raise typer.Exit(1)


async def _run(goal: str, config: ActloopConfig, cwd: str, dry_run: bool) -> RunResult:
    from actloop.agent.loop import Orchestrator
    from actloop.capability.builtin import builtin_tools
    from actloop.llm.provider import create_provider
    from actloop.session.wire import Wire
    from actloop.skill import discover_skills

    if dry_run:
        provider = _dry_run_provider(goal)
    else:
        provider = create_provider(
            model=config.llm.model,
            temperature=config.llm.temperature,
            timeout=config.llm.timeout,
        )

    wire = Wire()
    queue = wire.subscribe()
    consumer = asyncio.create_task(_consume_wire(wire, queue))

    orchestrator = Orchestrator.from_config(
        provider,
        config,
        tools=builtin_tools(cwd),
        skills=discover_skills(config.skills_dir),
        wire=wire,
    )
    names = orchestrator.registry.names()
    console.print(f"[bold]Capabilities:[/bold] {escape(', '.join(names)) or '(none)'}")
    console.print("---")

    try:
        return await orchestrator.run(goal)
    finally:
        wire.close()
        await consumer


async def _consume_wire(wire: Wire, queue: asyncio.Queue[WireEvent | None]) -> None:
    while True:
        event = await queue.get()
        if event is None:
            break
        _render_event(event)
    wire.unsubscribe(queue)


def _render_event(event: WireEvent) -> None:
    from actloop.session.wire import EventType

    d = event.data
    if event.type == EventType.ITERATION_BEGIN:
        console.print(f"\n[bold cyan]Iteration {d.get('iteration')}[/bold cyan]")

    elif event.type == EventType.THINK:
        reasoning = str(d.get("reasoning", "")).strip()
        confidence = d.get("confidence", 0.0)
        console.print(
            f"  [dim]think[/dim] ({confidence:.0%}) {escape(reasoning[:200])}"
        )

    elif event.type == EventType.ACT:
        action = d.get("action", {})
        console.print(
            f"  [green]act[/green] {action.get('type')} -> {escape(str(action.get('target')))}"
        )

    elif event.type == EventType.LEARN:
        insights = "; ".join(d.get("insights", []))
        console.print(f"  [magenta]learn[/magenta] {escape(insights)}")

    elif event.type == EventType.VETO:
        console.print(f"  [yellow]vetoed by {escape(str(d.get('hook')))}[/yellow]")

    elif event.type == EventType.HOOK_MESSAGE:
        hook = escape(str(d.get("hook")))
        console.print(f"  [yellow]hook {hook}:[/yellow] {escape(str(d.get('message')))}")

    elif event.type == EventType.APPROVAL_REQUIRED:
        action = d.get("action", {})
        console.print(
            f"  [bold yellow]approval required[/bold yellow] for "
            f"{escape(str(action.get('target')))} ({escape(str(d.get('hook')))})"
        )

    elif event.type == EventType.GOAL_ACHIEVED:
        console.print("\n[bold green]Goal achieved[/bold green]")

    elif event.type == EventType.ERROR:
        console.print(f"  [bold red]ERROR:[/bold red] {escape(str(d.get('error')))}")


def _print_summary(result: RunResult) -> None:
    from actloop.agent.state import dumps

    table = Table(title="Run summary", show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("Iterations", str(result.iterations_used))
    table.add_row("Goal achieved", "yes" if result.goal_achieved else "no")
    table.add_row("Stopped because", result.reason)
    table.add_row("Memory records", str(len(result.memory)))
    table.add_row("Result", escape(dumps(result.result)[:500]))
    console.print()
    console.print(table)

    if result.log:
        console.print("\n[bold]Log (last 10)[/bold]")
        for line in result.log[-10:]:
            console.print(f"  {escape(line)}")


@app.command()
def tools(
    skills_dir: str | None = typer.Option(
        None, "--skills-dir", "-s", help="Directory of markdown skills."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List the builtin tools and discovered skills."""
    from actloop.capability.builtin import builtin_tools
    from actloop.skill import discover_skills

    config = ActloopConfig.load(config_file)

    table = Table(title="Capabilities")
    table.add_column("Kind")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    for tool in builtin_tools():
        table.add_row("tool", tool.name, tool.description)
    for skill in discover_skills(skills_dir or config.skills_dir):
        table.add_row(f"skill [{escape(skill.domain)}]", skill.name, skill.description)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
