"""
CLI interface for Prompt Optimizer.

Provides command-line access to optimization, templates and budgets.
"""

import asyncio
import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from prompt_optimizer.config.loader import Settings, load_config
from prompt_optimizer.core.context import OutputFormat, TaskType, TimeConstraint, UserLevel
from prompt_optimizer.core.optimizer import OptimizationContext, OptimizationRequest, PromptOptimizer
from prompt_optimizer.core.budget import Priority
from prompt_optimizer.core.strategies import Strategy
from prompt_optimizer.core.template_engine import TemplateEngine

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _load_settings(config_path: Optional[str]) -> Settings:
    if config_path is None:
        return Settings()
    return load_config(config_path)


def _format_currency(amount: float) -> str:
    return f"${abs(amount):,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """Prompt Optimizer CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True
    )
    if ctx.invoked_subcommand is None:
        console.print("Prompt Optimizer - Use --help to see available commands")


@app.command()
def optimize(
    prompt: str = typer.Argument(..., help="Prompt text to optimize"),
    tool: str = typer.Option(..., "--tool", "-t", help="Tool the prompt is for"),
    task_type: TaskType = typer.Option(TaskType.GENERATION, "--task-type", help="Task type"),
    user_level: UserLevel = typer.Option(UserLevel.INTERMEDIATE, "--user-level", help="User level"),
    output_format: OutputFormat = typer.Option(OutputFormat.TEXT, "--output-format", help="Output format"),
    time_constraint: TimeConstraint = typer.Option(
        TimeConstraint.STANDARD, "--time-constraint", help="Time constraint"
    ),
    strategy: Optional[Strategy] = typer.Option(None, "--strategy", "-s", help="Pin a strategy"),
    priority: Priority = typer.Option(Priority.MEDIUM, "--priority", "-p", help="Request priority"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML configuration file")
):
    """Optimize a prompt and show the result."""
    try:
        optimizer = PromptOptimizer.from_settings(_load_settings(config))
        request = OptimizationRequest(
            tool_name=tool,
            original_prompt=prompt,
            context=OptimizationContext(
                task_type=task_type,
                user_level=user_level,
                output_format=output_format,
                time_constraint=time_constraint
            ),
            strategy=strategy,
            priority=priority
        )
        result = asyncio.run(optimizer.optimize(request))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title="Optimization Result")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Success", "[green]yes[/]" if result.success else "[red]no[/]")
    table.add_row("Strategy", result.strategy)
    table.add_row("Estimated tokens", str(result.estimated_tokens))
    table.add_row("Token reduction", str(result.token_reduction))
    table.add_row("Quality score", f"{result.quality_score:.1f}")
    if result.reason:
        table.add_row("Reason", result.reason)
    if result.fallback:
        table.add_row("Fallback", result.fallback.strategy)
    console.print(table)
    console.print("\n[bold]Optimized prompt:[/bold]")
    console.print(result.optimized_prompt, markup=False)

    sys.exit(EXIT_CODE_PASS if result.success else EXIT_CODE_FAIL)


@app.command()
def templates(
    tool: Optional[str] = typer.Option(None, "--tool", "-t", help="Only show templates for a tool")
):
    """List registered templates."""
    engine = TemplateEngine()
    rows = [t for t in engine.get_all_templates() if tool is None or t.tool_name == tool]
    if not rows:
        console.print("[yellow]No templates found[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Templates")
    for column in ("ID", "Tool", "Task", "Quality", "Adaptation", "Segments"):
        table.add_column(column)
    for t in rows:
        table.add_row(
            t.id,
            t.tool_name,
            t.task_type.value,
            f"{t.quality_score:.0f}",
            t.adaptation_level.value,
            ", ".join(t.user_segments)
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def budget(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML configuration file")
):
    """Show budget limits and the remaining budget."""
    try:
        settings = _load_settings(config)
    except Exception as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    optimizer = PromptOptimizer.from_settings(settings)
    remaining = optimizer.ledger.get_remaining_budget()
    limits = settings.budget

    console.print("\n[bold]Budget[/bold]")
    console.print("-" * 40)
    console.print(f"Model: {settings.cost.model} ({settings.cost.currency})")
    console.print(f"Daily budget: {_format_currency(limits.daily_budget)}")
    console.print(f"Monthly budget: {_format_currency(limits.monthly_budget)}")
    console.print(f"Max tokens per request: {limits.max_tokens_per_request}")
    console.print(f"Low priority reserve: {limits.reserve_percentage * 100:.0f}%")
    console.print(f"Remaining today: {_format_currency(remaining['daily'])}")
    console.print(f"Remaining this month: {_format_currency(remaining['monthly'])}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def render(
    template_id: str = typer.Argument(..., help="Template id"),
    var: Optional[List[str]] = typer.Option(None, "--var", help="Template variable as key=value")
):
    """Render a template with the given variables."""
    variables = {}
    for item in var or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Invalid --var (expected key=value):[/] {item}")
            sys.exit(EXIT_CODE_FAIL)
        variables[key] = value

    optimizer = PromptOptimizer()
    rendered = optimizer.render_template(template_id, variables)
    if rendered is None:
        console.print(f"[red]Template not found or failed to render:[/] {template_id}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(rendered, markup=False)
    sys.exit(EXIT_CODE_PASS)


if __name__ == "__main__":
    app()
