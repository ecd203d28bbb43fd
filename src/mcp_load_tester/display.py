# display.py
# All terminal output for the load tester.
#
# This module owns presentation entirely. harness.py and friends never format
# strings. They call named functions here. Swap this file to change the UI.
#
# Tool output, arguments and error messages are untrusted: they go through
# _mono or _plain, which escape rich markup, before being embedded.
#
# Colour language:
#   cyan    routing / run lifecycle
#   blue    tool calls and responses
#   yellow  context and path-mapping events
#   green   success
#   red     failures
#   magenta AI-agent internals

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from mcp_load_tester.models import MetricsSummary

console = Console()
# Fatal errors still reach stderr under --quiet.
err_console = Console(stderr=True)


def set_quiet(quiet: bool) -> None:
    """Silence (or restore) all console output."""
    console.quiet = quiet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: Any, max_len: int = 120) -> str:
    """Compact, markup-safe rendering of an arbitrary value."""
    if not isinstance(value, str):
        try:
            value = json.dumps(value, default=str)
        except (TypeError, ValueError):
            value = repr(value)
    if len(value) > max_len:
        value = value[:max_len] + "…"
    return escape(value)


def _plain(value: Any) -> str:
    return escape(str(value))


def _error_text(exc: BaseException, max_len: int = 140) -> str:
    return _mono(str(exc) or repr(exc), max_len)


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


def banner(server_url: str, mode: str, num_calls: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]MCP Load Tester[/bold cyan]\n\n"
            f"[dim]Server :[/dim] [white]{_plain(server_url)}[/white]\n"
            f"[dim]Mode   :[/dim] [white]{mode}[/white]\n"
            f"[dim]Calls  :[/dim] [white]{num_calls}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def connected(tool_names: list[str]) -> None:
    console.print(
        _label("CHANNEL", "cyan"),
        f"[cyan] Connected with {len(tool_names)} tool(s):[/cyan] [white]{_plain(', '.join(tool_names))}[/white]",
    )


def connect_failed(server_url: str, exc: BaseException) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold red]Failed to connect to {_plain(server_url)}[/bold red]\n\n[white]{_mono(repr(exc), 400)}[/white]",
            title=_label("CONNECT ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def no_tools(reason: str) -> None:
    console.print(_label("DRIVER", "red"), f"[red] {_plain(reason)}[/red]")


def config_error(exc: BaseException) -> None:
    err_console.print(f"[bold red]Error loading config:[/bold red] {_plain(exc)}")


def load_test_aborted(exc: BaseException) -> None:
    err_console.print(f"[bold red]Load test aborted:[/bold red] {_plain(repr(exc))}")


# ---------------------------------------------------------------------------
# Driver loop
# ---------------------------------------------------------------------------


def load_test_start(num_calls: int, mode: str) -> None:
    console.print()
    console.print(Rule(f"[cyan]LOAD TEST: {num_calls} iteration(s), {mode} mode[/cyan]", style="cyan"))


def iteration_start(index: int, total: int) -> None:
    console.print()
    console.print(f"[bold cyan]  ITERATION \\[{index + 1}/{total}][/bold cyan]")


def iteration_failed(index: int, total: int, exc: BaseException) -> None:
    console.print(
        f"  [bold red]✗ Iteration {index + 1}/{total} failed:[/bold red] [red]{_error_text(exc, 120)}[/red]"
    )


# ---------------------------------------------------------------------------
# Sequence engine
# ---------------------------------------------------------------------------


def sequence_start(total: int) -> None:
    console.print(f"  [cyan]↳ Executing sequence of {total} step(s)…[/cyan]")


def step_start(index: int, total: int, label: str) -> None:
    console.print(f"  [bold cyan]STEP \\[{index + 1}/{total}][/bold cyan]  [white]{_plain(label)}[/white]")


def tool_not_found(tool_name: str) -> None:
    console.print(
        f"    [bold red]✗ Tool[/bold red] [white]{_plain(repr(tool_name))}[/white] "
        "[red]is not advertised by the server. Skipping step.[/red]"
    )


def context_updated(keys: list[str]) -> None:
    if keys:
        console.print(f"    [yellow]↳ Context ←[/yellow] [dim yellow]{_plain(', '.join(keys))}[/dim yellow]")


def context_transformed(keys: list[str]) -> None:
    console.print(
        f"    [yellow]↻ Context reshaped:[/yellow] [dim yellow]{_plain(', '.join(keys) or '(nothing)')}[/dim yellow]"
    )


def sequence_aborted(tool_name: str, exc: BaseException) -> None:
    console.print(
        Panel(
            f"[bold red]Step {_plain(repr(tool_name))} failed. Remaining steps skipped.[/bold red]\n\n"
            f"[white]{_error_text(exc, 400)}[/white]",
            title=_label("SEQUENCE ABORTED ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------


def tool_call(tool_name: str, args: dict) -> None:
    console.print(f"    [blue]Call[/blue]     [bold white]{_plain(tool_name)}[/bold white]  [dim]{_mono(args)}[/dim]")


def tool_result(tool_name: str, output: Any, duration_ms: float) -> None:
    console.print(
        f"    [green]✓ {duration_ms:.1f} ms[/green]  [white]{_mono(output, 140)}[/white]"
    )


def tool_error(tool_name: str, exc: BaseException, duration_ms: float) -> None:
    console.print(
        f"    [bold red]✗ {duration_ms:.1f} ms[/bold red]  [red]{_plain(tool_name)}: {_error_text(exc)}[/red]"
    )


# ---------------------------------------------------------------------------
# AI agent
# ---------------------------------------------------------------------------


def agent_prompt(client: str, prompt: str) -> None:
    console.print(f"  [magenta]Agent[/magenta]    [bold white]{_plain(client)}[/bold white]  [dim]{_mono(prompt)}[/dim]")


def agent_tool_call(tool_name: str, args: dict) -> None:
    console.print(
        f"    [magenta]Action[/magenta]   [bold white]{_plain(tool_name)}[/bold white]  [dim]{_mono(args)}[/dim]"
    )


def agent_response(text: str) -> None:
    console.print(f"  [magenta]Answer[/magenta]   [white]{_mono(text, 200)}[/white]")


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def metrics_summary(summary: MetricsSummary) -> None:
    console.print()
    console.print(Rule("[cyan]LOAD TEST SUMMARY[/cyan]", style="cyan"))

    totals = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    totals.add_column("Metric", style="dim")
    totals.add_column("Value", style="bold white", justify="right")
    totals.add_row("Total requests", str(summary.total))
    totals.add_row("Success", f"[green]{summary.success}[/green]")
    totals.add_row("Failure", f"[red]{summary.failure}[/red]")
    totals.add_row("Avg response time", f"{summary.avg:.2f} ms")
    totals.add_row("Median response time", f"{summary.median:.2f} ms")
    totals.add_row("95th percentile", f"{summary.p95:.2f} ms")
    totals.add_row("Throughput", f"{summary.throughput:.2f} req/sec")
    totals.add_row("Elapsed", f"{summary.total_time:.2f} s")
    console.print(totals)

    if summary.per_tool:
        tools = Table(
            box=box.SIMPLE_HEAVY,
            border_style="cyan",
            show_header=True,
            header_style="bold cyan",
            padding=(0, 1),
        )
        tools.add_column("Tool", style="bold white")
        tools.add_column("Total", justify="right")
        tools.add_column("Success", justify="right", style="green")
        tools.add_column("Failure", justify="right", style="red")
        tools.add_column("Avg (ms)", justify="right")
        for name, stats in summary.per_tool.items():
            tools.add_row(_plain(name), str(stats.total), str(stats.success), str(stats.failure), f"{stats.avg:.2f}")
        console.print(Panel(tools, title="[dim]PER-TOOL[/dim]", border_style="dim", padding=(0, 1)))

    if summary.errors:
        errors = Table(box=box.SIMPLE, show_header=True, header_style="bold red", padding=(0, 1))
        errors.add_column("Count", justify="right", width=6)
        errors.add_column("Error", style="red")
        for message, count in sorted(summary.errors.items(), key=lambda item: -item[1]):
            errors.add_row(str(count), _mono(message, 100))
        console.print(Panel(errors, title=_label("ERRORS", "red"), border_style="red", padding=(0, 1)))
    console.print()
