"""Rich rendering for progress lines, status tables, and action summaries."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from spoofctl.state.models import (
    ActionReport,
    ActionStatus,
    RedirectionState,
    StepOutcome,
)

_LEVEL_PREFIX = {
    "info": ("[spoofdpi]", "bold blue"),
    "warn": ("[warn]", "bold yellow"),
    "error": ("[error]", "bold red"),
}

_PROXY_VIEWS = ("status", "proxy-status")
_REDIRECT_VIEWS = ("status", "redirect-status")

_STEP_COLORS = {
    StepOutcome.DONE: "green",
    StepOutcome.SKIPPED: "dim",
    StepOutcome.FAILED: "red",
}


def print_progress(console: Console, message: str, level: str = "info") -> None:
    prefix, style = _LEVEL_PREFIX.get(level, _LEVEL_PREFIX["info"])
    console.print(Text.assemble((prefix, style), " ", message))


def print_report(console: Console, report: ActionReport) -> None:
    if report.state is not None:
        print_state(
            console,
            report.state,
            include_proxy=report.action in _PROXY_VIEWS,
            include_redirect=report.action in _REDIRECT_VIEWS,
        )
    if report.action == "uninstall":
        _print_steps(console, report)

    for warning in report.warnings:
        print_progress(console, warning, "warn")

    if report.status is ActionStatus.SUCCESS:
        line = Text.assemble(("✓ ", "green"), f"{report.action}: success")
    elif report.status is ActionStatus.PARTIAL:
        done = sum(1 for s in report.steps if s.result is StepOutcome.DONE)
        failed = sum(1 for s in report.steps if s.result is StepOutcome.FAILED)
        line = Text.assemble(
            ("⚠ ", "yellow"),
            f"{report.action}: partial success ({done} done, {failed} failed)",
        )
    else:
        line = Text.assemble(("✗ ", "red"), f"{report.action}: failed")
    console.print(line)
    if report.status is not ActionStatus.SUCCESS:
        for error in report.errors:
            console.print(Text(f"  - {error}", style="red"))


def print_state(
    console: Console,
    state: RedirectionState,
    include_proxy: bool = True,
    include_redirect: bool = True,
) -> None:
    """Render the requested sections; fields that could not be read show as unknown."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    if include_proxy:
        table.add_row("Daemon loaded", _flag(state.daemon_loaded))
        table.add_row("Daemon running", _flag(state.daemon_running))
        if state.proxy_enabled_per_service is None:
            table.add_row("Proxy services", _flag(None))
        else:
            for service, enabled in state.proxy_enabled_per_service.items():
                table.add_row(f"Proxy: {service}", _flag(enabled))
    if include_redirect:
        table.add_row("pf enabled", _flag(state.packet_filter_enabled))
        table.add_row("Redirect rules", _flag(state.redirect_rules_active))
    console.print(table)

    if state.loaded_rules:
        console.print(Text(state.loaded_rules, style="cyan"))


def _print_steps(console: Console, report: ActionReport) -> None:
    table = Table(title="Uninstall summary", show_lines=False)
    table.add_column("Step")
    table.add_column("Result", width=8)
    table.add_column("Detail")
    for step in report.steps:
        color = _STEP_COLORS[step.result]
        table.add_row(step.name, Text(step.result.value, style=color), step.message)
    console.print(table)


def _flag(value: bool | None) -> Text:
    if value is None:
        return Text("unknown", style="yellow")
    return Text("yes", style="green") if value else Text("no", style="dim")
