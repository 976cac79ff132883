"""
Terminal rendering for SHIELD AI, built on rich.
"""

from __future__ import annotations

from typing import List, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from shield_ai.agents.security_agent import SecurityPlan
from shield_ai.editor.line_editor import EditResult
from shield_ai.llm.utils.config_utils import AgentConfig


BANNER = """\
╔══════════════════════════════════════════╗
║              SHIELD AI 1.0               ║
╚══════════════════════════════════════════╝"""

INTRO = """\
Security Agent initialized! This agent can:
- Analyze code for security vulnerabilities
- Suggest security improvements
- Fix common security issues
- Monitor file changes for security concerns
- Validate code modifications

[yellow]Commands:[/yellow]
[cyan]check[/cyan]   - Analyze file/code block for security issues
[cyan]fix[/cyan]     - Fix detected security issues
[cyan]monitor[/cyan] - Watch files for security concerns
[cyan]help[/cyan]    - Show detailed help
[cyan]config[/cyan]  - Configure security settings
[cyan]exit[/cyan]    - Exit the agent"""

HELP = """\
Security Analysis Commands:
-------------------------
check <file> [lines]     - Check file for security issues
  Examples:
  - check index.js
  - check index.js 10-50

Fix Commands:
------------
fix <file> [lines]       - Apply security fixes
  Examples:
  - fix index.js
  - fix index.js 25-30
  - fix vulnerable-code.js --autofix

Monitor Commands:
---------------
monitor <path>           - Watch files for security issues (Ctrl-C to stop)
  Examples:
  - monitor ./src
  - monitor ./ --exclude=node_modules
  - monitor app.py --interval=5

Configuration:
-------------
config                   - Show current configuration
config set <key> <value> - Update configuration
  Examples:
  - config set api_key YOUR_NEW_API_KEY
  - config set scan_level thorough
  - config set auto_fix true
  - config set security_rules.dependencies false"""

SEVERITY_STYLES = {
    "high": "bold red",
    "medium": "yellow",
    "low": "cyan",
}

CHECK_SYMBOLS = {
    True: "[green]✓[/green]",
    False: "[red]✗[/red]",
}


def print_banner(console: Console) -> None:
    console.print(BANNER, style="cyan")


def print_intro(console: Console) -> None:
    console.print(INTRO, style="green")


def print_help(console: Console) -> None:
    console.print(HELP, style="cyan", highlight=False)


def print_analysis(
    console: Console,
    plan: SecurityPlan,
    config: AgentConfig,
    check_labels: List[Tuple[str, str, str]],
) -> None:
    """
    Render a code_analysis plan: issues, checks summary and scan details.
    """
    console.print("\n[blue]Security Analysis Results:[/blue]")

    if not plan.issues:
        console.print("\n[green]✔ No security issues found[/green]")
    for issue in plan.issues:
        severity = str(issue.get("severity", "low")).lower()
        style = SEVERITY_STYLES.get(severity, "yellow")
        tag = escape(f"[{severity.upper()}]")
        text = escape(str(issue.get("issue", "")))
        recommendation = escape(str(issue.get("recommendation", "")))
        console.print(f"\n[{style}]{tag}[/{style}] {text}", highlight=False)
        console.print(f"[green]Recommendation:[/green] {recommendation}")

    console.print("\n[blue]Security Checks Summary:[/blue]")
    checks = plan.checks
    for name, label, key in check_labels:
        if not config.security_rules.get(name):
            status = "[grey50]disabled[/grey50]"
        else:
            status = CHECK_SYMBOLS.get(checks.get(key), "[grey50]not checked[/grey50]")
        console.print(f"[yellow]{label}:[/yellow] {status}")

    console.print("\n[blue]Scan Details:[/blue]")
    console.print(f"[grey50]Scan Level: {config.scan_level}[/grey50]")
    console.print(
        f"[grey50]Auto-Fix: {'Enabled' if config.auto_fix else 'Disabled'}[/grey50]"
    )


def print_changes(console: Console, plan: SecurityPlan, lexer: str = "text") -> None:
    """
    Render a code_modification plan.
    """
    changes = plan.changes
    console.print("\n[blue]Proposed Code Changes:[/blue]")
    console.print(Panel(
        Syntax(changes.get("original", ""), lexer, line_numbers=False),
        title="Original Code",
        border_style="yellow",
    ))
    console.print(Panel(
        Syntax(changes.get("modified", ""), lexer, line_numbers=False),
        title="Modified Code",
        border_style="green",
    ))
    console.print("[cyan]Explanation:[/cyan]")
    console.print(escape(str(changes.get("explanation", ""))))


def print_edit_result(console: Console, result: EditResult) -> None:
    console.print(
        f"[green]✔ File updated successfully[/green] "
        f"({result.path}, lines {result.line_range})"
    )
    if result.backup_path is not None:
        console.print(f"[blue]✔ Backup created as {result.backup_path}[/blue]")


def print_config(console: Console, config: AgentConfig) -> None:
    table = Table(title="Current configuration", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in config.to_dict().items():
        if key == "security_rules":
            continue
        if key == "api_key":
            value = mask_secret(value)
        table.add_row(key, str(value))

    for rule, enabled in config.security_rules.items():
        table.add_row(f"security_rules.{rule}", str(enabled))

    console.print(table)


def mask_secret(value: str) -> str:
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"
