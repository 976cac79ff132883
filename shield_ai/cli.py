"""
CLI entry point for SHIELD AI.

Commands (interactive prompt, or one-shot from the shell):
  - check   <file> [start-end] : security analysis of a file or line range
  - fix     <file> [start-end] : propose and apply a safer version
  - monitor <path>             : re-check files whenever they change
  - config  [set <key> <value>]: show or change settings
  - help / exit
"""

from __future__ import annotations

import argparse
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.syntax import Syntax

from shield_ai import display
from shield_ai.agents.monitor_agent import MonitorAgent
from shield_ai.agents.security_agent import (
    Command,
    CommandError,
    SecurityAgent,
    SecurityPlan,
    parse_command,
)
from shield_ai.llm.openai_client import OpenAIClient
from shield_ai.llm.utils.config_utils import (
    CONFIG_PATH,
    DATA_DIR,
    SCAN_LEVELS,
    AgentConfig,
    load_agent_config,
    resolve_api_key,
    save_agent_config,
    set_config_value,
)
from shield_ai.llm.utils.io_utils import write_command_record, write_error
from shield_ai.llm.utils.logging_utils import create_logger, log_command, log_exception


HISTORY_PATH = DATA_DIR / "history.jsonl"
LOG_DIR = DATA_DIR / "logs"
PROMPT = "\n[blue]🛡️ > [/blue]"

CONFIG_MENU = {
    "key": "Update API key",
    "backup": "Backup file",
    "scan": "Security scan level",
    "autofix": "Auto-fix settings",
    "monitor": "Monitoring settings",
    "back": "Back to main menu",
}


# ----------------------------------------------------------------------
# Runtime
# ----------------------------------------------------------------------

@dataclass
class Runtime:
    """
    Collaborators shared by all commands of a session.

    The configuration is not part of it; it travels as an explicit
    snapshot through every command.
    """
    console: Console
    logger: logging.Logger
    agent: SecurityAgent
    make_agent: Callable[[AgentConfig], SecurityAgent]
    config_path: Path = CONFIG_PATH
    history_path: Path = HISTORY_PATH

    @property
    def run_id(self) -> Optional[str]:
        return getattr(self.logger, "run_id", None)


@dataclass
class CommandResult:
    keep_running: bool
    config: AgentConfig
    ok: bool = True


def create_agent(config: AgentConfig) -> SecurityAgent:
    return SecurityAgent(client=OpenAIClient.from_config(config))


# ----------------------------------------------------------------------
# Argument parsing
# ----------------------------------------------------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="shield-ai",
        description="SHIELD AI: AI-assisted security review and fixing of source files",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"Path to config JSON (default: {CONFIG_PATH})",
    )

    parser.add_argument(
        "--history",
        type=Path,
        default=HISTORY_PATH,
        help=f"Command history file (default: {HISTORY_PATH})",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo debug logging to stderr",
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Run a single command and exit, e.g. 'check app.py 10-20'",
    )

    return parser.parse_args(argv)


# ----------------------------------------------------------------------
# Startup
# ----------------------------------------------------------------------

def ensure_api_key(
    config: AgentConfig,
    config_path: Path,
    console: Console,
) -> Optional[AgentConfig]:
    """
    Return a config with a usable API key, asking the user if needed.

    Returns None when no key can be obtained.
    """
    if resolve_api_key(config):
        return config

    if not console.is_interactive:
        return None

    try:
        api_key = ""
        while not api_key:
            api_key = Prompt.ask(
                "Enter your OpenAI API key",
                password=True,
                console=console,
            ).strip()
            if not api_key:
                console.print("[red]API key can't be empty[/red]")
    except (EOFError, KeyboardInterrupt):
        return None

    config = config.with_updates(api_key=api_key)
    save_agent_config(config, config_path)
    return config


# ----------------------------------------------------------------------
# Model-backed commands
# ----------------------------------------------------------------------

def run_model_command(
    command: Command,
    config: AgentConfig,
    rt: Runtime,
) -> None:
    """
    Run check / fix: ask the model, render its answer, maybe apply it.
    """
    agent = rt.agent
    code = agent.read_code(command)

    with rt.console.status("Analyzing code....."):
        plan = agent.request_plan(command, config, code)

    log_command(
        rt.logger,
        command=command.action,
        target=command.target,
        message=f"model answered with {plan.kind}",
    )

    if plan.kind == "code_analysis":
        display.print_analysis(rt.console, plan, config, agent.check_labels())
        outcome = "analysis"
    elif plan.kind == "code_modification" and command.action == "fix":
        outcome = handle_modification(plan, command, config, rt)
    elif plan.kind == "code_modification":
        # check never writes; show the suggestion only
        display.print_changes(rt.console, plan, lexer=guess_lexer(command, plan))
        rt.console.print(
            f"[yellow]Run 'fix {escape(command.target or '')}' to apply changes.[/yellow]",
            highlight=False,
        )
        outcome = "proposed"
    else:
        rt.console.print("[yellow]The model could not interpret this command.[/yellow]")
        if plan.guidance:
            rt.console.print(escape(plan.guidance), highlight=False)
        outcome = "invalid"

    write_command_record(
        rt.history_path,
        command=command.text,
        target=command.target,
        outcome=outcome,
        details={"issues": len(plan.issues)} if plan.kind == "code_analysis" else None,
        run_id=rt.run_id,
    )


def guess_lexer(command: Command, plan: SecurityPlan) -> str:
    return Syntax.guess_lexer(str(command.target_path), plan.changes.get("original", ""))


def handle_modification(
    plan: SecurityPlan,
    command: Command,
    config: AgentConfig,
    rt: Runtime,
) -> str:
    display.print_changes(rt.console, plan, lexer=guess_lexer(command, plan))

    auto = config.auto_fix or bool(command.flags.get("autofix"))
    if not auto and not Confirm.ask(
        "Do you want to apply these changes?",
        default=True,
        console=rt.console,
    ):
        rt.console.print("[yellow]Changes discarded[/yellow]")
        return "declined"

    with rt.console.status("Applying changes..."):
        result = rt.agent.apply_plan(plan, command, config)

    log_command(
        rt.logger,
        command=command.action,
        target=command.target,
        message=f"replaced lines {result.line_range} ({len(result.lines)} lines now)",
    )
    display.print_edit_result(rt.console, result)
    return "applied"


# ----------------------------------------------------------------------
# Monitor
# ----------------------------------------------------------------------

def run_monitor(command: Command, config: AgentConfig, rt: Runtime) -> None:
    if not config.monitoring_enabled:
        rt.console.print(
            "[yellow]Monitoring is disabled. "
            "Enable it with: config set monitoring_enabled true[/yellow]"
        )
        return

    if command.target is None:
        raise CommandError("Usage: monitor <path> [--exclude=a,b] [--interval=SECONDS]")

    exclude = command.flags.get("exclude")
    if not isinstance(exclude, str):
        exclude = ""
    try:
        interval = float(command.flags.get("interval") or 2.0)
    except ValueError as e:
        raise CommandError(f"Invalid interval: {command.flags['interval']!r}") from e

    def on_change(path: Path) -> None:
        rt.console.print(f"\n[cyan]Change detected:[/cyan] {path}")
        check = parse_command(f"check {shlex.quote(str(path))}")
        try:
            run_model_command(check, config, rt)
        except Exception as e:
            report_error(rt, check, e)

    monitor = MonitorAgent(
        command.target,
        on_change=on_change,
        interval=interval,
        exclude=[name for name in exclude.split(",") if name],
    )

    rt.console.print(
        f"[green]Monitoring {monitor.root} for changes. Press Ctrl-C to stop.[/green]"
    )
    changes = monitor.run()
    rt.console.print(f"[green]Monitoring stopped ({changes} change(s) checked).[/green]")


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------

def run_config(command: Command, config: AgentConfig, rt: Runtime) -> AgentConfig:
    args = command.args

    if not args:
        display.print_config(rt.console, config)
        updated = config_menu(config, rt.console)
    elif args[0] == "set" and len(args) == 3:
        updated = set_config_value(config, args[1], args[2])
        rt.console.print(f"[green]✔ {args[1]} updated[/green]")
    else:
        raise CommandError("Usage: config | config set <key> <value>")

    return commit_config(config, updated, rt)


def commit_config(old: AgentConfig, new: AgentConfig, rt: Runtime) -> AgentConfig:
    """
    Persist (when auto_save is on) and activate a new config snapshot.
    """
    if new == old:
        return old

    if (new.api_key, new.request_timeout) != (old.api_key, old.request_timeout):
        rt.agent = rt.make_agent(new)

    if new.auto_save or old.auto_save:
        save_agent_config(new, rt.config_path)
        rt.logger.info(f"Configuration saved to {rt.config_path}")

    return new


def config_menu(config: AgentConfig, console: Console) -> AgentConfig:
    for key, label in CONFIG_MENU.items():
        console.print(f"  [cyan]{key:<8}[/cyan] {label}")

    choice = Prompt.ask(
        "Select configuration option",
        choices=list(CONFIG_MENU),
        default="back",
        console=console,
    )

    if choice == "key":
        api_key = Prompt.ask("Enter new API key", password=True, console=console).strip()
        if not api_key:
            raise CommandError("API key cannot be empty")
        console.print("[green]✔ API key updated successfully[/green]")
        return config.with_updates(api_key=api_key)

    if choice == "backup":
        keep = Confirm.ask("Do you want to keep backup files?", default=True, console=console)
        console.print(f"[green]✔ Backup files: {'enabled' if keep else 'disabled'}[/green]")
        return config.with_updates(backup_original_file=keep)

    if choice == "scan":
        level = Prompt.ask(
            "Select security scan level",
            choices=list(SCAN_LEVELS),
            default=config.scan_level,
            console=console,
        )
        console.print(f"[green]✔ Scan level set to: {level}[/green]")
        return config.with_updates(scan_level=level)

    if choice == "autofix":
        auto_fix = Confirm.ask("Enable automatic security fixes?", default=False, console=console)
        console.print(f"[green]✔ Auto-fix: {'enabled' if auto_fix else 'disabled'}[/green]")
        return config.with_updates(auto_fix=auto_fix)

    if choice == "monitor":
        enabled = Confirm.ask("Enable file monitoring?", default=False, console=console)
        console.print(f"[green]✔ Monitoring: {'enabled' if enabled else 'disabled'}[/green]")
        return config.with_updates(monitoring_enabled=enabled)

    return config


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------

def report_error(rt: Runtime, command: Optional[Command], error: BaseException) -> None:
    action = command.action if command else None
    target = command.target if command else None

    rt.console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False)
    log_exception(rt.logger, error, command=action, context=target)
    write_error(
        rt.history_path,
        command=command.text if command else "",
        error=error,
        target=target,
        run_id=rt.run_id,
    )


def execute_command(text: str, config: AgentConfig, rt: Runtime) -> CommandResult:
    """
    Run one command line. Errors are reported here and never propagate.
    """
    if not text.strip():
        return CommandResult(True, config)

    command: Optional[Command] = None
    try:
        command = parse_command(text)
        action = command.action

        if action in ("exit", "quit"):
            rt.console.print("[green]Thank you for using SHIELD AI! Stay secure![/green]")
            return CommandResult(False, config)

        if action == "help":
            display.print_help(rt.console)
        elif action == "config":
            config = run_config(command, config, rt)
        elif action == "monitor":
            run_monitor(command, config, rt)
        elif action in ("check", "fix"):
            run_model_command(command, config, rt)
        else:
            raise CommandError(f"Unknown command {action!r}. Type 'help' for usage.")

    except KeyboardInterrupt:
        rt.console.print("\n[yellow]Command cancelled[/yellow]")
        rt.logger.info(f"Command cancelled: {text}")
        return CommandResult(True, config, ok=False)

    except Exception as e:
        report_error(rt, command, e)
        return CommandResult(True, config, ok=False)

    return CommandResult(True, config)


# ----------------------------------------------------------------------
# Main entry
# ----------------------------------------------------------------------

def repl(config: AgentConfig, rt: Runtime) -> None:
    display.print_banner(rt.console)
    display.print_intro(rt.console)

    while True:
        try:
            text = rt.console.input(PROMPT)
        except (EOFError, KeyboardInterrupt):
            rt.console.print()
            break

        result = execute_command(text, config, rt)
        config = result.config
        if not result.keep_running:
            break


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    console = Console()

    logger = create_logger(
        name="shield_ai",
        log_dir=LOG_DIR,
        console_level=logging.DEBUG if args.verbose else None,
    )

    try:
        config = load_agent_config(args.config)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]", highlight=False)
        return 1

    config = ensure_api_key(config, args.config, console)
    if config is None:
        console.print("[red]Failed to initialize AI security agent: no API key. Exiting.[/red]")
        logger.error("Startup aborted: no API key available")
        return 1

    rt = Runtime(
        console=console,
        logger=logger,
        agent=create_agent(config),
        make_agent=create_agent,
        config_path=args.config,
        history_path=args.history,
    )

    logger.info(f"SHIELD AI started | model={config.model}, scan_level={config.scan_level}")

    if args.command:
        result = execute_command(shlex.join(args.command), config, rt)
        return 0 if result.ok else 1

    repl(config, rt)
    logger.info("SHIELD AI session finished")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
