"""
Security Agent for SHIELD AI.

Purpose:
  Turn one user command ("check app.py 10-20", "fix app.py 25-30") into a
  model request, and turn the model's answer into either a security report
  or an edit of the addressed lines.

Flow:
  1. Parse the command (action, target, optional line range, flags)
  2. Read the addressed code from disk
  3. Render the prompt from prompts/prompts.yaml
  4. Ask the model for JSON, clean it, validate it against
     schemas/response_schema.json (with retry)
  5. For code changes, splice the modified code into the file

Expected model output:
{
  "type": "code_analysis" | "code_modification" | "invalid",
  "analysis": {"securityIssues": [...]},
  "codeChanges": {"original": str, "modified": str, "explanation": str},
  "checkedData": {...}
}
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from shield_ai.editor.line_editor import (
    EditResult,
    LineRange,
    apply_edit,
    extract,
    read_lines,
)
from shield_ai.llm.openai_client import OpenAIClient
from shield_ai.llm.utils.code_utils import (
    exceeds_scan_limit,
    format_line_range,
    prepare_code_for_scan,
)
from shield_ai.llm.utils.config_utils import AgentConfig, SECURITY_RULES, load_yaml_file
from shield_ai.llm.utils.json_utils import load_packaged_schema, validate_json


PROMPTS_PATH = Path(__file__).resolve().parent.parent / "prompts" / "prompts.yaml"

RANGE_ACTIONS = ("check", "fix")


# ----------------------------------------------------------------------
# Exceptions
# ----------------------------------------------------------------------

class AgentError(RuntimeError):
    """Base class for security agent errors."""


class CommandError(AgentError):
    """Raised when a command line cannot be understood."""


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Command:
    """
    A parsed command line, e.g. ``fix app.py 25-30 --autofix``.
    """
    text: str
    action: str
    args: Tuple[str, ...] = ()
    line_range: Optional[LineRange] = None
    flags: Dict[str, Any] = field(default_factory=dict)

    @property
    def target(self) -> Optional[str]:
        return self.args[0] if self.args else None

    @property
    def target_path(self) -> Optional[Path]:
        if self.target is None:
            return None
        return Path(self.target).expanduser()


def parse_line_range(raw: str) -> LineRange:
    """
    Parse "A-B" or "N" into a LineRange.
    """
    parts = raw.split("-")
    try:
        if len(parts) == 1:
            start = end = int(parts[0])
        elif len(parts) == 2:
            start, end = int(parts[0]), int(parts[1])
        else:
            raise ValueError(raw)
    except ValueError as e:
        raise CommandError(
            f"Invalid line range {raw!r}, expected START-END (e.g. 10-50)"
        ) from e

    if start < 1 or end < start:
        raise CommandError(
            f"Invalid line range {raw!r}: need 1 <= START <= END"
        )

    return LineRange(start, end)


def parse_command(text: str) -> Command:
    """
    Split a command line into action, positional arguments and flags.

    Flags look like ``--name`` or ``--name=value``. For ``check`` and
    ``fix`` the second positional argument is the line range.
    """
    try:
        tokens = shlex.split(text)
    except ValueError as e:
        raise CommandError(f"Cannot parse command: {e}") from e

    if not tokens:
        raise CommandError("Empty command")

    action = tokens[0].lower()
    args: List[str] = []
    flags: Dict[str, Any] = {}

    for token in tokens[1:]:
        if token.startswith("--") and len(token) > 2:
            name, sep, value = token[2:].partition("=")
            flags[name.lower()] = value if sep else True
        else:
            args.append(token)

    line_range = None
    if action in RANGE_ACTIONS and len(args) > 1:
        line_range = parse_line_range(args[1])

    return Command(
        text=text,
        action=action,
        args=tuple(args),
        line_range=line_range,
        flags=flags,
    )


# ----------------------------------------------------------------------
# Plans
# ----------------------------------------------------------------------

@dataclass
class SecurityPlan:
    """
    A validated model response.
    """
    data: Dict[str, Any]

    @property
    def kind(self) -> str:
        return self.data["type"]

    @property
    def issues(self) -> List[Dict[str, Any]]:
        return (self.data.get("analysis") or {}).get("securityIssues") or []

    @property
    def checks(self) -> Dict[str, Any]:
        return self.data.get("checkedData") or {}

    @property
    def changes(self) -> Dict[str, Any]:
        return self.data.get("codeChanges") or {}

    @property
    def guidance(self) -> str:
        return self.data.get("guidance") or ""


# ----------------------------------------------------------------------
# Agent
# ----------------------------------------------------------------------

class SecurityAgent:
    """
    Runs security checks and fixes against files through the model.

    The configuration is not stored on the agent: every call receives the
    current snapshot.
    """

    def __init__(
        self,
        *,
        client: OpenAIClient,
        prompts_path: Optional[str | Path] = None,
        max_retries: int = 1,
    ) -> None:
        self.client = client
        self.max_retries = max_retries

        self.prompts = load_yaml_file(
            prompts_path or PROMPTS_PATH,
            required_sections=("system", "user", "scan_levels", "rules"),
        )
        self.schema = load_packaged_schema("response_schema")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read_code(self, command: Command) -> str:
        if command.target_path is None:
            raise CommandError(f"Usage: {command.action} <file> [start-end]")

        line_range = command.line_range
        if line_range is None:
            return extract(command.target_path)
        return extract(command.target_path, line_range.start, line_range.end)

    def request_plan(
        self,
        command: Command,
        config: AgentConfig,
        code: Optional[str] = None,
    ) -> SecurityPlan:
        """
        Ask the model about a command and return its validated answer.

        Malformed or schema-invalid answers are retried up to
        ``max_retries`` times. Errors from the API itself are not retried.
        """
        if code is None:
            code = self.read_code(command)
        if command.action == "fix":
            ensure_fits_scan_level(code, config)

        user_prompt = self.build_user_prompt(command, code, config)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.generate_json(
                    model=config.model,
                    system_prompt=self.prompts["system"],
                    user_prompt=user_prompt,
                    temperature=0.0,
                )
                validate_json(response, self.schema)
                return SecurityPlan(data=response)

            except ValueError as e:  # malformed JSON or schema violation
                last_error = e
                if attempt >= self.max_retries:
                    break

        raise AgentError(
            f"Model response could not be used. Last error: {last_error}"
        ) from last_error

    def apply_plan(
        self,
        plan: SecurityPlan,
        command: Command,
        config: AgentConfig,
    ) -> EditResult:
        """
        Write the plan's modified code over the command's line range.

        The target and range always come from the user's command, never
        from the model's echo of them. Without a range the whole file is
        replaced, keeping its final newline. A range longer than the scan
        level's line limit is refused.
        """
        if plan.kind != "code_modification":
            raise AgentError(f"Plan of type {plan.kind!r} has no code changes")

        modified = plan.changes.get("modified")
        if not isinstance(modified, str):
            raise AgentError("Plan is missing codeChanges.modified")

        path = command.target_path
        if path is None:
            raise CommandError("fix needs a target file")

        line_range = command.line_range or whole_file_range(path)
        ensure_fits_scan_level(
            extract(path, line_range.start, line_range.end), config
        )
        return apply_edit(
            path,
            line_range,
            modified,
            backup=config.backup_original_file,
        )

    # ------------------------------------------------------------------
    # Prompt rendering
    # ------------------------------------------------------------------

    def build_user_prompt(
        self,
        command: Command,
        code: str,
        config: AgentConfig,
    ) -> str:
        rules = self.prompts["rules"]
        enabled = [name for name in config.enabled_rules() if name in rules]

        rule_list = "\n".join(f"   - {rules[name][0]}" for name in enabled)
        checked_fields = ",\n".join(
            f'      "{rules[name][1]}": boolean' for name in enabled
        )

        line_range = command.line_range
        start = line_range.start if line_range else None
        end = line_range.end if line_range else None

        return self.prompts["user"].format(
            command=command.text,
            action=command.action,
            target_file=command.target or "",
            range_label=format_line_range(start, end),
            start="null" if start is None else start,
            end="null" if end is None else end,
            code=prepare_code_for_scan(code, config.scan_level),
            scan_level=config.scan_level,
            scan_guidance=self.prompts["scan_levels"].get(config.scan_level, ""),
            rule_list=rule_list or "   - (all rules disabled: report nothing)",
            checked_fields=checked_fields,
        )

    def check_labels(self) -> List[Tuple[str, str, str]]:
        """
        (rule name, label, checkedData key) for every known rule.
        """
        rules = self.prompts["rules"]
        return [
            (name, rules[name][0], rules[name][1])
            for name in SECURITY_RULES
            if name in rules
        ]


def ensure_fits_scan_level(code: str, config: AgentConfig) -> None:
    """
    Raise CommandError when the scan level would truncate ``code``.
    """
    if exceeds_scan_limit(code, config.scan_level):
        raise CommandError(
            f"Code too large for scan level {config.scan_level!r}: "
            "give a line range or use scan_level thorough"
        )


def whole_file_range(path: str | Path) -> LineRange:
    """
    Range covering every line of a file except a trailing empty line.
    """
    lines = read_lines(path)
    end = len(lines)
    if end > 1 and lines[-1] == "":
        end -= 1
    return LineRange(1, end)
