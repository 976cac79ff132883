"""
config_utils
============

Configuration handling for SHIELD AI.

Two kinds of files are read here:
- The user configuration, a JSON file in the home directory
- Prompt templates, YAML files shipped with the package

Design principles:
- One immutable configuration snapshot, passed explicitly
- Updates produce a new snapshot; nothing is mutated in place
- Fail fast on malformed or incomplete files
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, asdict, replace
from pathlib import Path
from typing import Dict, Any, Iterable, Optional

import yaml

from shield_ai.llm.utils.json_utils import load_packaged_schema, validate_json


CONFIG_PATH = Path.home() / ".shield-ai-config.json"
DATA_DIR = Path.home() / ".shield-ai"
API_KEY_ENV = "OPENAI_API_KEY"

SCAN_LEVELS = ("basic", "standard", "thorough")

SECURITY_RULES = (
    "input_validation",
    "authentication",
    "data_exposure",
    "dependencies",
    "injection",
    "filesystem",
)

_TRUE = {"true", "yes", "on", "1", "y", "enabled"}
_FALSE = {"false", "no", "off", "0", "n", "disabled"}


def _default_rules() -> Dict[str, bool]:
    return {name: True for name in SECURITY_RULES}


# ----------------------------------------------------------------------
# Configuration snapshot
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AgentConfig:
    """
    Settings for one SHIELD AI session.
    """
    api_key: str = ""
    default_projects_dir: str = str(Path.home() / "ai-projects")
    auto_save: bool = True
    scan_level: str = "standard"
    auto_fix: bool = False
    monitoring_enabled: bool = False
    backup_original_file: bool = True
    security_rules: Dict[str, bool] = field(default_factory=_default_rules)
    model: str = "gpt-4o-mini"
    request_timeout: int = 60

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_updates(self, **changes: Any) -> "AgentConfig":
        """
        Return a new validated snapshot with ``changes`` applied.
        """
        if "security_rules" in changes:
            rules = dict(self.security_rules)
            rules.update(changes["security_rules"])
            changes["security_rules"] = rules

        updated = replace(self, **changes)
        validate_config_dict(updated.to_dict())
        return updated

    def enabled_rules(self) -> list[str]:
        return [name for name in SECURITY_RULES if self.security_rules.get(name)]


# ----------------------------------------------------------------------
# Load / save
# ----------------------------------------------------------------------

def validate_config_dict(data: Dict[str, Any], *, source: Optional[Path] = None) -> None:
    try:
        validate_json(data, load_packaged_schema("config_schema"))
    except ValueError as e:
        where = f" in {source}" if source else ""
        raise ValueError(f"Invalid configuration{where}: {e}") from e


def load_agent_config(path: str | Path = CONFIG_PATH) -> AgentConfig:
    """
    Load the user configuration, falling back to defaults.

    A missing file yields the default configuration. Values found in the
    file are merged over the defaults; ``security_rules`` is merged key by
    key.

    Raises
    ------
    ValueError
        If the file is not valid JSON or violates the config schema.
    """
    path = Path(path)

    if not path.exists():
        return AgentConfig()

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse config file: {path}") from e

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config format (expected an object at top level): {path}"
        )

    validate_config_dict(data, source=path)

    rules = _default_rules()
    rules.update(data.pop("security_rules", {}) or {})
    return AgentConfig(security_rules=rules, **data)


def save_agent_config(config: AgentConfig, path: str | Path = CONFIG_PATH) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write("\n")

    return path


def resolve_api_key(config: AgentConfig) -> str:
    """
    Return the configured API key, or the one from the environment.
    """
    return (config.api_key or os.getenv(API_KEY_ENV, "")).strip()


# ----------------------------------------------------------------------
# "config set <key> <value>"
# ----------------------------------------------------------------------

def parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Expected a boolean value, got {raw!r}")


def set_config_value(config: AgentConfig, key: str, raw: str) -> AgentConfig:
    """
    Return a new snapshot with one setting changed from its string form.

    Rule toggles are addressed as ``security_rules.<name>``.
    """
    if key.startswith("security_rules."):
        rule = key.split(".", 1)[1]
        if rule not in SECURITY_RULES:
            raise ValueError(
                f"Unknown security rule {rule!r}. "
                f"Known rules: {', '.join(SECURITY_RULES)}"
            )
        return config.with_updates(security_rules={rule: parse_bool(raw)})

    types = {f.name: f.type for f in fields(AgentConfig)}
    if key not in types or key == "security_rules":
        raise ValueError(f"Unknown configuration key: {key}")

    kind = types[key]
    if kind == "bool":
        value: Any = parse_bool(raw)
    elif kind == "int":
        try:
            value = int(raw)
        except ValueError as e:
            raise ValueError(f"Expected an integer for {key}, got {raw!r}") from e
    else:
        value = raw

    return config.with_updates(**{key: value})


# ----------------------------------------------------------------------
# YAML files
# ----------------------------------------------------------------------

def load_yaml_file(
    path: str | Path,
    *,
    required_sections: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Load a YAML mapping and check that its required sections exist.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the YAML cannot be parsed or is structurally invalid.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file: {path}") from e

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid YAML format (expected a mapping at top level): {path}"
        )

    missing = [key for key in required_sections if key not in data]
    if missing:
        raise ValueError(
            "Missing required top-level section(s): "
            f"{', '.join(missing)} in {path}"
        )

    return data
