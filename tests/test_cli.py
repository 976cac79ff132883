"""Tests for command dispatch and startup."""

from __future__ import annotations

import io
import json

import pytest
from rich.console import Console
from rich.prompt import Confirm

from shield_ai import cli
from shield_ai.agents.security_agent import SecurityAgent
from shield_ai.llm.utils.config_utils import AgentConfig, load_agent_config
from shield_ai.llm.utils.io_utils import read_jsonl


ANALYSIS = {
    "type": "code_analysis",
    "analysis": {
        "securityIssues": [
            {"severity": "high", "issue": "Hard-coded [secret] token", "recommendation": "Read it from the environment"},
        ]
    },
    "checkedData": {"DataExposure": False},
}

FIX = {
    "type": "code_modification",
    "codeChanges": {
        "original": "line2",
        "modified": "safe_line2",
        "explanation": "removed the unsafe call",
    },
}


@pytest.fixture
def runtime(tmp_path, make_client, quiet_logger):
    """Build a Runtime whose model replies with the given responses."""

    def factory(*responses) -> cli.Runtime:
        client, _ = make_client(*[json.dumps(r) if isinstance(r, dict) else r for r in responses])
        agents = []

        def make_agent(config):
            agents.append(config)
            new_client, _ = make_client()
            return SecurityAgent(client=new_client)

        rt = cli.Runtime(
            console=Console(file=io.StringIO(), width=120, force_terminal=False),
            logger=quiet_logger,
            agent=SecurityAgent(client=client),
            make_agent=make_agent,
            config_path=tmp_path / "config.json",
            history_path=tmp_path / "history.jsonl",
        )
        rt.rebuilt = agents
        return rt

    return factory


def output(rt) -> str:
    return rt.console.file.getvalue()


def history(rt) -> list:
    return list(read_jsonl(rt.history_path))


# ----------------------------------------------------------------------
# Built-in commands
# ----------------------------------------------------------------------

def test_help(runtime):
    rt = runtime()
    result = cli.execute_command("help", AgentConfig(), rt)

    assert result.keep_running and result.ok
    assert "Security Analysis Commands" in output(rt)


def test_exit(runtime):
    rt = runtime()
    assert cli.execute_command("EXIT", AgentConfig(), rt).keep_running is False


def test_blank_line_is_ignored(runtime):
    rt = runtime()
    result = cli.execute_command("   ", AgentConfig(), rt)
    assert result.keep_running and result.ok
    assert history(rt) == []


def test_unknown_command_is_reported(runtime):
    rt = runtime()
    result = cli.execute_command("dance app.py", AgentConfig(), rt)

    assert result.keep_running and not result.ok
    assert "Unknown command" in output(rt)
    assert history(rt)[0]["outcome"] == "error"


# ----------------------------------------------------------------------
# check / fix
# ----------------------------------------------------------------------

def test_check_prints_analysis(runtime, sample_file):
    rt = runtime(ANALYSIS)
    result = cli.execute_command(f"check {sample_file} 1-3", AgentConfig(), rt)

    text = output(rt)
    assert result.ok
    assert "Security Analysis Results" in text
    assert "[HIGH] Hard-coded [secret] token" in text
    assert "Data exposure:" in text
    assert "not checked" in text
    assert history(rt)[0]["outcome"] == "analysis"
    assert history(rt)[0]["details"] == {"issues": 1}


def test_check_with_missing_file_keeps_loop_alive(runtime, tmp_path):
    rt = runtime()
    result = cli.execute_command(f"check {tmp_path / 'ghost.py'}", AgentConfig(), rt)

    assert result.keep_running and not result.ok
    assert "Error reading file" in output(rt)
    assert history(rt)[0]["error"]["type"] == "FileReadError"


def test_malformed_response_does_not_touch_file(runtime, sample_file):
    before = sample_file.read_text(encoding="utf-8")
    rt = runtime("```json\n{broken\n```", "still broken")

    result = cli.execute_command(f"fix {sample_file} 2-2 --autofix", AgentConfig(), rt)

    assert not result.ok
    assert "JSON Parse Error" in output(rt)
    assert sample_file.read_text(encoding="utf-8") == before


def test_fix_with_autofix_flag_applies(runtime, sample_file):
    rt = runtime(FIX)
    result = cli.execute_command(f"fix {sample_file} 2-2 --autofix", AgentConfig(), rt)

    assert result.ok
    assert sample_file.read_text(encoding="utf-8") == "line1\nsafe_line2\nline3\nline4\nline5\n"
    assert "Backup created" in output(rt)
    assert history(rt)[0]["outcome"] == "applied"


def test_fix_declined(runtime, sample_file, monkeypatch):
    monkeypatch.setattr(Confirm, "ask", lambda *args, **kwargs: False)
    rt = runtime(FIX)

    cli.execute_command(f"fix {sample_file} 2-2", AgentConfig(), rt)

    assert sample_file.read_text(encoding="utf-8").startswith("line1\nline2\n")
    assert history(rt)[0]["outcome"] == "declined"


def test_fix_with_auto_fix_config_and_no_backup(runtime, sample_file):
    rt = runtime(FIX)
    config = AgentConfig(auto_fix=True, backup_original_file=False)

    cli.execute_command(f"fix {sample_file} 2", config, rt)

    assert "safe_line2" in sample_file.read_text(encoding="utf-8")
    assert not sample_file.with_name("app.py.backup").exists()


def test_fix_out_of_range_is_rejected(runtime, sample_file):
    rt = runtime()
    result = cli.execute_command(f"fix {sample_file} 4-40", AgentConfig(), rt)

    assert not result.ok
    assert "Invalid line range" in output(rt)


def test_check_never_applies_modifications(runtime, sample_file):
    before = sample_file.read_text(encoding="utf-8")
    rt = runtime(FIX)
    config = AgentConfig(auto_fix=True)

    result = cli.execute_command(f"check {sample_file} 2-2 --autofix", config, rt)

    assert result.ok
    assert sample_file.read_text(encoding="utf-8") == before
    assert not sample_file.with_name("app.py.backup").exists()
    assert "Proposed Code Changes" in output(rt)
    assert history(rt)[0]["outcome"] == "proposed"


def test_monitor_check_never_applies_modifications(runtime, tmp_path, monkeypatch):
    target = tmp_path / "app.py"
    target.write_text("line1\nline2\n", encoding="utf-8")
    rt = runtime(FIX)

    def fake_run(self, *, max_cycles=None):
        self.on_change(target)
        return 1

    monkeypatch.setattr(cli.MonitorAgent, "run", fake_run)
    config = AgentConfig(monitoring_enabled=True, auto_fix=True)

    cli.execute_command(f"monitor {tmp_path}", config, rt)

    assert target.read_text(encoding="utf-8") == "line1\nline2\n"
    assert history(rt)[0]["outcome"] == "proposed"


def test_fix_larger_than_scan_level_is_refused(runtime, tmp_path):
    path = tmp_path / "big.py"
    original = "".join(f"x{i} = {i}\n" for i in range(1, 701))
    path.write_text(original, encoding="utf-8")
    rt = runtime()

    result = cli.execute_command(f"fix {path} --autofix", AgentConfig(scan_level="standard"), rt)

    assert not result.ok
    assert "too large for scan level" in output(rt)
    assert path.read_text(encoding="utf-8") == original
    assert rt.agent.client.client.responses.calls == []


def test_ctrl_c_cancels_command(runtime, sample_file):
    rt = runtime()

    def interrupt(**kwargs):
        raise KeyboardInterrupt

    rt.agent.client.client.responses.create = interrupt

    result = cli.execute_command(f"check {sample_file}", AgentConfig(), rt)

    assert result.keep_running and not result.ok
    assert "Command cancelled" in output(rt)


# ----------------------------------------------------------------------
# config / monitor
# ----------------------------------------------------------------------

def test_config_set_saves_new_snapshot(runtime):
    rt = runtime()
    original = AgentConfig()

    result = cli.execute_command("config set scan_level basic", original, rt)

    assert result.config.scan_level == "basic"
    assert original.scan_level == "standard"
    assert load_agent_config(rt.config_path).scan_level == "basic"


def test_config_set_without_auto_save_stays_in_memory(runtime):
    rt = runtime()

    result = cli.execute_command("config set auto_fix true", AgentConfig(auto_save=False), rt)

    assert result.config.auto_fix is True
    assert not rt.config_path.exists()


def test_config_set_api_key_rebuilds_agent(runtime):
    rt = runtime()
    old_agent = rt.agent

    result = cli.execute_command("config set api_key sk-new", AgentConfig(), rt)

    assert result.config.api_key == "sk-new"
    assert rt.agent is not old_agent
    assert rt.rebuilt == [result.config]


def test_config_set_bad_value(runtime):
    rt = runtime()
    config = AgentConfig()

    result = cli.execute_command("config set scan_level extreme", config, rt)

    assert not result.ok
    assert result.config is config


def test_config_shows_table_and_menu(runtime, monkeypatch):
    rt = runtime()
    monkeypatch.setattr(cli.Prompt, "ask", lambda *args, **kwargs: "back")

    result = cli.execute_command("config", AgentConfig(api_key="sk-1234567890"), rt)

    text = output(rt)
    assert result.ok
    assert "sk-1...7890" in text
    assert "sk-1234567890" not in text


def test_monitor_requires_opt_in(runtime, tmp_path):
    rt = runtime()
    cli.execute_command(f"monitor {tmp_path}", AgentConfig(), rt)
    assert "Monitoring is disabled" in output(rt)


def test_monitor_checks_changed_files(runtime, tmp_path, monkeypatch):
    rt = runtime(ANALYSIS)
    seen = []

    def fake_run(self, *, max_cycles=None):
        target = self.root / "app.py"
        target.write_text("x = 1\n", encoding="utf-8")
        self.on_change(target)
        seen.append(target)
        return 1

    monkeypatch.setattr(cli.MonitorAgent, "run", fake_run)
    config = AgentConfig(monitoring_enabled=True)

    result = cli.execute_command(f"monitor {tmp_path} --interval=1", config, rt)

    assert result.ok
    assert seen
    assert "Change detected" in output(rt)
    assert "Security Analysis Results" in output(rt)


# ----------------------------------------------------------------------
# main
# ----------------------------------------------------------------------

@pytest.fixture
def isolated_main(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "LOG_DIR", tmp_path / "logs")
    return ["--config", str(tmp_path / "config.json"), "--history", str(tmp_path / "h.jsonl")]


def test_main_without_api_key_exits_nonzero(isolated_main, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert cli.main(isolated_main) == 1


def test_main_with_invalid_config_exits_nonzero(isolated_main, tmp_path):
    (tmp_path / "config.json").write_text("[]", encoding="utf-8")
    assert cli.main(isolated_main) == 1


def test_main_one_shot_help(isolated_main, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert cli.main(isolated_main + ["help"]) == 0


def test_main_one_shot_failure(isolated_main, monkeypatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert cli.main(isolated_main + ["check", str(tmp_path / "missing.py")]) == 1
