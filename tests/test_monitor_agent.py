"""Tests for the polling file monitor."""

from __future__ import annotations

import os

import pytest

from shield_ai.agents import monitor_agent
from shield_ai.agents.monitor_agent import MonitorAgent


def _touch(path, mtime):
    os.utime(path, (mtime, mtime))


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "src" / "app.py.backup").write_text("old\n", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("//\n", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref\n", encoding="utf-8")
    (tmp_path / "vendor").mkdir()
    (tmp_path / "vendor" / "lib.py").write_text("y = 2\n", encoding="utf-8")
    for path in tmp_path.rglob("*"):
        if path.is_file():
            _touch(path, 1_000_000)
    return tmp_path


def test_iter_files_skips_hidden_excluded_and_backups(project):
    monitor = MonitorAgent(project, on_change=lambda p: None, exclude=["vendor"])

    names = [p.relative_to(project).as_posix() for p in monitor.iter_files()]

    assert names == ["src/app.py"]


def test_first_scan_is_baseline(project):
    monitor = MonitorAgent(project, on_change=lambda p: None)
    assert monitor.scan() == []


def test_scan_reports_modified_and_new_files(project):
    monitor = MonitorAgent(project, on_change=lambda p: None)
    monitor.scan()

    _touch(project / "src" / "app.py", 2_000_000)
    new_file = project / "src" / "new.py"
    new_file.write_text("z = 3\n", encoding="utf-8")

    changed = monitor.scan()

    assert sorted(changed) == sorted([project / "src" / "app.py", new_file])
    assert monitor.scan() == []


def test_single_file_target(project):
    target = project / "src" / "app.py"
    monitor = MonitorAgent(target, on_change=lambda p: None)

    assert list(monitor.iter_files()) == [target]


def test_missing_path():
    with pytest.raises(FileNotFoundError):
        MonitorAgent("/definitely/not/here", on_change=lambda p: None)


def test_run_delivers_changes(project, monkeypatch):
    seen = []
    monitor = MonitorAgent(project / "src", on_change=seen.append, interval=0)

    def fake_sleep(_seconds):
        _touch(project / "src" / "app.py", 3_000_000)

    monkeypatch.setattr(monitor_agent.time, "sleep", fake_sleep)

    assert monitor.run(max_cycles=1) == 1
    assert seen == [project / "src" / "app.py"]


def test_run_stops_on_keyboard_interrupt(project, monkeypatch):
    def interrupt(_seconds):
        raise KeyboardInterrupt

    monkeypatch.setattr(monitor_agent.time, "sleep", interrupt)
    monitor = MonitorAgent(project, on_change=lambda p: None)

    assert monitor.run() == 0
