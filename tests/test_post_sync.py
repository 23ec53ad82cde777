"""
Tests for the console commands run after a sync.
"""

import subprocess

from conftest import FakeRunner
from sw_db_sync.sync.post_sync import ConsoleRunner, clear_cache, run_post_sync_commands
from sw_db_sync.utils.process import CommandResult


def scripted_console(results):
    calls = []

    def console(command):
        calls.append(command)
        outcome = results.get(command, CommandResult(0))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    console.calls = calls
    return console


def test_each_command_runs_even_after_a_failure():
    console = scripted_console({
        "plugin:refresh": CommandResult(1, "", "Plugin not found"),
        "theme:compile": subprocess.TimeoutExpired("php", 120),
    })

    report = run_post_sync_commands(["plugin:refresh", "theme:compile", "dal:refresh:index"], console)

    assert console.calls == ["plugin:refresh", "theme:compile", "dal:refresh:index"]
    assert report.succeeded == ["dal:refresh:index"]
    assert report.failed[0] == ("plugin:refresh", "Plugin not found")
    assert report.failed[1][0] == "theme:compile"
    assert not report.ok


def test_no_commands_is_a_noop():
    console = scripted_console({})
    assert run_post_sync_commands([], console).ok
    assert console.calls == []


def test_clear_cache_failure_is_a_warning(capsys):
    console = scripted_console({"cache:clear:all": CommandResult(1, "", "boom")})
    assert clear_cache(console) is False
    assert "boom" in capsys.readouterr().out


def test_console_runner_runs_inside_project(tmp_path):
    runner = FakeRunner()
    console = ConsoleRunner(tmp_path, runner, "php bin/console")

    console("plugin:install --activate 'My Plugin'")

    call = runner.calls[0]
    assert call.argv == ["php", "bin/console", "plugin:install", "--activate", "My Plugin"]
    assert call.cwd == str(tmp_path)
    assert call.timeout == 120


def test_console_runner_custom_command(tmp_path):
    runner = FakeRunner()
    ConsoleRunner(tmp_path, runner, "ddev exec bin/console")("cache:clear:all")
    assert runner.calls[0].argv == ["ddev", "exec", "bin/console", "cache:clear:all"]
