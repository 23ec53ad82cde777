"""
Console commands run after the database was synchronized

Commands go to the application console of the local project
(php bin/console by default). A failing command never stops the others.
"""

import shlex
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

from sw_db_sync.models import PostSyncReport
from sw_db_sync.utils.process import CONSOLE_TIMEOUT, CommandResult, Pipeline, ProcessRunner

DEFAULT_CONSOLE_COMMAND = "php bin/console"

CACHE_CLEAR_COMMAND = "cache:clear:all"

Console = Callable[[str], CommandResult]


class ConsoleRunner:
    """
    Runs application console commands inside the local project
    """

    def __init__(
        self,
        project_dir: Path,
        runner: Optional[ProcessRunner] = None,
        console_command: str = DEFAULT_CONSOLE_COMMAND,
        timeout: float = CONSOLE_TIMEOUT,
    ):
        """
        Args:
            project_dir: Root of the local project, used as working directory
            runner: Process runner used to start the console
            console_command: Program and leading arguments of the console
            timeout: Seconds before a console command is killed
        """
        self.project_dir = project_dir
        self.runner = runner or ProcessRunner()
        self.console_argv = shlex.split(console_command)
        self.timeout = timeout

    def pipeline_for(self, command: str) -> Pipeline:
        return Pipeline.single(self.console_argv + shlex.split(command))

    def __call__(self, command: str) -> CommandResult:
        """
        Executes one console command

        Raises:
            subprocess.TimeoutExpired: If the command did not finish in time
        """
        return self.runner.run(self.pipeline_for(command), timeout=self.timeout, cwd=str(self.project_dir))


def _error_text(result: CommandResult) -> str:
    return (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"


def run_post_sync_commands(commands: List[str], console: Console) -> PostSyncReport:
    """
    Runs each command through the console, one at a time

    Args:
        commands: Console commands, e.g. "plugin:refresh"
        console: Callable running a single console command

    Returns:
        PostSyncReport: Commands that succeeded and those that failed with their error
    """
    report = PostSyncReport()
    if not commands:
        return report

    print("🔄 Executing post-sync commands...")
    for command in commands:
        print(f"   • Running: {command}")
        try:
            result = console(command)
        except subprocess.TimeoutExpired:
            error = f"timed out after {CONSOLE_TIMEOUT} seconds"
        except ValueError as e:
            # Unbalanced quotes in the command string
            error = f"invalid command: {e}"
        else:
            if result.ok:
                report.succeeded.append(command)
                continue
            error = _error_text(result)

        print(f"⚠️ Failed to execute '{command}': {error}")
        report.failed.append((command, error))

    if report.ok:
        print(f"✅ {len(report.succeeded)} post-sync command(s) executed")
    else:
        print(f"⚠️ {len(report.failed)} of {len(commands)} post-sync command(s) failed")
    return report


def clear_cache(console: Console) -> bool:
    """
    Clears every application cache, warning on failure

    Returns:
        bool: True if the cache was cleared
    """
    print("🧹 Clearing cache...")
    try:
        result = console(CACHE_CLEAR_COMMAND)
    except subprocess.TimeoutExpired:
        print(f"⚠️ Cache clear timed out after {CONSOLE_TIMEOUT} seconds")
        return False

    if not result.ok:
        print(f"⚠️ Cache clear failed: {_error_text(result)}")
        return False

    print("✅ Cache cleared successfully")
    return True
