"""
Utilities for SSH operations with remote servers
"""

import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import paramiko

from sw_db_sync.models import SshTarget
from sw_db_sync.utils.process import (
    CommandResult,
    LONG_TIMEOUT,
    Pipeline,
    ProcessRunner,
    RemoteScript,
)

DEFAULT_SSH_CONFIG = "~/.ssh/config"

# Fragments of ssh error output that point to keys, host keys or firewalls
AUTH_FAILURE_MARKERS = (
    "Permission denied",
    "Host key verification failed",
    "Connection refused",
)


def lookup_host_config(host: str, config_file: Optional[str] = DEFAULT_SSH_CONFIG) -> Dict[str, Any]:
    """
    Reads the settings of a host from the user's SSH configuration file

    Args:
        host: SSH host or alias
        config_file: Path of the SSH configuration file, None to skip the lookup

    Returns:
        Dict[str, Any]: Settings found for the host (empty if there is no file)
    """
    if not config_file:
        return {}

    user_config_file = os.path.expanduser(config_file)
    if not os.path.exists(user_config_file):
        return {}

    ssh_config = paramiko.SSHConfig()
    with open(user_config_file) as f:
        ssh_config.parse(f)

    return ssh_config.lookup(host)


def expand_key_path(key_path: str) -> str:
    """
    Expands ~ in an identity file path
    """
    return os.path.expanduser(key_path)


def ssh_options(target: SshTarget) -> List[str]:
    """
    Builds the ssh options used for every connection to a target

    Args:
        target: Remote environment

    Returns:
        List[str]: Options, without the ssh program name
    """
    options = [
        "-o", "StrictHostKeyChecking=accept-new",
        "-p", str(target.port),
    ]
    if target.key_path:
        options.extend(["-i", expand_key_path(target.key_path)])
    return options


def ssh_command_string(target: SshTarget) -> str:
    """
    Renders the ssh invocation as one string, as rsync -e expects it
    """
    return shlex.join(["ssh"] + ssh_options(target))


def is_auth_failure(error_output: str) -> bool:
    """
    Tells whether ssh failed because of authentication or connectivity
    """
    return any(marker in error_output for marker in AUTH_FAILURE_MARKERS)


class RemoteShell:
    """
    Executes scripts on a remote environment through the ssh client
    """

    def __init__(self, target: SshTarget, runner: Optional[ProcessRunner] = None, verbose: bool = False):
        """
        Args:
            target: Remote environment
            runner: Process runner used to start ssh
            verbose: If True, prints every remote command (secrets masked)
        """
        self.target = target
        self.runner = runner or ProcessRunner()
        self.verbose = verbose

    def command_for(self, script: Union[RemoteScript, Pipeline]) -> Pipeline:
        """
        Wraps a remote script into the local ssh invocation that runs it
        """
        argv = ["ssh"] + ssh_options(self.target) + [self.target.destination, script.render()]
        return Pipeline.single(argv)

    def execute(self, script: Union[RemoteScript, Pipeline], timeout: float) -> CommandResult:
        """
        Executes a script on the remote server

        Args:
            script: Script to run in the remote shell
            timeout: Seconds before the ssh process is killed

        Returns:
            CommandResult: Exit code and output of the remote command

        Raises:
            subprocess.TimeoutExpired: If the command did not finish in time
        """
        if self.verbose:
            print(f"🔄 Executing remote command: {script.render(masked=True)}")

        result = self.runner.run(self.command_for(script), timeout=timeout)

        if not result.ok and self.verbose:
            print(f"⚠️ The command returned exit code {result.returncode}")
        return result


def run_rsync(
    source: str,
    dest: Union[str, Path],
    target: SshTarget,
    runner: Optional[ProcessRunner] = None,
    options: Optional[List[str]] = None,
    timeout: float = LONG_TIMEOUT,
    verbose: bool = False,
) -> CommandResult:
    """
    Executes rsync over the SSH settings of a target

    Args:
        source: Source of the copy (can be local or remote)
        dest: Destination of the copy (can be local or remote)
        target: Remote environment whose SSH options are used
        runner: Process runner used to start rsync
        options: Options for rsync (defaults to archive + compression)
        timeout: Seconds before rsync is killed
        verbose: If True, shows rsync progress in real time

    Returns:
        CommandResult: Exit code and output of rsync

    Raises:
        subprocess.TimeoutExpired: If the transfer did not finish in time
    """
    if options is None:
        options = ["-az", "--partial"]
    if verbose:
        options = options + ["--progress"]

    argv = ["rsync", "-e", ssh_command_string(target)] + options + [source, str(dest)]
    pipeline = Pipeline.single(argv)

    if verbose:
        print(f"🔄 Executing: {pipeline.render()}")

    return (runner or ProcessRunner()).run(pipeline, timeout=timeout, echo=verbose)
