"""
Utilities for running local and remote commands

Commands are described as data: an argument vector per stage, the stages
of a pipe, an optional output redirection. Shell text is only produced by
rendering that data with shlex.quote, when a script has to travel to the
remote shell over SSH. ProcessRunner is the single place where local
processes are started, so tests can replace it with a fake.
"""

import os
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

# Stage timeouts in seconds
SHORT_TIMEOUT = 30
LONG_TIMEOUT = 600
CONSOLE_TIMEOUT = 120

# Environment variables never shown in rendered commands
SECRET_ENV_VARS = ("MYSQL_PWD",)
MASK = "********"


@dataclass(frozen=True)
class ShellVar:
    """
    Reference to a variable of the remote shell, expanded unquoted so that
    an empty value disappears from the argument list
    """
    name: str

    def render(self) -> str:
        return f"${self.name}"


Arg = Union[str, ShellVar]


def _render_arg(arg: Arg) -> str:
    if isinstance(arg, ShellVar):
        return arg.render()
    return shlex.quote(str(arg))


@dataclass
class Command:
    """
    A single program invocation
    """
    argv: List[Arg]
    env: Dict[str, str] = field(default_factory=dict)

    def render(self, masked: bool = False) -> str:
        parts = []
        for key, value in self.env.items():
            shown = MASK if masked and key in SECRET_ENV_VARS else shlex.quote(value)
            parts.append(f"{key}={shown}")
        parts.extend(_render_arg(arg) for arg in self.argv)
        return " ".join(parts)


@dataclass
class Pipeline:
    """
    Commands connected stdout to stdin, optionally redirected to a file

    A pipe exits with the status of its last command. When status_path is
    set, the exit status of the first command is written to that file so a
    later step can check it (remote scripts only).
    """
    commands: List[Command]
    stdout_path: Optional[str] = None
    append: bool = False
    status_path: Optional[str] = None

    @classmethod
    def single(cls, argv: Sequence[Arg], env: Optional[Dict[str, str]] = None) -> "Pipeline":
        return cls([Command(list(argv), dict(env or {}))])

    def render(self, masked: bool = False) -> str:
        rendered = [command.render(masked) for command in self.commands]
        if self.status_path:
            rendered[0] = f"{{ {rendered[0]}; echo $? > {shlex.quote(self.status_path)}; }}"
        text = " | ".join(rendered)
        if self.stdout_path:
            redirect = ">>" if self.append else ">"
            text += f" {redirect} {shlex.quote(self.stdout_path)}"
        return text


@dataclass
class Probe:
    """
    Sets a shell variable depending on whether a test pipeline succeeds
    """
    test: Pipeline
    variable: str
    value: str

    def render(self, masked: bool = False) -> str:
        return (
            f"if {self.test.render(masked)}; "
            f"then {self.variable}={shlex.quote(self.value)}; "
            f"else {self.variable}=; fi"
        )


@dataclass
class RemoteScript:
    """
    Steps run in order on the remote host, stopping at the first failure
    """
    steps: List[Union[Pipeline, Probe]]

    def render(self, masked: bool = False) -> str:
        return " && ".join(step.render(masked) for step in self.steps)


@dataclass
class CommandResult:
    """
    Exit code and captured output of a finished command
    """
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """
    Runs pipelines as local processes
    """

    def run(
        self,
        pipeline: Pipeline,
        timeout: Optional[float] = None,
        input_chunks: Optional[Iterable[bytes]] = None,
        cwd: Optional[str] = None,
        echo: bool = False,
    ) -> CommandResult:
        """
        Executes a pipeline and waits for every stage to finish

        Args:
            pipeline: Commands to run
            timeout: Seconds before every stage is killed
            input_chunks: Bytes streamed to the stdin of the first stage
            cwd: Working directory of the processes
            echo: If True, prints the output of the last stage while it runs

        Returns:
            CommandResult: Exit code of the rightmost failing stage (0 if all
                           succeeded), output of the last stage, errors of all stages

        Raises:
            subprocess.TimeoutExpired: If the pipeline did not finish in time
        """
        for command in pipeline.commands:
            if any(isinstance(arg, ShellVar) for arg in command.argv):
                raise ValueError("Shell variables can only be used in remote scripts")
        if pipeline.status_path:
            raise ValueError("Exit status files can only be used in remote scripts")

        processes: List[subprocess.Popen] = []
        stdout_file = None
        try:
            if pipeline.stdout_path:
                stdout_file = open(pipeline.stdout_path, "ab" if pipeline.append else "wb")
            processes = self._spawn(pipeline, stdout_file, input_chunks is not None, cwd)
        except FileNotFoundError as e:
            self._kill(processes)
            if stdout_file:
                stdout_file.close()
            return CommandResult(127, "", str(e))

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[List[bytes]] = [[] for _ in processes]
        threads = []
        for index, process in enumerate(processes):
            threads.append(self._drain(process.stderr, stderr_chunks[index]))
        last = processes[-1]
        if last.stdout is not None:
            threads.append(self._drain(last.stdout, stdout_chunks, echo=echo))

        # Kills every stage at the deadline, even while a stdin write is blocked
        timed_out = threading.Event()
        watchdog = None
        if timeout:
            def expire():
                timed_out.set()
                self._kill(processes)

            watchdog = threading.Timer(timeout, expire)
            watchdog.daemon = True
            watchdog.start()

        try:
            if input_chunks is not None:
                self._feed(processes[0], input_chunks)
            for process in processes:
                process.wait()
        except Exception:
            # The input stream failed; the client must not keep running
            self._kill(processes)
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()
            for thread in threads:
                thread.join()
            if stdout_file:
                stdout_file.close()

        if timed_out.is_set():
            raise subprocess.TimeoutExpired(pipeline.render(masked=True), timeout)

        returncode = 0
        for process in processes:
            if process.returncode != 0:
                returncode = process.returncode

        return CommandResult(
            returncode,
            _decode(b"".join(stdout_chunks)),
            "".join(_decode(b"".join(chunks)) for chunks in stderr_chunks),
        )

    def _spawn(self, pipeline: Pipeline, stdout_file, has_input: bool, cwd: Optional[str]) -> List[subprocess.Popen]:
        processes: List[subprocess.Popen] = []
        previous_stdout = None
        for index, command in enumerate(pipeline.commands):
            is_last = index == len(pipeline.commands) - 1
            if previous_stdout is not None:
                stdin = previous_stdout
            else:
                stdin = subprocess.PIPE if has_input else subprocess.DEVNULL

            if is_last and stdout_file is not None:
                stdout = stdout_file
            else:
                stdout = subprocess.PIPE

            env = None
            if command.env:
                env = os.environ.copy()
                env.update(command.env)

            try:
                process = subprocess.Popen(
                    [str(arg) for arg in command.argv],
                    stdin=stdin,
                    stdout=stdout,
                    stderr=subprocess.PIPE,
                    env=env,
                    cwd=cwd,
                )
            except FileNotFoundError:
                if previous_stdout is not None:
                    previous_stdout.close()
                self._kill(processes)
                raise

            # Let the upstream process receive SIGPIPE if this one exits early
            if previous_stdout is not None:
                previous_stdout.close()
            previous_stdout = process.stdout if not is_last else None
            processes.append(process)
        return processes

    @staticmethod
    def _feed(process: subprocess.Popen, chunks: Iterable[bytes]) -> None:
        try:
            for chunk in chunks:
                process.stdin.write(chunk)
        except BrokenPipeError:
            # The process exited early or was killed; its exit code tells why
            pass
        finally:
            try:
                process.stdin.close()
            except BrokenPipeError:
                pass

    @staticmethod
    def _drain(stream, sink: List[bytes], echo: bool = False) -> threading.Thread:
        def read():
            for line in iter(stream.readline, b""):
                sink.append(line)
                if echo:
                    print(_decode(line), end="", flush=True)
            stream.close()

        thread = threading.Thread(target=read, daemon=True)
        thread.start()
        return thread

    @staticmethod
    def _kill(processes: List[subprocess.Popen]) -> None:
        for process in processes:
            if process.poll() is None:
                process.kill()
                process.wait()
