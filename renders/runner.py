import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .context import JobContext
from .errors import DeadlineExceededError, ProcessingError

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


@dataclass(frozen=True)
class ProcessResult:
    args: tuple
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.args)

    @property
    def output(self) -> str:
        """Captured stderr then stdout, for failure diagnostics."""
        return "\n".join(part for part in (self.stderr.strip(), self.stdout.strip()) if part)


def _pump(stream, lines: list, sink: Optional[LogSink]):
    with stream:
        for line in stream:
            line = line.rstrip("\n")
            lines.append(line)
            if sink is not None:
                sink(line)


class ProcessRunner:
    """
    Runs an external command to completion and reports how it exited.

    stderr is handed to log_sink line by line while the process runs.
    Non-zero exits are returned, not raised; callers decide what a failure
    means. Only a missing executable or a blown deadline raise here.
    """

    def run(self, args: Sequence[str], context: JobContext, *, log_sink: Optional[LogSink] = None) -> ProcessResult:
        args = tuple(str(a) for a in args)
        context.check("subprocess")
        logger.info("Running: %s", shlex.join(args))
        try:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ProcessingError(f"executable not found: {args[0]}") from e

        if log_sink is None:
            def log_sink(line):
                logger.debug("[%s] %s", args[0], line)

        stdout, stderr = [], []
        readers = [
            threading.Thread(target=_pump, args=(proc.stdout, stdout, None), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, stderr, log_sink), daemon=True),
        ]
        for reader in readers:
            reader.start()
        try:
            returncode = proc.wait(timeout=context.timeout())
        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.wait()
            raise DeadlineExceededError(f"subprocess {args[0]}") from e
        finally:
            for reader in readers:
                reader.join()

        logger.info("%s exited with %d", args[0], returncode)
        return ProcessResult(args, returncode, "\n".join(stdout), "\n".join(stderr))
