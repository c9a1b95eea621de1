from __future__ import annotations

import os
import shutil
import signal
import subprocess  # noqa: S404
from typing import TYPE_CHECKING

import pyperclip
from pydantic import BaseModel, ConfigDict, Field

from megaprompter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

TIMEOUT_EXIT_CODE = 124
START_FAILURE_EXIT_CODE = -1
KILL_GRACE_SECONDS = 0.25


class ExecResult(BaseModel):
    """Outcome of an external command.

    Attributes:
        exit_code: Process exit status; 124 on timeout, -1 if it never started.
        stdout: Captured standard output (UTF-8, lossy).
        stderr: Captured standard error (UTF-8, lossy).
    """

    model_config = ConfigDict(frozen=True)

    exit_code: int = Field(..., description="Exit status")
    stdout: str = Field(default="", description="Captured stdout")
    stderr: str = Field(default="", description="Captured stderr")

    @property
    def timed_out(self) -> bool:
        return self.exit_code == TIMEOUT_EXIT_CODE


def which(name: str) -> str | None:
    """Locate an executable on PATH."""
    return shutil.which(name)


def _terminate(proc: subprocess.Popen[bytes]) -> tuple[bytes, bytes]:
    """Stop a timed-out child (and its process group), then drain its pipes."""
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGTERM)
        except OSError:
            proc.terminate()
    else:
        proc.terminate()
    try:
        return proc.communicate(timeout=KILL_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        pass
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except OSError:
            proc.kill()
    else:
        proc.kill()
    return proc.communicate()


def run_command(
    command: str,
    args: Sequence[str],
    cwd: Path,
    timeout_seconds: float,
) -> ExecResult:
    """Run a command with a hard timeout, capturing both output streams.

    Both pipes are drained concurrently by `communicate`, so a chatty child
    cannot deadlock on a full pipe. On timeout the child's process group is
    sent SIGTERM, then SIGKILL after a short grace period, and the result
    carries exit code 124 with whatever output was produced so far.

    Args:
        command (str): executable name or path
        args (Sequence[str]): arguments, without the executable
        cwd (Path): working directory
        timeout_seconds (float): wall-clock limit; values below 1 become 1

    Returns:
        ExecResult: exit code and decoded output
    """
    timeout = max(1.0, float(timeout_seconds))
    try:
        proc = subprocess.Popen(  # noqa: S603
            [command, *args],
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=hasattr(os, "killpg"),
        )
    except OSError as e:
        return ExecResult(
            exit_code=START_FAILURE_EXIT_CODE,
            stdout="",
            stderr=f"Failed to start {command}: {e}",
        )

    try:
        out, err = proc.communicate(timeout=timeout)
        exit_code = proc.returncode
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s %s", timeout, command, " ".join(args))
        out, err = _terminate(proc)
        exit_code = TIMEOUT_EXIT_CODE

    return ExecResult(
        exit_code=exit_code,
        stdout=(out or b"").decode("utf-8", errors="replace"),
        stderr=(err or b"").decode("utf-8", errors="replace"),
    )


def copy_to_clipboard(text: str) -> bool:
    """Copy `text` to the system clipboard.

    Returns:
        bool: True if the clipboard accepted the text, False when no clipboard
        mechanism is available.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.warning("Clipboard not available: %s", e)
        return False
    return True
