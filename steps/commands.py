"""
Command Execution

Thin wrapper over subprocess used by every step handler, plus the
parsers that turn tool output into failure lists.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from core.schemas.errors import StepCommandException
from core.schemas.steps import TestEvent


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Runs an external command to completion."""

    def __call__(
        self,
        args: Sequence[str],
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        ...


def run_command(
    args: Sequence[str],
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run ``args`` in ``cwd`` and capture its output.

    A non-zero exit status is returned, not raised; failing to start
    the command at all (missing binary, bad directory, timeout) raises
    StepCommandException.
    """
    logger.info(f"Running command: {' '.join(args)} (dir={cwd})")
    try:
        proc = subprocess.run(
            list(args),
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise StepCommandException(
            f"Could not run {args[0]}: {e}",
            command=list(args),
        ) from e
    return CommandResult(
        args=tuple(args),
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )


def command_failed(result: CommandResult, what: str) -> StepCommandException:
    """Build the exception raised when a command's failure cannot be evaluated."""
    logger.error(
        f"Error running {what}: exit={result.returncode} "
        f"stderr={result.stderr.strip()!r} stdout={result.stdout.strip()!r}"
    )
    return StepCommandException(
        f"{what} exited with status {result.returncode}",
        command=list(result.args),
        returncode=result.returncode,
        stderr=result.stderr.strip() or None,
    )


def non_empty_lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if line.strip()]


def parse_test_events(stdout: str) -> list[TestEvent]:
    """
    Parse ``go test -json`` output, one JSON object per line.

    Lines that are not JSON objects (build noise) are skipped; a line
    that looks like an object but does not parse raises ValueError.
    """
    events = []
    for line in non_empty_lines(stdout):
        line = line.strip()
        if not line.startswith("{"):
            continue
        events.append(TestEvent.model_validate(json.loads(line)))
    return events


def failed_tests(events: list[TestEvent]) -> list[TestEvent]:
    """Events for individual tests that failed (package-level events excluded)."""
    return [e for e in events if e.action == "fail" and e.test]


# path/to/file.go:12:5: message   or   path/to/file.go:12: message
_GO_FILE_POSITION = re.compile(r"^\s*(?:\./)?(?P<file>[^\s:]+\.go):\d+(?::\d+)?:")


def failed_go_files(output: str) -> list[str]:
    """Files named by compiler-style ``file.go:line:`` diagnostics, first-seen order."""
    files: list[str] = []
    for line in output.splitlines():
        match = _GO_FILE_POSITION.match(line)
        if match and match.group("file") not in files:
            files.append(match.group("file"))
    return files


def porcelain_paths(output: str) -> list[str]:
    """Paths listed by ``git status --porcelain``."""
    paths = []
    for line in output.splitlines():
        if len(line) > 3:
            paths.append(line[3:].strip())
    return paths
