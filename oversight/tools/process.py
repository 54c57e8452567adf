"""Bounded execution of one external scanner process.

All three scanners are driven the same way:

1. Spawn the executable with a report-file path argument. Output is read
   from that file, never from stdout: some hosts buffer or truncate large
   stdout captures, and the JSON reports can run to many megabytes.
2. Wait with a fixed wall-clock timeout; on expiry kill and reap the child.
3. Read the report file, then delete it whatever happened.
4. Let the tool-specific parser turn the report into a ToolResult.

Exit codes are recorded but never decide success: every scanner here
exits non-zero to mean "findings were found". Only the report content
matters. A missing or empty report is zero findings; a non-empty report
that does not parse is a parse error.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from oversight.sandbox.limits import apply_resource_limits, kill_child
from oversight.tools.types import ScanTool, ToolOutcome, ToolResult, ToolStatus

logger = logging.getLogger(__name__)

# Characters of stderr kept in debug info and error messages.
STDERR_PREVIEW_CHARS = 500


def relative_to_repo(file_path: str, repo_dir: Path) -> str:
    """Strip the clone root from a path reported by a scanner."""
    root = str(repo_dir)
    if file_path.startswith(root):
        return file_path[len(root):].lstrip("/")
    return file_path


class ToolProcessError(Exception):
    """Raised inside the process layer; always converted to a ToolOutcome."""

    def __init__(self, status: ToolStatus, message: str):
        self.status = status
        super().__init__(message)


@dataclass
class ProcessRun:
    """What a finished scanner process left behind."""

    exit_code: Optional[int]
    output: str
    stderr: str
    duration_seconds: float

    def debug_info(self) -> dict:
        return {
            "exit_code": self.exit_code,
            "output_length": len(self.output),
            "stderr_length": len(self.stderr),
            "stderr_preview": self.stderr[:STDERR_PREVIEW_CHARS],
        }


async def run_tool_process(
    cmd: list[str],
    report_path: Path,
    timeout: float,
    install_hint: str,
    env: Optional[dict[str, str]] = None,
) -> ProcessRun:
    """Run *cmd*, wait at most *timeout* seconds, and return the report contents.

    The report file is removed on every exit path.

    Raises:
        ToolProcessError: NOT_INSTALLED if the executable is missing,
            TIMEOUT if the deadline passes, CRASHED if the process could not
            be started or was killed by a signal.
    """
    start = time.monotonic()
    try:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                preexec_fn=apply_resource_limits,
            )
        except FileNotFoundError as exc:
            raise ToolProcessError(ToolStatus.NOT_INSTALLED, install_hint) from exc
        except OSError as exc:
            raise ToolProcessError(
                ToolStatus.CRASHED, f"Failed to start {cmd[0]}: {exc}"
            ) from exc

        try:
            _stdout, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await kill_child(proc)
            raise ToolProcessError(
                ToolStatus.TIMEOUT, f"{cmd[0]} timed out after {timeout:g} seconds"
            )
        except BaseException:
            # Cancelled from outside: the scanner must not outlive the job.
            await kill_child(proc)
            raise

        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
        if proc.returncode is not None and proc.returncode < 0:
            raise ToolProcessError(
                ToolStatus.CRASHED,
                f"{cmd[0]} was killed by signal {-proc.returncode}: "
                f"{stderr[:STDERR_PREVIEW_CHARS].strip()}",
            )

        try:
            output = report_path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            # Some tools skip writing the report when nothing was found.
            output = ""

        return ProcessRun(
            exit_code=proc.returncode,
            output=output,
            stderr=stderr,
            duration_seconds=time.monotonic() - start,
        )
    finally:
        report_path.unlink(missing_ok=True)


class ScannerRunner:
    """Base class for the tool runners.

    Subclasses set the class attributes and implement `build_command` and
    `parse`. `parse` receives decoded JSON and may raise KeyError,
    TypeError or ValueError on a malformed report; those become
    PARSE_ERROR outcomes.
    """

    tool: ScanTool
    executable: str
    install_hint: str
    default_timeout: float = 300

    def __init__(self, timeout: Optional[float] = None, report_dir: Optional[Path] = None):
        self.timeout = timeout if timeout is not None else self.default_timeout
        self.report_dir = Path(report_dir) if report_dir else None

    def build_command(self, repo_dir: Path, report_path: Path) -> list[str]:
        raise NotImplementedError

    def build_env(self) -> Optional[dict[str, str]]:
        return None

    def parse(self, report: Any, repo_dir: Path) -> ToolResult:
        raise NotImplementedError

    def _report_path(self, repo_dir: Path) -> Path:
        # Sibling of the clone, inside the job workspace, so the workspace
        # cleanup also catches anything left behind.
        directory = self.report_dir or repo_dir.parent
        return directory / f"{self.tool}-report-{uuid.uuid4().hex[:8]}.json"

    async def run(self, repo_dir: Path) -> ToolOutcome:
        """Run the scanner against *repo_dir*. Never raises."""
        repo_dir = Path(repo_dir)
        report_path = self._report_path(repo_dir)
        cmd = self.build_command(repo_dir, report_path)
        logger.info("Running %s: %s", self.tool, " ".join(cmd))

        start = time.monotonic()
        try:
            process = await run_tool_process(
                cmd,
                report_path=report_path,
                timeout=self.timeout,
                install_hint=self.install_hint,
                env=self.build_env(),
            )
        except ToolProcessError as exc:
            logger.warning("%s failed (%s): %s", self.tool, exc.status, exc)
            return ToolOutcome.failed(
                self.tool, exc.status, str(exc), time.monotonic() - start
            )

        outcome = self._parse_output(process, repo_dir)
        logger.info(
            "%s finished: status=%s findings=%d exit=%s (%.1fs)",
            self.tool,
            outcome.status,
            outcome.result.finding_count if outcome.result else 0,
            process.exit_code,
            process.duration_seconds,
        )
        return outcome

    def _parse_output(self, process: ProcessRun, repo_dir: Path) -> ToolOutcome:
        duration = process.duration_seconds

        if not process.output.strip():
            result = ToolResult(tool=self.tool, debug=process.debug_info())
            return ToolOutcome(
                tool=self.tool,
                status=ToolStatus.EMPTY,
                result=result,
                duration_seconds=duration,
            )

        try:
            report = json.loads(process.output)
            result = self.parse(report, repo_dir)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            return ToolOutcome.failed(
                self.tool,
                ToolStatus.PARSE_ERROR,
                f"Failed to parse {self.executable} output: {exc}",
                duration,
            )

        result.debug = process.debug_info()
        return ToolOutcome(
            tool=self.tool,
            status=ToolStatus.SUCCESS,
            result=result,
            duration_seconds=duration,
        )
