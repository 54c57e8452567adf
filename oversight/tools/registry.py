"""Tool runner registry and host availability probe."""

import asyncio
import logging
from typing import Optional

from oversight.core.config import Settings
from oversight.tools.gitleaks import GitleaksRunner
from oversight.tools.semgrep import SemgrepRunner
from oversight.tools.trivy import TrivyRunner
from oversight.tools.types import ScanTool, ToolRunner

logger = logging.getLogger(__name__)

# Seconds allowed for a `--version` probe.
VERSION_PROBE_TIMEOUT = 10

VERSION_COMMANDS: dict[str, list[str]] = {
    ScanTool.DEPENDENCY_SCAN: ["trivy", "--version"],
    ScanTool.SECRET_SCAN: ["gitleaks", "version"],
    ScanTool.STATIC_ANALYSIS: ["semgrep", "--version"],
    "git": ["git", "--version"],
}


def build_runners(settings: Optional[Settings] = None) -> dict[ScanTool, ToolRunner]:
    """Return one runner per ScanTool with timeouts taken from settings."""
    if settings is None:
        return {
            ScanTool.DEPENDENCY_SCAN: TrivyRunner(),
            ScanTool.SECRET_SCAN: GitleaksRunner(),
            ScanTool.STATIC_ANALYSIS: SemgrepRunner(),
        }
    return {
        ScanTool.DEPENDENCY_SCAN: TrivyRunner(timeout=settings.dependency_scan_timeout_seconds),
        ScanTool.SECRET_SCAN: GitleaksRunner(timeout=settings.secret_scan_timeout_seconds),
        ScanTool.STATIC_ANALYSIS: SemgrepRunner(timeout=settings.static_analysis_timeout_seconds),
    }


async def probe_tool(cmd: list[str], timeout: float = VERSION_PROBE_TIMEOUT) -> dict:
    """Run a version command. Returns {"available": bool, "version": str | None}."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError:
        return {"available": False, "version": None}

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("Version probe timed out: %s", " ".join(cmd))
        return {"available": False, "version": None}

    if proc.returncode != 0:
        return {"available": False, "version": None}

    lines = stdout.decode("utf-8", errors="replace").strip().splitlines()
    return {"available": True, "version": lines[0] if lines else None}


async def check_tools() -> dict:
    """Probe every scanner (and git) on this host.

    Returns {"all_available": bool, "tools": {name: {available, version}}}.
    """
    names = list(VERSION_COMMANDS)
    statuses = await asyncio.gather(*(probe_tool(VERSION_COMMANDS[n]) for n in names))
    tools = {str(name): status for name, status in zip(names, statuses)}
    return {
        "all_available": all(s["available"] for s in statuses),
        "tools": tools,
    }
