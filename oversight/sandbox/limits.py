"""rlimits and teardown for the git and scanner child processes.

`apply_resource_limits` is the `preexec_fn` of every subprocess this
service spawns; it runs in the child between fork and exec. Stage timeouts
bound wall-clock time, these limits bound memory and CPU.

Trivy maps its vulnerability DB and Semgrep its rule packs, so the address
space default is generous (8 GB). Both values can be overridden:

    OVERSIGHT_RLIMIT_AS_BYTES       0 or less leaves RLIMIT_AS untouched
    OVERSIGHT_RLIMIT_CPU_SECONDS    0 or less falls back to the default
"""

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

GIB = 1024 ** 3

DEFAULT_ADDRESS_SPACE_BYTES = 8 * GIB
DEFAULT_CPU_SECONDS = 900

ADDRESS_SPACE_ENV = "OVERSIGHT_RLIMIT_AS_BYTES"
CPU_SECONDS_ENV = "OVERSIGHT_RLIMIT_CPU_SECONDS"


def _env_int(name: str) -> Optional[int]:
    raw = (os.environ.get(name) or "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class ResourceLimits:
    address_space_bytes: Optional[int]
    cpu_seconds: int

    @classmethod
    def from_env(cls) -> "ResourceLimits":
        address_space = _env_int(ADDRESS_SPACE_ENV)
        if address_space is None:
            address_space = DEFAULT_ADDRESS_SPACE_BYTES
        elif address_space <= 0:
            address_space = None

        cpu = _env_int(CPU_SECONDS_ENV)
        if cpu is None or cpu <= 0:
            cpu = DEFAULT_CPU_SECONDS

        return cls(address_space_bytes=address_space, cpu_seconds=cpu)


def apply_resource_limits() -> None:
    """preexec_fn hook. Never raises; does nothing on Windows."""
    if sys.platform == "win32":
        return

    try:
        import resource

        limits = ResourceLimits.from_env()
        if limits.address_space_bytes:
            resource.setrlimit(resource.RLIMIT_AS, (limits.address_space_bytes, resource.RLIM_INFINITY))
        resource.setrlimit(resource.RLIMIT_CPU, (limits.cpu_seconds, resource.RLIM_INFINITY))
    except (ImportError, ValueError, OSError) as exc:
        logger.warning("Could not apply child resource limits: %s", exc)
        return

    logger.debug(
        "Child resource limits: address_space=%s cpu=%ds",
        f"{limits.address_space_bytes / GIB:.1f}GB" if limits.address_space_bytes else "unlimited",
        limits.cpu_seconds,
    )


async def kill_child(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* if it is still running and reap it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            # exited between the check and the kill
            pass
    await proc.wait()
