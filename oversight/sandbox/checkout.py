"""Repository fetching for scan jobs.

Clones a repository (shallow, depth 1) into a per-job ephemeral workspace.
The clone URL embeds a short-lived credential, so:
  - only HTTPS URLs are accepted;
  - the credential is masked in every log line and error message.

A failed or timed-out clone raises CloneFailed and is never retried; the
caller may resubmit the scan.

The workspace is owned by the job that created it. `scan_workspace()`
removes it on every exit path, including when it was never fully created.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import quote, urlparse, urlunparse

from oversight.sandbox.limits import apply_resource_limits, kill_child

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"

# Seconds allowed for `git clone` before the job fails.
CLONE_TIMEOUT = 120

WORKSPACE_PREFIX = "oversight-scan-"


class CloneFailed(Exception):
    """Raised when the repository cannot be cloned.

    `output` holds the captured git diagnostics with credentials masked.
    """

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


def redact_repo_url(url: str) -> str:
    """Return a clone URL safe to write into logs."""
    parsed = urlparse(url)
    if parsed.username is None:
        return url

    host = parsed.hostname or ""
    if not host:
        return url

    port = f":{parsed.port}" if parsed.port else ""
    if parsed.password is not None:
        auth = f"{parsed.username}:***@"
    else:
        auth = "***@"

    return urlunparse(parsed._replace(netloc=f"{auth}{host}{port}"))


def _mask(text: str, repo_url: str) -> str:
    """Remove any credential of *repo_url* that git echoed into *text*."""
    parsed = urlparse(repo_url)
    for secret in (parsed.password, parsed.username):
        if secret:
            text = text.replace(secret, "***")
    return text


def build_clone_url(repo_full_name: str, token: Optional[str] = None) -> str:
    """Build the HTTPS clone URL for ``owner/repo``, embedding *token* if given."""
    path = f"/{repo_full_name.strip('/')}.git"
    if token:
        netloc = f"x-access-token:{quote(token, safe='')}@{GITHUB_HOST}"
    else:
        netloc = GITHUB_HOST
    return urlunparse(("https", netloc, path, "", "", ""))


def validate_repo_url(url: str) -> None:
    """Reject anything but an HTTPS URL with a hostname.

    Raises:
        CloneFailed: If the URL is empty, not HTTPS, or has no hostname.
    """
    if not url:
        raise CloneFailed("Repository URL must not be empty")

    parsed = urlparse(url)
    safe_url = redact_repo_url(url)

    if parsed.scheme != "https":
        raise CloneFailed(
            f"Repository URL must use HTTPS (got scheme '{parsed.scheme}'): {safe_url}"
        )
    if not parsed.hostname:
        raise CloneFailed(f"Repository URL has no hostname: {safe_url}")


async def clone_repo(
    repo_url: str,
    target_dir: Path,
    depth: int = 1,
    timeout: float = CLONE_TIMEOUT,
) -> Path:
    """Shallow-clone *repo_url* into *target_dir*.

    *target_dir* must not exist yet or be empty; git creates it.

    Returns the path to the cloned repo root.

    Raises:
        CloneFailed: On non-HTTPS URL, missing git, non-zero exit or timeout.
    """
    validate_repo_url(repo_url)
    safe_url = redact_repo_url(repo_url)

    cmd = ["git", "clone", "--depth", str(depth), repo_url, str(target_dir)]
    logger.info("Cloning %s into %s", safe_url, target_dir)

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            preexec_fn=apply_resource_limits,
        )
    except FileNotFoundError as exc:
        raise CloneFailed("git is not installed or not on PATH") from exc

    try:
        _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await kill_child(proc)
        raise CloneFailed(
            f"git clone timed out after {timeout:g} seconds: {safe_url}",
        )
    except BaseException:
        await kill_child(proc)
        raise

    diagnostics = _mask(stderr.decode("utf-8", errors="replace").strip(), repo_url)
    if proc.returncode != 0:
        raise CloneFailed(
            f"git clone failed (exit {proc.returncode}): {diagnostics}",
            output=diagnostics,
        )

    logger.info("Clone complete: %s", target_dir)
    return Path(target_dir)


@contextmanager
def scan_workspace(root: Path | str, scan_id: str) -> Iterator[Path]:
    """Create a per-scan ephemeral directory and always remove it afterwards.

    Yields the workspace directory. The clone goes into ``<workspace>/repo``
    and tool report files sit next to it, so one rmtree clears everything.
    """
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    workspace = Path(tempfile.mkdtemp(prefix=f"{WORKSPACE_PREFIX}{scan_id}-", dir=root))
    logger.debug("Created workspace %s", workspace)
    try:
        yield workspace
    finally:
        shutil.rmtree(workspace, ignore_errors=True)
        logger.debug("Removed workspace %s", workspace)
