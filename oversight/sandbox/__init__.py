"""Sandbox module for repository checkout and subprocess limits."""

from oversight.sandbox.checkout import CloneFailed, build_clone_url, clone_repo, scan_workspace

__all__ = ["CloneFailed", "build_clone_url", "clone_repo", "scan_workspace"]
