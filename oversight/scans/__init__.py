"""Scan jobs: state machine, job store, orchestration, alerts and HTTP API."""

from oversight.scans.models import ScanJob, ScanResults, ScanStatus
from oversight.scans.orchestrator import ScanOrchestrator
from oversight.scans.store import JobStore

__all__ = ["JobStore", "ScanJob", "ScanOrchestrator", "ScanResults", "ScanStatus"]
