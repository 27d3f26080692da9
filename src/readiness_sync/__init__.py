"""Cross-board readiness reconciliation for monday.com boards."""

from readiness_sync.errors import (
    ConfigurationError,
    NetworkError,
    NotFoundError,
    ReadinessSyncError,
    RemoteRejectedError,
)
from readiness_sync.models import ReconciliationOutcome, RunSummary

__version__ = "0.3.0"

__all__ = [
    "ConfigurationError",
    "NetworkError",
    "NotFoundError",
    "ReadinessSyncError",
    "ReconciliationOutcome",
    "RemoteRejectedError",
    "RunSummary",
    "__version__",
]
