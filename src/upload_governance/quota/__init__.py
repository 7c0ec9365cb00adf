"""
Upload Governance Quota Module.

Sliding-window admission control with device-local history storage.
"""

from .models import AdmissionDecision, DenialReason, QuotaExceeded, UsageStats
from .store import InMemoryQuotaStore, JsonFileQuotaStore, QuotaStore
from .controller import AdmissionController

__all__ = [
    # Models
    "AdmissionDecision",
    "DenialReason",
    "QuotaExceeded",
    "UsageStats",
    # Storage
    "QuotaStore",
    "InMemoryQuotaStore",
    "JsonFileQuotaStore",
    # Controller
    "AdmissionController",
]
