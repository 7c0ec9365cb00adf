"""
Upload Governance - admission control and retention for uploaded artifacts.

Throttles how often a principal may upload and reclaims stored artifacts
once they outlive their time-to-live, keeping a blob store and a metadata
index consistent under partial failure.
"""

__version__ = "0.1.0"

# Service wiring is available but not exported by default
# Import explicitly: from upload_governance.services import build_services

__all__ = ["__version__"]
