"""
Upload Governance API Module.

Operator REST API for quota inspection and retention passes.
"""

from upload_governance.api.app import create_app

__all__ = ["create_app"]
