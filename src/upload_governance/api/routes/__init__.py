"""
API route handlers.

This package contains all route definitions for the Upload Governance API.
"""

from upload_governance.api.routes import cleanup, health, quota

__all__ = [
    "cleanup",
    "health",
    "quota",
]
