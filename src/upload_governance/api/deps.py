"""
Request dependencies shared by the route modules.
"""

from fastapi import Request

from upload_governance.services import GovernanceServices, build_services


def get_services(request: Request) -> GovernanceServices:
    """Return the app's services, building them on first use."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services
