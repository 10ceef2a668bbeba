# libs/budget_shared/health.py
"""
Health check utilities.
"""

from typing import Any, Dict, Iterable

from .models import HealthResponse, HealthStatus


def format_health_response(
    details: Dict[str, Any], version: str, required: Iterable[str] = ()
) -> HealthResponse:
    """
    Create a standardized health response.

    The status degrades to WARNING when any detail named in ``required``
    is falsy (e.g. a dependency that is not configured).

    Args:
        details: Service-specific health details
        version: Service version
        required: Detail keys that must be truthy for an OK status

    Returns:
        Formatted health response
    """
    missing = [key for key in required if not details.get(key)]
    status = HealthStatus.WARNING if missing else HealthStatus.OK
    if missing:
        details = {**details, "degraded": missing}
    return HealthResponse(status=status, details=details, version=version)
