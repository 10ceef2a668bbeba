# libs/budget_shared/context.py
"""
Request context carried through the orchestration stack.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AppContext:
    """
    Request-level information shared by the orchestrator, the tools and the
    conversation log.

    There is no authenticated session; ``tenant_id`` is the fixed
    organization identifier from configuration.
    """

    tenant_id: str
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert context to dictionary for logging/serialization."""
        return {
            "tenant_id": self.tenant_id,
            "correlation_id": self.correlation_id,
            "request_id": self.request_id,
        }
