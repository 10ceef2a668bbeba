"""
Shared utilities for the budget assistant project.

This package provides common configuration, logging, error handling,
middleware, and models used by the chat service.
"""

# Configuration
from .config import BaseServiceConfig

# Context helpers
from .context import AppContext

# Errors
from .errors import (
    GENERIC_FAILURE_MESSAGE,
    BudgetAssistantError,
    ConfigurationError,
    GatewayError,
    ModelInvocationError,
    ToolArgumentError,
    service_error,
    validation_error,
)

# Health check
from .health import format_health_response

# Logging
from .logging import get_logger

# Metrics
from .metrics import Metrics

# Middleware
from .middleware import CorrelationIdMiddleware, MetricsMiddleware

# Models
from .models import ErrorResponse, HealthResponse, HealthStatus

__all__ = [
    # Configuration
    "BaseServiceConfig",
    # Context
    "AppContext",
    # Errors
    "GENERIC_FAILURE_MESSAGE",
    "BudgetAssistantError",
    "ConfigurationError",
    "GatewayError",
    "ModelInvocationError",
    "ToolArgumentError",
    "service_error",
    "validation_error",
    # Health
    "format_health_response",
    # Logging
    "get_logger",
    # Metrics
    "Metrics",
    # Middleware
    "CorrelationIdMiddleware",
    "MetricsMiddleware",
    # Models
    "ErrorResponse",
    "HealthResponse",
    "HealthStatus",
]
