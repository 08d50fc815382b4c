"""
API Middleware Module

    - correlation: X-Correlation-Id propagation and request logging
    - error_handlers: DomainError and request validation responses
"""

from .correlation import CorrelationIdMiddleware
from .error_handlers import register_error_handlers

__all__ = ["CorrelationIdMiddleware", "register_error_handlers"]
