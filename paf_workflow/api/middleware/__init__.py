"""Request middleware and exception handlers for the PAF API"""

from .correlation import CorrelationIdMiddleware, MAX_CORRELATION_ID_LENGTH
from .error_handlers import register_error_handlers

__all__ = ["CorrelationIdMiddleware", "MAX_CORRELATION_ID_LENGTH", "register_error_handlers"]
