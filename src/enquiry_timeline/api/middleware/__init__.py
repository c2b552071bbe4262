"""API middleware package."""

from src.enquiry_timeline.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
