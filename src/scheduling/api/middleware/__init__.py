"""API middleware package."""

from src.scheduling.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
