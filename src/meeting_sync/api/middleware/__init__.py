"""API middleware package."""

from src.meeting_sync.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
