"""Custom exceptions for the dashboard service."""
from typing import Optional


class DashboardError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str = "An internal error occurred", status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"message": self.message, "status": "error"}


class PageFetchError(DashboardError):
    """One page of a collection could not be fetched (non-fatal)."""

    def __init__(self, resource: str, page: int, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to fetch {resource} page {page}{detail}", 502)
        self.resource = resource
        self.page = page
        self.cause = cause


class LoadAbortedError(DashboardError):
    """A whole progressive load failed at its boundary (fatal for that load)."""

    def __init__(self, resource: str, cause: Optional[BaseException] = None):
        super().__init__(f"Loading {resource} failed: {cause}", 502)
        self.resource = resource
        self.cause = cause


class InvalidTransitionError(DashboardError):
    """A load store was asked to move between phases that are not connected."""

    def __init__(self, source, target):
        super().__init__(f"Illegal load transition {source} -> {target}", 500)
        self.source = source
        self.target = target


class NotFoundError(DashboardError):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class MutationConflictError(DashboardError):
    """A mutation for the same entity is already awaiting server confirmation."""

    def __init__(self, message: str = "Another change is still pending"):
        super().__init__(message, 409)
