"""
Core Exceptions
================

Custom exceptions for the command center.

Domain and application layers raise these; controllers and the CLI translate
them at the boundary (HTTP status codes, exit codes, per-record counters).
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ConcurrencyException(DomainException):
    """Raised when an append races another writer on the same aggregate."""

    def __init__(
        self,
        aggregate_id: str,
        expected_version: Optional[int],
        actual_version: int,
        details: Optional[dict] = None
    ):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict on aggregate {aggregate_id}: "
            f"expected {expected_version}, actual {actual_version}",
            details or {
                "aggregate_id": aggregate_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )


class ProjectionException(DomainException):
    """Raised when a projector cannot apply an event or is halted."""

    def __init__(
        self,
        projector_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.projector_name = projector_name
        super().__init__(f"{projector_name}: {message}", details)


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)
