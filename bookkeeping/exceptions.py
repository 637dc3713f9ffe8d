"""
Custom exception hierarchy for bookkeeping operations.

Exception Hierarchy:
    BookkeepingError (base)
    ├── NotFoundError               - Referenced record does not exist
    ├── MutationError               - Optimistic cache mutation failed and was rolled back
    ├── ShopifyError                - Order read API failure
    ├── BookkeepingConnectionError  - Network/timeout talking to the bookkeeping API
    └── BookkeepingAPIError         - Bookkeeping API returned an error response

    ValidationError                 - Input validation failed
"""
from typing import Any, Optional


class BookkeepingError(Exception):
    """Base exception for all bookkeeping errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class NotFoundError(BookkeepingError):
    """
    A record required by the operation does not exist.

    Raised instead of substituting a default, e.g. when payouts are
    requested for a month whose profit was never calculated.
    """

    def __init__(self, resource: str, identifier: Any, details: str = None):
        super().__init__(f"{resource} not found", details or str(identifier))
        self.resource = resource
        self.identifier = identifier


class MutationError(BookkeepingError):
    """
    Persisting an optimistic mutation failed.

    The cache has already been restored to its snapshot when this is raised;
    `cause` holds the original persistence exception.
    """

    def __init__(self, resource: str, operation: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to {operation} {resource}",
            str(cause) if cause else None,
        )
        self.resource = resource
        self.operation = operation
        self.cause = cause


class ShopifyError(BookkeepingError):
    """Shopify order API failure (HTTP error or network problem)."""

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class BookkeepingConnectionError(BookkeepingError):
    """Network-related errors talking to the bookkeeping API."""


class BookkeepingAPIError(BookkeepingError):
    """
    Bookkeeping API returned an error response.

    Check status_code for specifics; 404 means "not found / not yet calculated".
    """

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating user input before processing.
    """

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
