"""Error types shared by the services and the HTTP layer."""

from __future__ import annotations


class AllInStockError(Exception):
    """Base class for expected application failures."""


class ValidationError(AllInStockError):
    """Input rejected before any store call was made."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(AllInStockError):
    def __init__(self, resource: str, resource_id: str | None = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class StoreError(AllInStockError):
    """The document store could not complete a read or write."""


class IntegrationError(AllInStockError):
    """A third-party API call failed."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class CredentialsExpiredError(IntegrationError):
    """The stored access token was rejected (HTTP 401)."""

    def __init__(self, message: str = "Access token expired or revoked."):
        super().__init__(message, status=401)
