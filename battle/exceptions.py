"""
Custom exception hierarchy for the revenue battle engine.

Exception Hierarchy:
    BattleError (base)
    ├── AuthenticationError        - Webhook signature missing or invalid
    ├── ClassificationError        - Remote product lookup failed
    │   ├── ShopifyConnectionError - Network/timeout issues (recoverable)
    │   ├── ShopifyAPIError        - API returned error response
    │   ├── ShopifyDataError       - Invalid response structure
    │   └── MissingCredentialsError - No shop domain or access token
    └── StoreError                 - Redis unreachable or command failed

    ValidationError                - Webhook payload validation failed
    ConfigurationError             - Required configuration missing
"""
from typing import Any, Optional


class BattleError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class AuthenticationError(BattleError):
    """
    Webhook signature is missing or does not match.

    The sender should stop retrying on this rejection.
    """


class ClassificationError(BattleError):
    """
    Product side lookup failed.

    Aborts processing of the whole event, including line items that were
    already classified.
    """


class ShopifyConnectionError(ClassificationError):
    """
    Network-related errors (timeout, connection refused, open circuit).

    These are typically recoverable with retry.
    """

    def __init__(self, message: str, details: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class ShopifyAPIError(ClassificationError):
    """
    Shopify returned an HTTP error or a GraphQL ``errors`` payload.

    ``status_code`` is None for GraphQL-level errors on a 200 response.
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class ShopifyDataError(ClassificationError):
    """
    Shopify response has unexpected structure.
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        expected: Optional[str] = None,
        got: Optional[str] = None,
    ):
        super().__init__(message, details)
        self.expected = expected
        self.got = got


class MissingCredentialsError(ClassificationError):
    """No shop domain or access token available for the lookup."""


class StoreError(BattleError):
    """
    Key-value store is unreachable or a command failed.

    Surfaces as a server error so the sender retries later.
    """

    def __init__(self, message: str, details: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message, details)
        self.key = key


class ValidationError(Exception):
    """
    Webhook payload validation failed.

    Rejected with a client error, no state is touched.
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


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass
