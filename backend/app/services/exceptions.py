# backend/app/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The global handlers in main.py are responsible for mapping these to HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   └── EmptyInventoryError
    ├── NotFoundError
    │   ├── IdentityNotFoundError
    │   └── ProfileNotFoundError
    ├── ExternalServiceError
    │   ├── ProviderUnavailableError
    │   ├── RateLimitError
    │   ├── MalformedResponseError
    │   └── CurrencyRateUnavailableError
    └── SyncError
        ├── PriceFetchIncompleteError
        └── PersistenceError

None of these are retried by the sync pipeline: every failure is terminal for
the current sync attempt and leaves the store in its pre-sync state.
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input or fetched data fails a business rule.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class EmptyInventoryError(ValidationError):
    """
    Raised when an inventory contains no priceable items.

    This is a client-side condition, not a transient failure: retrying
    will not produce items that do not exist.
    """

    def __init__(self, user_id: str, category_marker: str) -> None:
        self.user_id = user_id
        self.category_marker = category_marker
        super().__init__(
            f"Inventory of user {user_id} doesn't contain any '{category_marker}' items",
            field="inventory",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "User", "Profile")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class IdentityNotFoundError(NotFoundError):
    """Raised when a profile name cannot be resolved to an external identity."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Profile '{name}' not found",
            resource_type="Identity",
            resource_id=name,
        )


class ProfileNotFoundError(NotFoundError):
    """Raised when the profile provider returns no profile for an identity."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"Profile for user {user_id} not found",
            resource_type="Profile",
            resource_id=user_id,
        )


# =============================================================================
# EXTERNAL SERVICE ERRORS
# =============================================================================


class ExternalServiceError(ServiceError):
    """
    Base exception for external provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(ExternalServiceError):
    """
    Raised when a provider is temporarily unavailable.

    Examples:
    - Network error or timeout
    - Server errors (500, 502, 503)

    This is the only error the gateway retries (with backoff).
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class RateLimitError(ExternalServiceError):
    """
    Raised when the provider's rate limit has been exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class MalformedResponseError(ExternalServiceError):
    """
    Raised when a provider answers with a payload we cannot interpret.

    Examples:
    - Non-JSON body
    - Missing required fields
    - Unparseable price string
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Malformed response from provider '{provider}': {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class CurrencyRateUnavailableError(ExternalServiceError):
    """
    Raised when the rate provider does not return a tracked currency.

    Attributes:
        missing: Currency codes absent from the provider response
    """

    def __init__(self, provider: str, missing: list[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(
            f"Provider '{provider}' returned no rate for: {', '.join(self.missing)}",
            provider=provider,
        )


# =============================================================================
# SYNC ERRORS
# =============================================================================


class SyncError(ServiceError):
    """
    Base exception for failures of a sync attempt.

    Attributes:
        user_id: User whose sync failed
    """

    def __init__(self, message: str, user_id: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(message)


class PriceFetchIncompleteError(SyncError):
    """
    Raised when at least one concurrent spot price lookup failed.

    The whole sync is aborted and nothing is written: a half-priced
    inventory is worse than a stale one.

    Attributes:
        failed_item_ids: Items whose lookup failed
        total: Number of lookups issued
    """

    def __init__(
            self,
            failed_item_ids: list[str],
            total: int,
            user_id: str | None = None,
    ) -> None:
        self.failed_item_ids = failed_item_ids
        self.total = total
        super().__init__(
            f"Couldn't fetch item prices: {len(failed_item_ids)} of {total} lookups failed",
            user_id=user_id,
        )


class PersistenceError(SyncError):
    """
    Raised when writing a snapshot fails.

    The transaction has been rolled back; the store is in its pre-sync state.
    """

    def __init__(self, user_id: str, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"Failed to persist snapshot for user {user_id}: {reason}",
            user_id=user_id,
        )


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "EmptyInventoryError",
    # Not Found
    "NotFoundError",
    "IdentityNotFoundError",
    "ProfileNotFoundError",
    # External services
    "ExternalServiceError",
    "ProviderUnavailableError",
    "RateLimitError",
    "MalformedResponseError",
    "CurrencyRateUnavailableError",
    # Sync
    "SyncError",
    "PriceFetchIncompleteError",
    "PersistenceError",
]
