# backend/app/services/gateway/base.py
"""
Abstract interfaces for the external services the sync pipeline consumes.

Two provider roles exist:
- InventoryProvider: name resolution, profile, raw inventory, spot prices
- CurrencyRateProvider: conversion rates from the base currency

The sync and valuation services depend only on these abstractions, so the
concrete HTTP adapters (steam.py, currency.py) can be replaced by mocks in
tests or by other marketplaces later.

Retry Behavior:
    ExternalProvider._execute_with_retry retries ProviderUnavailableError
    (network errors, timeouts, 5xx) with exponential backoff. RateLimitError
    is NOT retried: hammering a rate-limited endpoint only extends the ban,
    and the all-or-nothing sync would fail anyway.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.services.exceptions import ProviderUnavailableError

logger = logging.getLogger(__name__)

# Type variable for generic return type in retry method
T = TypeVar('T')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class IdentityResult:
    """
    Outcome of resolving a profile name to an external identity.

    Attributes:
        external_id: Provider identity (None when not found)
        found: Whether the name resolved
    """

    external_id: str | None
    found: bool


@dataclass(frozen=True)
class ProfileInfo:
    """
    Display data of a user profile.

    Attributes:
        external_id: Provider identity (Steam64 id)
        display_name: Current nickname
        avatar_ref: Avatar hash used to build image URLs
        vanity_name: Name the profile was resolved from (if any)
    """

    external_id: str
    display_name: str
    avatar_ref: str
    vanity_name: str | None = None


@dataclass(frozen=True)
class OwnedUnit:
    """One owned copy of an item (identity only; descriptions are separate)."""

    item_id: str


@dataclass(frozen=True)
class ItemDescription:
    """
    Catalog description of an item as reported by the inventory provider.

    Attributes:
        item_id: Catalog identity shared by all copies (Steam classid)
        name: Display name, also used as the market lookup key
        icon_ref: Icon hash used to build image URLs
        marketable: Whether the item may be listed on the market
    """

    item_id: str
    name: str
    icon_ref: str
    marketable: bool


@dataclass
class RawInventory:
    """
    Raw inventory payload: owned units plus a separate description list.

    Descriptions may repeat the same item identity; normalization deduplicates.
    """

    owned_units: list[OwnedUnit] = field(default_factory=list)
    descriptions: list[ItemDescription] = field(default_factory=list)


# =============================================================================
# ABSTRACT BASE CLASSES
# =============================================================================

class ExternalProvider(ABC):
    """
    Base class for every external adapter.

    Subclasses can override the retry configuration by setting class
    attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 2)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 4)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)
    """

    MAX_RETRY_ATTEMPTS: int = 2
    RETRY_MIN_WAIT: float = 1
    RETRY_MAX_WAIT: float = 4
    RETRY_MULTIPLIER: float = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Used for logging and error messages.
        """
        pass

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Retries only ProviderUnavailableError; everything else (rate limits,
        malformed payloads, not found) propagates on the first occurrence.

        Returns:
            Return value of func

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(ProviderUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()

    def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None


class InventoryProvider(ExternalProvider):
    """
    Source of identities, profiles, inventories and spot prices.
    """

    @abstractmethod
    def resolve_identity(self, name: str) -> IdentityResult:
        """
        Resolve a profile name to an external identity.

        Returns:
            IdentityResult with found=False when the name is unknown

        Raises:
            ExternalServiceError: Provider failure
        """
        pass

    @abstractmethod
    def fetch_profile(self, external_id: str) -> ProfileInfo:
        """
        Fetch display data for an identity.

        Raises:
            ProfileNotFoundError: No profile for this identity
            ExternalServiceError: Provider failure
        """
        pass

    @abstractmethod
    def fetch_raw_inventory(self, external_id: str) -> RawInventory:
        """
        Fetch the raw inventory of an identity.

        Raises:
            ExternalServiceError: Provider failure (including private inventories)
        """
        pass

    @abstractmethod
    def fetch_spot_price(self, item_name: str) -> Decimal:
        """
        Fetch the current spot price of an item in the base currency.

        Raises:
            RateLimitError: Market endpoint throttled the request
            MalformedResponseError: No price in the response
            ProviderUnavailableError: Network error / timeout / 5xx
        """
        pass


class CurrencyRateProvider(ExternalProvider):
    """
    Source of conversion rates from a base currency.
    """

    @abstractmethod
    def fetch_currency_rates(self, base_code: str) -> dict[str, Decimal]:
        """
        Fetch conversion rates for a base currency.

        Args:
            base_code: ISO 4217 code, e.g. "USD"

        Returns:
            Mapping of upper-case currency code to rate
            (1 base = rate units of code)

        Raises:
            ExternalServiceError: Provider failure
        """
        pass
