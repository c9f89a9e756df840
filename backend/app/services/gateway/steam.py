# backend/app/services/gateway/steam.py
"""
Steam implementation of InventoryProvider.

Endpoints used:
- ISteamUser/ResolveVanityURL     name -> Steam64 id (needs API key)
- ISteamUser/GetPlayerSummaries   Steam64 id -> nickname, avatar hash (needs API key)
- steamcommunity.com/inventory    Steam64 id -> assets + descriptions (public)
- steamcommunity.com/market/priceoverview   item name -> lowest listing price

Limitations:
- The market endpoint is aggressively rate limited per IP (429). A sync
  fans out one request per distinct item, so large inventories can trip it;
  the sync pipeline then fails as a whole rather than storing partial prices.
- Private inventories answer 403 and surface as ExternalServiceError.
"""

import logging
from decimal import Decimal
from typing import Any

import httpx

from app.services.exceptions import (
    MalformedResponseError,
    ProfileNotFoundError,
)
from app.services.gateway.base import (
    InventoryProvider,
    IdentityResult,
    ProfileInfo,
    RawInventory,
    OwnedUnit,
    ItemDescription,
)
from app.services.gateway.http import build_client, get_json
from app.utils.money import parse_price

logger = logging.getLogger(__name__)


class SteamGateway(InventoryProvider):
    """
    Steam Web API / Steam Community adapter.

    Configuration:
        api_key: Steam Web API key (resolve + profile calls)
        app_id: Application whose inventory is read (730 = Counter-Strike)
        context_id: Inventory context (2 = regular items)
        market_currency: Steam currency id for prices (1 = USD)
        timeout: Request timeout in seconds
        max_attempts: Attempts per call on transient failures
        client: Pre-built httpx client (tests inject a MockTransport client)

    Example:
        gateway = SteamGateway(api_key="...", timeout=10)
        identity = gateway.resolve_identity("gaben")
        inventory = gateway.fetch_raw_inventory(identity.external_id)
    """

    API_BASE_URL = "https://api.steampowered.com"
    COMMUNITY_BASE_URL = "https://steamcommunity.com"

    # Steam64 ids are 17 digit numbers starting with 7656119
    STEAM64_PREFIX = "7656119"
    STEAM64_LENGTH = 17

    # Upper bound accepted by the community inventory endpoint per page
    INVENTORY_PAGE_SIZE = 2000

    def __init__(
            self,
            api_key: str | None = None,
            app_id: int = 730,
            context_id: int = 2,
            market_currency: int = 1,
            timeout: float = 10.0,
            max_attempts: int | None = None,
            client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._app_id = app_id
        self._context_id = context_id
        self._market_currency = market_currency
        self._client = client or build_client(timeout)
        if max_attempts is not None:
            self.MAX_RETRY_ATTEMPTS = max_attempts

        logger.info(
            f"SteamGateway initialized (app_id={app_id}, timeout={timeout}s, "
            f"api_key={'set' if api_key else 'missing'})"
        )

    @property
    def name(self) -> str:
        return "steam"

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # IDENTITY & PROFILE
    # =========================================================================

    def resolve_identity(self, name: str) -> IdentityResult:
        """
        Resolve a vanity name (or a raw Steam64 id) to a Steam64 id.
        """
        if self._looks_like_steam64(name):
            return IdentityResult(external_id=name, found=True)

        data = self._execute_with_retry(
            get_json,
            self._client,
            self.name,
            f"{self.API_BASE_URL}/ISteamUser/ResolveVanityURL/v1/",
            {"key": self._api_key, "vanityurl": name},
        )

        response = self._require_dict(data, "response")
        if response.get("success") != 1 or not response.get("steamid"):
            logger.debug(f"Vanity name '{name}' did not resolve: {response.get('message')}")
            return IdentityResult(external_id=None, found=False)

        return IdentityResult(external_id=str(response["steamid"]), found=True)

    def fetch_profile(self, external_id: str) -> ProfileInfo:
        data = self._execute_with_retry(
            get_json,
            self._client,
            self.name,
            f"{self.API_BASE_URL}/ISteamUser/GetPlayerSummaries/v0002/",
            {"key": self._api_key, "steamids": external_id},
        )

        players = self._require_dict(data, "response").get("players") or []
        if not players:
            raise ProfileNotFoundError(external_id)

        player = players[0]
        try:
            return ProfileInfo(
                external_id=str(player.get("steamid") or external_id),
                display_name=player["personaname"],
                avatar_ref=player["avatarhash"],
            )
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(self.name, f"player summary missing {e}") from e

    # =========================================================================
    # INVENTORY
    # =========================================================================

    def fetch_raw_inventory(self, external_id: str) -> RawInventory:
        data = self._execute_with_retry(
            get_json,
            self._client,
            self.name,
            f"{self.COMMUNITY_BASE_URL}/inventory/{external_id}/{self._app_id}/{self._context_id}",
            {"l": "english", "count": self.INVENTORY_PAGE_SIZE},
        )

        if not isinstance(data, dict):
            raise MalformedResponseError(self.name, "inventory payload is not an object")

        # Empty inventories omit both lists
        try:
            owned_units = [
                OwnedUnit(item_id=str(asset["classid"]))
                for asset in data.get("assets") or []
            ]
            descriptions = [
                self._parse_description(description)
                for description in data.get("descriptions") or []
            ]
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(self.name, f"inventory entry missing {e}") from e

        logger.debug(
            f"Fetched inventory for {external_id}: "
            f"{len(owned_units)} units, {len(descriptions)} descriptions"
        )
        return RawInventory(owned_units=owned_units, descriptions=descriptions)

    @staticmethod
    def _parse_description(description: dict[str, Any]) -> ItemDescription:
        return ItemDescription(
            item_id=str(description["classid"]),
            name=description["name"],
            icon_ref=description.get("icon_url", ""),
            marketable=bool(description.get("marketable", 0)),
        )

    # =========================================================================
    # MARKET PRICES
    # =========================================================================

    def fetch_spot_price(self, item_name: str) -> Decimal:
        data = self._execute_with_retry(
            get_json,
            self._client,
            self.name,
            f"{self.COMMUNITY_BASE_URL}/market/priceoverview/",
            {
                "currency": self._market_currency,
                "appid": self._app_id,
                "market_hash_name": item_name,
            },
        )

        if not isinstance(data, dict) or not data.get("success"):
            raise MalformedResponseError(self.name, f"no price overview for '{item_name}'")

        lowest_price = data.get("lowest_price")
        if not lowest_price:
            raise MalformedResponseError(self.name, f"no listing price for '{item_name}'")

        try:
            return parse_price(lowest_price)
        except ValueError as e:
            raise MalformedResponseError(self.name, str(e)) from e

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _looks_like_steam64(self, name: str) -> bool:
        return (
            name.isdigit()
            and len(name) == self.STEAM64_LENGTH
            and name.startswith(self.STEAM64_PREFIX)
        )

    def _require_dict(self, data: Any, key: str) -> dict[str, Any]:
        value = data.get(key) if isinstance(data, dict) else None
        if not isinstance(value, dict):
            raise MalformedResponseError(self.name, f"missing '{key}' object")
        return value
