# backend/app/services/gateway/currency.py
"""
Currency rates from the fawazahmed0 currency-api (static JSON on a CDN).

Response shape for base "usd":
    {"date": "2024-05-01", "usd": {"eur": 0.93, "pln": 4.03, ...}}

Rates are "1 base = rate units of code". Codes are lower-case upstream and
upper-cased here.
"""

import logging
from decimal import Decimal, InvalidOperation

import httpx

from app.services.exceptions import MalformedResponseError
from app.services.gateway.base import CurrencyRateProvider
from app.services.gateway.http import build_client, get_json

logger = logging.getLogger(__name__)


class CurrencyApiProvider(CurrencyRateProvider):
    """
    Rate provider backed by the public currency-api JSON files.

    No API key, no rate limit. Rates update once a day, which is far
    coarser than the snapshot cadence; consecutive snapshots usually carry
    identical rates.
    """

    DEFAULT_BASE_URL = "https://latest.currency-api.pages.dev/v1/currencies"

    def __init__(
            self,
            base_url: str = DEFAULT_BASE_URL,
            timeout: float = 10.0,
            max_attempts: int | None = None,
            client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or build_client(timeout)
        if max_attempts is not None:
            self.MAX_RETRY_ATTEMPTS = max_attempts

    @property
    def name(self) -> str:
        return "currency-api"

    def close(self) -> None:
        self._client.close()

    def fetch_currency_rates(self, base_code: str) -> dict[str, Decimal]:
        base = base_code.lower()
        data = self._execute_with_retry(
            get_json,
            self._client,
            self.name,
            f"{self._base_url}/{base}.min.json",
        )

        table = data.get(base) if isinstance(data, dict) else None
        if not isinstance(table, dict):
            raise MalformedResponseError(self.name, f"missing '{base}' rate table")

        rates: dict[str, Decimal] = {}
        for code, raw_rate in table.items():
            try:
                # via str() so binary float noise is not carried into Decimal
                rates[code.upper()] = Decimal(str(raw_rate))
            except (InvalidOperation, ValueError, TypeError):
                logger.debug(f"Skipping unparseable rate for {code}: {raw_rate!r}")

        logger.debug(f"Fetched {len(rates)} rates for base {base_code.upper()}")
        return rates
