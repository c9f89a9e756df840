# backend/tests/services/test_currency_provider.py
"""
Tests for CurrencyApiProvider.
"""

from decimal import Decimal

import httpx
import pytest

from app.services.exceptions import MalformedResponseError, ProviderUnavailableError
from app.services.gateway import CurrencyApiProvider


def make_provider(handler) -> CurrencyApiProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CurrencyApiProvider(base_url="https://rates.test/v1/currencies/", client=client, max_attempts=1)


class TestCurrencyApiProvider:
    """Tests for fetch_currency_rates."""

    def test_parses_rate_table(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://rates.test/v1/currencies/usd.min.json"
            return httpx.Response(200, json={
                "date": "2024-05-01",
                "usd": {"eur": 0.93, "pln": 4.03, "usd": 1},
            })

        rates = make_provider(handler).fetch_currency_rates("USD")

        assert rates["EUR"] == Decimal("0.93")
        assert rates["PLN"] == Decimal("4.03")
        assert rates["USD"] == Decimal("1")

    def test_unparseable_rates_are_skipped(self):
        def handler(request):
            return httpx.Response(200, json={"usd": {"eur": 0.93, "xxx": "n/a"}})

        rates = make_provider(handler).fetch_currency_rates("usd")

        assert rates == {"EUR": Decimal("0.93")}

    def test_missing_base_table(self):
        def handler(request):
            return httpx.Response(200, json={"date": "2024-05-01"})

        with pytest.raises(MalformedResponseError):
            make_provider(handler).fetch_currency_rates("USD")

    def test_server_error(self):
        def handler(request):
            return httpx.Response(502)

        with pytest.raises(ProviderUnavailableError):
            make_provider(handler).fetch_currency_rates("USD")
