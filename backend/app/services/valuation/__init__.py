# backend/app/services/valuation/__init__.py
"""
Valuation Aggregator Package.

Read-only views over committed snapshot history:
- Current holdings priced at a snapshot (get_holdings)
- Value time series across snapshots and currencies (get_time_series)
- Both combined (get_valuation)

Usage:
    from app.services.valuation import ValuationAggregator

    aggregator = ValuationAggregator(base_currency="USD")
    valuation = aggregator.get_valuation(db, user_id, since=month_ago)

Architecture:
    valuation/
    ├── __init__.py      # This file - package exports
    ├── types.py         # Internal data classes
    └── aggregator.py    # ValuationAggregator

Key Types:
    - HoldingValuation: One owned item priced at one snapshot
    - TimeSeriesPoint: Snapshot total in one currency
    - UserValuation: Holdings + time series
"""

from app.services.valuation.aggregator import ValuationAggregator
from app.services.valuation.types import (
    HoldingValuation,
    TimeSeriesPoint,
    UserValuation,
)

__all__ = [
    "ValuationAggregator",
    "HoldingValuation",
    "TimeSeriesPoint",
    "UserValuation",
]
