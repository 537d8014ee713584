"""
Fares capability.

Public API:
- FareEstimator (estimate, breakdown, quote_trip)
- FareQuote, FareQuoteBook, StoredEstimate
- RATE_TABLE, RateCard, validate_rate_table
- surge_multiplier
"""
from .models import FareQuote
from .rates import RATE_TABLE, RateCard, validate_rate_table, CURRENCY, TAX_RATE
from .estimator import FareEstimator
from .surge import surge_multiplier
from .quotes import FareQuoteBook, StoredEstimate

__all__ = [
    "FareQuote",
    "RATE_TABLE",
    "RateCard",
    "validate_rate_table",
    "CURRENCY",
    "TAX_RATE",
    "FareEstimator",
    "surge_multiplier",
    "FareQuoteBook",
    "StoredEstimate",
]
