"""Application-wide constants for exchange-rate storage and conversion.

Constants are grouped by concern. Tunable values (timeouts, TTLs, freshness
thresholds) live in settings instead; these are fixed properties of the
schema and the provider formats.
"""


class RateConstants:
    """Constants for stored exchange-rate values."""

    # Numeric(24, 12) column. Twelve fractional digits keep inverse rates of
    # weak currencies (e.g. 1 IDR in USD ~ 0.00006) meaningful.
    RATE_PRECISION = 24
    RATE_SCALE = 12

    # Conversions are rounded to the target currency's decimal places;
    # this is the fallback when a currency row has none configured.
    DEFAULT_DECIMAL_PLACES = 2


class ProviderConstants:
    """Constants for external rate provider formats."""

    # yfinance ticker for "1 BASE in TARGET", e.g. "USDEUR=X"
    YFINANCE_TICKER_FORMAT = "{base}{target}=X"

    # Days of daily history requested from yfinance; weekends and holidays
    # leave gaps, so the latest non-empty close is used.
    YFINANCE_LOOKBACK_DAYS = 5


class CurrencyConstants:
    """Constants for currency codes."""

    CODE_LENGTH = 3
    CODE_PATTERN = "^[A-Z]{3}$"
