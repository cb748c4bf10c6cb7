"""exchangerate.host API client."""

import logging

import httpx

from ..exceptions import ExchangeRateAPIError
from ..models import Currency

logger = logging.getLogger(__name__)

# Major currencies, offered when the API answers without a currency list
FALLBACK_CURRENCIES = [
    Currency(code="JPY", name="Japanese Yen"),
    Currency(code="USD", name="US Dollar"),
    Currency(code="EUR", name="Euro"),
    Currency(code="GBP", name="British Pound"),
    Currency(code="AUD", name="Australian Dollar"),
    Currency(code="CAD", name="Canadian Dollar"),
    Currency(code="CHF", name="Swiss Franc"),
    Currency(code="CNY", name="Chinese Yuan"),
    Currency(code="KRW", name="South Korean Won"),
    Currency(code="SGD", name="Singapore Dollar"),
]

# Offered when the API cannot be reached at all
MINIMAL_FALLBACK_CURRENCIES = FALLBACK_CURRENCIES[:5]


class ExchangeRateClient:
    """Client for the exchangerate.host API."""

    BASE_URL = "https://api.exchangerate.host"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the exchange rate client."""
        self.api_key = api_key
        self.client = httpx.Client(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _get(self, path: str, params: dict[str, str | int]) -> dict:
        """GET an endpoint and return its payload, raising on API failure."""
        try:
            response = self.client.get(
                path, params={"access_key": self.api_key, **params}
            )
            response.raise_for_status()
            data: dict = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExchangeRateAPIError(f"Request to {path} failed: {e}") from e

        if not data.get("success"):
            info = (data.get("error") or {}).get("info", "unknown error")
            raise ExchangeRateAPIError(f"Exchange rate API error: {info}")

        return data

    def get_rates(self, source: str, currencies: list[str]) -> dict[str, float]:
        """
        Get exchange rates for several currencies relative to a source currency.

        Args:
            source: Currency the rates are quoted against (the settlement currency)
            currencies: Currency codes to look up

        Returns:
            Mapping of currency code to units of that currency per 1 unit of source
        """
        if not currencies:
            return {}

        logger.info(f"Fetching rates {source} -> {','.join(currencies)}")
        data = self._get(
            "/live", {"source": source, "currencies": ",".join(currencies)}
        )

        # Quotes are keyed by the concatenated pair, e.g. "JPYUSD"
        rates = {}
        for pair, rate in data.get("quotes", {}).items():
            if pair.startswith(source) and len(pair) > len(source):
                rates[pair[len(source) :]] = float(rate)

        missing = [code for code in currencies if code not in rates]
        if missing:
            logger.warning(f"No rate returned for {', '.join(missing)}")

        return rates

    def get_rate(self, source: str, target: str) -> float:
        """
        Get the rate for a single currency pair.

        Args:
            source: Currency to convert from
            target: Currency to convert to

        Returns:
            Units of target per 1 unit of source
        """
        logger.info(f"Fetching rate {source} -> {target}")
        data = self._get("/convert", {"from": source, "to": target, "amount": 1})

        info = data.get("info") or {}
        if "quote" in info:
            return float(info["quote"])
        return float(data["result"])

    def list_currencies(self) -> list[Currency]:
        """
        List the currencies supported by the API.

        Falls back to a built-in list of major currencies when the API
        answers without one, and to a shorter list when it cannot be reached.
        """
        try:
            data = self._get("/list", {})
        except ExchangeRateAPIError as e:
            logger.error(f"Failed to fetch currency list: {e}")
            if e.__cause__ is not None:
                return list(MINIMAL_FALLBACK_CURRENCIES)
            return list(FALLBACK_CURRENCIES)

        currencies = data.get("currencies")
        if not currencies:
            return list(FALLBACK_CURRENCIES)

        return [Currency(code=code, name=name) for code, name in currencies.items()]
