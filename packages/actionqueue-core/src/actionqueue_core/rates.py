"""
Exchange rate client for price-level effects.

This module provides HttpRateClient, a RateProviderProtocol
implementation backed by an exchange-rate HTTP API:

    GET /v1/exchangeRate?currency_pair=BTC_iso:USD
    -> {"currency_pair": "BTC_iso:USD", "exchangeRate": "27012.51"}

Key design decisions:
- Uses injected httpx.AsyncClient configured with the rates base_url
- Converts the string rate to float
- Fails loudly on HTTP errors and missing rates; the scheduler treats
  both as transient and checks again later
"""

from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, Field


class ExchangeRateResponse(BaseModel):
    """Response body of the exchangeRate endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    currency_pair: str
    exchange_rate: str | None = Field(default=None, alias="exchangeRate")


@dataclass
class HttpRateClient:
    """
    Exchange rate client with injected httpx client.

    The httpx.AsyncClient should be pre-configured with the rates server
    base_url (Settings.rates_url).

    Example:
        async with httpx.AsyncClient(base_url=settings.rates_url) as http:
            rates = HttpRateClient(http=http)
            rate = await rates.get_exchange_rate("BTC_iso:USD")
    """

    http: httpx.AsyncClient

    async def get_exchange_rate(self, currency_pair: str) -> float:
        """
        Get the current rate for a currency pair.

        Args:
            currency_pair: Pair as "FROM:TO" (e.g. "ETH:iso:USD")

        Returns:
            Rate as float

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx)
            ValueError: If the server has no rate for the pair
        """
        response = await self.http.get(
            "/v1/exchangeRate", params={"currency_pair": currency_pair}
        )
        response.raise_for_status()

        data = ExchangeRateResponse.model_validate(response.json())
        if not data.exchange_rate:
            raise ValueError(f"No exchange rate for {currency_pair}")
        return float(data.exchange_rate)
