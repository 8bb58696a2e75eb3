"""USD pricing of contributions through the CoinGecko market chart API.

A token whose price history cannot be fetched leaves its contributions
without a USD value; the rest of the request carries on.
"""

from __future__ import annotations

import bisect
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

import httpx

from grants_api.errors import UpstreamFetchError
from grants_api.models.contribution import QFContribution, normalize_address
from grants_api.models.round import ChainId
from grants_api.services.fixed_point import MONEY_CONTEXT, from_base_units, quantize_money

log = logging.getLogger(__name__)

NATIVE_TOKEN = "0x0000000000000000000000000000000000000000"
PRICE_WINDOW_PADDING_SECONDS = 3600

CHAIN_PLATFORMS: dict[str, str] = {
    ChainId.MAINNET.value: "ethereum",
    ChainId.OPTIMISM_MAINNET.value: "optimistic-ethereum",
    ChainId.FANTOM_MAINNET.value: "fantom",
    ChainId.POLYGON_MAINNET.value: "polygon-pos",
}
NATIVE_COINS: dict[str, str] = {
    ChainId.MAINNET.value: "ethereum",
    ChainId.OPTIMISM_MAINNET.value: "ethereum",
    ChainId.FANTOM_MAINNET.value: "fantom",
    ChainId.POLYGON_MAINNET.value: "matic-network",
}
# (chain id, token) -> decimals for tokens that are not 18-decimal.
TOKEN_DECIMALS: dict[tuple[str, str], int] = {
    (ChainId.MAINNET.value, "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"): 6,
    (ChainId.MAINNET.value, "0xdac17f958d2ee523a2206206994597c13d831ec7"): 6,
    (ChainId.OPTIMISM_MAINNET.value, "0x7f5c764cbc14f9669b88837ca1490cca17c31607"): 6,
    (ChainId.FANTOM_MAINNET.value, "0x04068da6c83afcfa0e13ba15a6696662335d5b75"): 6,
    (ChainId.POLYGON_MAINNET.value, "0x2791bca1f2de4661ed88a30c99a7a9449aa84174"): 6,
}


def token_decimals(chain_id: str, token: str) -> int:
    return TOKEN_DECIMALS.get((str(chain_id), normalize_address(token)), 18)


@dataclass(frozen=True)
class PricingConfig:
    api_url: str = "https://api.coingecko.com/api/v3"
    api_key: str = ""
    timeout_seconds: float = 20.0

    @classmethod
    def from_env(cls) -> PricingConfig:
        return cls(
            api_url=(os.getenv("COINGECKO_API_URL") or "https://api.coingecko.com/api/v3").strip().rstrip("/"),
            api_key=(os.getenv("COINGECKO_API_KEY") or "").strip(),
            timeout_seconds=float((os.getenv("PRICING_TIMEOUT_SECONDS") or "20").strip()),
        )


class PricingClient:
    def __init__(self, config: PricingConfig | None = None):
        self._config = config or PricingConfig.from_env()

    async def price_contributions(
        self, chain_id: str, contributions: Sequence[QFContribution]
    ) -> list[QFContribution]:
        """Return copies of ``contributions`` with ``usd_value`` filled where a price is known."""
        by_token: dict[str, list[QFContribution]] = {}
        for contribution in contributions:
            if contribution.usd_value is None:
                by_token.setdefault(contribution.token, []).append(contribution)

        priced: dict[int, QFContribution] = {}
        for token, items in by_token.items():
            start = min(item.created_at for item in items) - PRICE_WINDOW_PADDING_SECONDS
            end = max(item.created_at for item in items) + PRICE_WINDOW_PADDING_SECONDS
            try:
                points = await self.price_history(chain_id, token, start, end)
            except UpstreamFetchError as exc:
                log.warning("pricing_token_failed chain_id=%s token=%s count=%s error=%s", chain_id, token, len(items), exc)
                continue
            if not points:
                log.warning("pricing_token_no_data chain_id=%s token=%s count=%s", chain_id, token, len(items))
                continue
            decimals = token_decimals(chain_id, token)
            for item in items:
                price = nearest_price(points, item.created_at)
                with localcontext(MONEY_CONTEXT):
                    usd = from_base_units(item.amount, decimals) * price
                priced[id(item)] = item.model_copy(update={"usd_value": quantize_money(usd)})

        return [priced.get(id(item), item) for item in contributions]

    async def price_at(self, chain_id: str, token: str, timestamp: int) -> Decimal | None:
        try:
            points = await self.price_history(
                chain_id,
                token,
                timestamp - PRICE_WINDOW_PADDING_SECONDS,
                timestamp + PRICE_WINDOW_PADDING_SECONDS,
            )
        except UpstreamFetchError as exc:
            log.warning("pricing_token_failed chain_id=%s token=%s error=%s", chain_id, token, exc)
            return None
        if not points:
            return None
        return nearest_price(points, timestamp)

    async def price_history(self, chain_id: str, token: str, start: int, end: int) -> list[tuple[int, Decimal]]:
        """Price points as ``(unix seconds, usd)`` sorted by time."""
        url = self._market_chart_url(chain_id, token)
        params = {"vs_currency": "usd", "from": str(start), "to": str(end)}
        headers = {"x-cg-pro-api-key": self._config.api_key} if self._config.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"pricing_request_failed:{token}:{exc}") from exc
        except ValueError as exc:
            raise UpstreamFetchError(f"pricing_invalid_json:{token}") from exc

        prices = body.get("prices") if isinstance(body, dict) else None
        if not isinstance(prices, list):
            raise UpstreamFetchError(f"pricing_missing_prices:{token}")
        return sorted(_parse_point(point) for point in prices)

    def _market_chart_url(self, chain_id: str, token: str) -> str:
        token = normalize_address(token)
        if token == NATIVE_TOKEN:
            coin = NATIVE_COINS.get(str(chain_id))
            if not coin:
                raise UpstreamFetchError(f"pricing_unsupported_chain:{chain_id}")
            return f"{self._config.api_url}/coins/{coin}/market_chart/range"
        platform = CHAIN_PLATFORMS.get(str(chain_id))
        if not platform:
            raise UpstreamFetchError(f"pricing_unsupported_chain:{chain_id}")
        return f"{self._config.api_url}/coins/{platform}/contract/{token}/market_chart/range"


def nearest_price(points: list[tuple[int, Decimal]], timestamp: int) -> Decimal:
    times = [point[0] for point in points]
    index = bisect.bisect_left(times, timestamp)
    if index == 0:
        return points[0][1]
    if index == len(points):
        return points[-1][1]
    before, after = points[index - 1], points[index]
    return before[1] if timestamp - before[0] <= after[0] - timestamp else after[1]


def _parse_point(point: Any) -> tuple[int, Decimal]:
    try:
        millis, price = point
        return int(millis) // 1000, Decimal(str(price))
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise UpstreamFetchError(f"pricing_invalid_point:{point!r}") from exc
