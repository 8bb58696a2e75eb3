from __future__ import annotations

from decimal import Decimal

import httpx
import pytest
import respx
from factories import CONTRIBUTOR_1, CONTRIBUTOR_2, make_contribution

from grants_api.services.pricing_client import PricingClient, PricingConfig, nearest_price, token_decimals

API = "https://pricing.test/api/v3"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
ETH_CHART = f"{API}/coins/ethereum/market_chart/range"
USDC_CHART = f"{API}/coins/ethereum/contract/{USDC}/market_chart/range"


def _client(api_key: str = "") -> PricingClient:
    return PricingClient(PricingConfig(api_url=API, api_key=api_key, timeout_seconds=2.0))


@pytest.mark.asyncio
@respx.mock
async def test_contributions_are_priced_at_nearest_point() -> None:
    route = respx.get(ETH_CHART).mock(
        return_value=httpx.Response(200, json={"prices": [[1_679_999_000_000, 1.5], [1_680_000_300_000, 2.0]]})
    )
    contributions = [make_contribution("P1", CONTRIBUTOR_1, None, amount=10**18, created_at=1_680_000_000)]

    priced = await _client().price_contributions("1", contributions)

    assert priced[0].usd_value == Decimal("2")
    assert contributions[0].usd_value is None
    request = route.calls[0].request
    assert request.url.params["vs_currency"] == "usd"
    assert request.url.params["from"] == str(1_680_000_000 - 3600)
    assert "x-cg-pro-api-key" not in request.headers


@pytest.mark.asyncio
@respx.mock
async def test_failing_token_leaves_its_contributions_unpriced() -> None:
    respx.get(ETH_CHART).mock(return_value=httpx.Response(200, json={"prices": [[1_680_000_000_000, 3]]}))
    respx.get(USDC_CHART).mock(return_value=httpx.Response(503, json={"error": "unavailable"}))
    contributions = [
        make_contribution("P1", CONTRIBUTOR_1, None, amount=5 * 10**17),
        make_contribution("P2", CONTRIBUTOR_2, None, amount=2_000_000, token=USDC),
    ]

    priced = await _client().price_contributions("1", contributions)

    assert priced[0].usd_value == Decimal("1.5")
    assert priced[1].usd_value is None
    assert [item.project_id for item in priced] == ["P1", "P2"]


@pytest.mark.asyncio
@respx.mock
async def test_already_priced_contributions_are_not_refetched() -> None:
    route = respx.get(ETH_CHART).mock(return_value=httpx.Response(200, json={"prices": []}))
    contributions = [make_contribution("P1", CONTRIBUTOR_1, "7")]

    priced = await _client().price_contributions("1", contributions)

    assert priced[0].usd_value == Decimal("7")
    assert route.call_count == 0


@pytest.mark.asyncio
@respx.mock
async def test_price_at_sends_api_key_and_returns_none_on_failure() -> None:
    route = respx.get(USDC_CHART).mock(
        side_effect=[
            httpx.Response(200, json={"prices": [[1_680_000_000_000, "0.999"]]}),
            httpx.Response(500, json={}),
        ]
    )
    client = _client(api_key="secret")

    assert await client.price_at("1", USDC, 1_680_000_000) == Decimal("0.999")
    assert await client.price_at("1", USDC, 1_680_000_000) is None
    assert route.calls[0].request.headers["x-cg-pro-api-key"] == "secret"


def test_nearest_price_picks_closest_point() -> None:
    points = [(100, Decimal("1")), (200, Decimal("2")), (300, Decimal("3"))]
    assert nearest_price(points, 50) == Decimal("1")
    assert nearest_price(points, 149) == Decimal("1")
    assert nearest_price(points, 151) == Decimal("2")
    assert nearest_price(points, 1000) == Decimal("3")


def test_token_decimals_defaults_to_eighteen() -> None:
    assert token_decimals("1", USDC.upper().replace("0X", "0x")) == 6
    assert token_decimals("1", "0x" + "0" * 40) == 18
