from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ChainId(str, Enum):
    MAINNET = "1"
    GOERLI = "5"
    OPTIMISM_MAINNET = "10"
    FANTOM_MAINNET = "250"
    FANTOM_TESTNET = "4002"
    LOCAL_ROUND_LAB = "3"
    POLYGON_MAINNET = "137"
    MUMBAI = "80001"


class VotingStrategyName(str, Enum):
    LINEAR_QUADRATIC_FUNDING = "LINEAR_QUADRATIC_FUNDING"


class VotingStrategy(BaseModel):
    id: str
    strategy_name: str


class RoundMetadata(BaseModel):
    """Matching parameters of a round as published by the round owner."""

    voting_strategy: VotingStrategy
    token: str
    total_pot: Decimal = Field(ge=0)
    matching_cap_percentage: Decimal | None = Field(default=None, gt=0, le=1)
    token_decimals: int = Field(default=18, ge=0, le=77)
    round_start_time: int | None = None
    round_end_time: int | None = None
