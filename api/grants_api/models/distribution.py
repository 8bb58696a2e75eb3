from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class QFDistributionEntry(BaseModel):
    project_id: str
    payout_address: str
    match_amount_in_usd: Decimal | None = None
    match_amount_in_token: Decimal
    match_amount: int = Field(ge=0)
    match_pool_percentage: Decimal
    total_contributions_in_usd: Decimal
    total_contributions_in_token: str
    unique_contributors_count: int


class QFDistributionResults(BaseModel):
    distribution: list[QFDistributionEntry] = Field(default_factory=list)
    is_saturated: bool = False


class MatchPreview(BaseModel):
    project_id: str
    amount_in_usd: Decimal
    original_match_amount_in_token: Decimal
    new_match_amount_in_token: Decimal
    difference_in_token: Decimal


class PayoutLeaf(BaseModel):
    payout_address: str
    match_amount: int
    project_id: str
    tree_index: int


class PayoutTree(BaseModel):
    root: str
    values: list[PayoutLeaf]
    proofs: dict[str, list[str]]
