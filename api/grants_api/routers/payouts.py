from __future__ import annotations

from fastapi import APIRouter, Depends

from grants_api.models.distribution import PayoutTree, QFDistributionEntry
from grants_api.models.error import ErrorDetail
from grants_api.routers.summaries import get_round_service
from grants_api.services.payout_tree_service import build_payout_tree
from grants_api.services.round_service import RoundService

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorDetail},
    409: {"model": ErrorDetail},
    422: {"model": ErrorDetail},
    502: {"model": ErrorDetail},
}


@router.post("/finalize/tree", response_model=PayoutTree, responses=_ERRORS)
async def build_tree_for_distribution(distribution: list[QFDistributionEntry]) -> PayoutTree:
    """Merkle payout commitment for an explicit distribution."""
    return build_payout_tree(distribution)


@router.post("/finalize/tree/{chain_id}/{round_id}", response_model=PayoutTree, responses=_ERRORS)
async def build_tree_for_round(
    chain_id: str, round_id: str, service: RoundService = Depends(get_round_service)
) -> PayoutTree:
    """Merkle payout commitment for the current distribution of a round."""
    return await service.build_round_payout_tree(chain_id, round_id)
