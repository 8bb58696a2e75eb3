from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query

from grants_api.models.distribution import MatchPreview, QFDistributionEntry, QFDistributionResults
from grants_api.models.error import ErrorDetail
from grants_api.routers.summaries import get_round_service
from grants_api.services.round_service import RoundService

router = APIRouter()

_ERRORS = {400: {"model": ErrorDetail}, 422: {"model": ErrorDetail}, 502: {"model": ErrorDetail}}


@router.post(
    "/update/match/round/{chain_id}/{round_id}",
    response_model=QFDistributionResults,
    responses=_ERRORS,
)
async def update_round_match(
    chain_id: str, round_id: str, service: RoundService = Depends(get_round_service)
) -> QFDistributionResults:
    """Recompute the matching distribution of a round."""
    return await service.update_round_match(chain_id, round_id)


@router.get(
    "/data/match/round/projectIds/{chain_id}/{round_id}",
    response_model=list[QFDistributionEntry],
    responses=_ERRORS,
)
async def get_round_match_by_project_ids(
    chain_id: str,
    round_id: str,
    project_ids: list[str] = Query(...),
    service: RoundService = Depends(get_round_service),
) -> list[QFDistributionEntry]:
    return await service.get_round_match_by_project_ids(chain_id, round_id, project_ids)


@router.get(
    "/data/match/round/{chain_id}/{round_id}",
    response_model=QFDistributionResults,
    responses=_ERRORS,
)
async def get_round_match(
    chain_id: str, round_id: str, service: RoundService = Depends(get_round_service)
) -> QFDistributionResults:
    return await service.get_round_match(chain_id, round_id)


@router.get(
    "/data/match/project/{chain_id}/{round_id}/{project_id}",
    response_model=QFDistributionEntry,
    responses={**_ERRORS, 404: {"model": ErrorDetail}},
)
async def get_project_match(
    chain_id: str, round_id: str, project_id: str, service: RoundService = Depends(get_round_service)
) -> QFDistributionEntry:
    entry = await service.get_project_match(chain_id, round_id, project_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Project match not found")
    return entry


@router.get(
    "/data/match/preview/{chain_id}/{round_id}/{project_id}",
    response_model=MatchPreview,
    responses=_ERRORS,
)
async def preview_project_match(
    chain_id: str,
    round_id: str,
    project_id: str,
    amount: Decimal = Query(..., gt=0, description="Hypothetical contribution in USD"),
    service: RoundService = Depends(get_round_service),
) -> MatchPreview:
    return await service.preview_project_match(chain_id, round_id, project_id, amount)
