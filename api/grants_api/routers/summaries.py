from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from grants_api.models.error import ErrorDetail
from grants_api.models.summary import ProjectSummaryRecord, QFContributionSummary
from grants_api.services.round_service import RoundService

router = APIRouter()

_ERRORS = {400: {"model": ErrorDetail}, 502: {"model": ErrorDetail}}


def get_round_service(request: Request) -> RoundService:
    return request.app.state.round_service


@router.post(
    "/update/summary/round/{chain_id}/{round_id}",
    response_model=QFContributionSummary,
    responses=_ERRORS,
)
async def update_round_summary(
    chain_id: str, round_id: str, service: RoundService = Depends(get_round_service)
) -> QFContributionSummary:
    """Recompute the contribution summary of a round."""
    return await service.update_round_summary(chain_id, round_id)


@router.post(
    "/update/summary/project/{chain_id}/{round_id}/{project_id}",
    response_model=ProjectSummaryRecord,
    responses=_ERRORS,
)
async def update_project_summary(
    chain_id: str, round_id: str, project_id: str, service: RoundService = Depends(get_round_service)
) -> ProjectSummaryRecord:
    return await service.update_project_summary(chain_id, round_id, project_id)


@router.get(
    "/data/summary/round/{chain_id}/{round_id}",
    response_model=QFContributionSummary,
    responses=_ERRORS,
)
async def get_round_summary(
    chain_id: str, round_id: str, service: RoundService = Depends(get_round_service)
) -> QFContributionSummary:
    return await service.get_round_summary(chain_id, round_id)


@router.get(
    "/data/summary/project/{chain_id}/{round_id}/{project_id}",
    response_model=ProjectSummaryRecord,
    responses=_ERRORS,
)
async def get_project_summary(
    chain_id: str, round_id: str, project_id: str, service: RoundService = Depends(get_round_service)
) -> ProjectSummaryRecord:
    return await service.get_project_summary(chain_id, round_id, project_id)


@router.get(
    "/data/summary/projects/{chain_id}/{round_id}",
    response_model=list[ProjectSummaryRecord],
    responses=_ERRORS,
)
async def get_projects_summaries(
    chain_id: str,
    round_id: str,
    project_ids: list[str] | None = Query(default=None),
    service: RoundService = Depends(get_round_service),
) -> list[ProjectSummaryRecord]:
    """Stored summaries of a round, or of the listed projects when ``project_ids`` is given."""
    return await service.get_projects_summaries(chain_id, round_id, project_ids)
