from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class QFContributionSummary(BaseModel):
    contribution_count: int = 0
    unique_contributors: int = 0
    total_contributions_in_usd: Decimal = Decimal("0")
    average_usd_contribution: Decimal = Decimal("0")
    total_tipped_in_token: str = "0"
    average_tip_in_token: str = "0"
    contributions_missing_usd: int = 0


class ProjectSummaryRecord(QFContributionSummary):
    """Summary keyed to the project it was computed for."""

    chain_id: str
    round_id: str
    project_id: str
