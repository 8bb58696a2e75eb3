"""Contribution summaries for a round or a set of projects."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal, localcontext

from grants_api.models.contribution import QFContribution, normalize_address
from grants_api.models.summary import QFContributionSummary
from grants_api.services.fixed_point import MONEY_CONTEXT, quantize_money

log = logging.getLogger(__name__)


def summarize(contributions: Iterable[QFContribution]) -> QFContributionSummary:
    """Reduce contributions to counts, USD totals and token totals.

    Entries without a USD value are left out of the USD totals and reported in
    ``contributions_missing_usd``; they still count as contributions.
    """
    count = 0
    contributors: set[str] = set()
    missing_usd = 0
    total_usd = Decimal("0")
    total_tokens = 0

    with localcontext(MONEY_CONTEXT):
        for contribution in contributions:
            count += 1
            contributors.add(normalize_address(contribution.contributor))
            total_tokens += contribution.amount
            if contribution.usd_value is None:
                missing_usd += 1
                continue
            total_usd += contribution.usd_value

        average_usd = total_usd / count if count else Decimal("0")

    if missing_usd:
        log.debug("summary_missing_usd_values skipped=%s total=%s", missing_usd, count)

    return QFContributionSummary(
        contribution_count=count,
        unique_contributors=len(contributors),
        total_contributions_in_usd=quantize_money(total_usd),
        average_usd_contribution=quantize_money(average_usd),
        total_tipped_in_token=str(total_tokens),
        average_tip_in_token=str(total_tokens // count if count else 0),
        contributions_missing_usd=missing_usd,
    )


def filter_projects(contributions: Iterable[QFContribution], project_ids: Iterable[str]) -> list[QFContribution]:
    wanted = {project_id.lower() for project_id in project_ids}
    return [item for item in contributions if item.project_id.lower() in wanted]
