"""Quadratic funding match computation with optional per-project cap."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal, localcontext

from grants_api.errors import UnsupportedStrategyError
from grants_api.models.contribution import QFContribution, normalize_address
from grants_api.models.distribution import MatchPreview, QFDistributionEntry, QFDistributionResults
from grants_api.models.round import RoundMetadata, VotingStrategyName
from grants_api.services.fixed_point import MONEY_CONTEXT, quantize_money, sqrt_money, to_base_units

log = logging.getLogger(__name__)

PREVIEW_CONTRIBUTOR = "preview"


@dataclass
class ProjectTally:
    project_id: str
    payout_address: str
    contributor_totals: dict[str, Decimal] = field(default_factory=dict)
    total_usd: Decimal = Decimal("0")
    total_tokens: int = 0

    def qf_score(self) -> Decimal:
        with localcontext(MONEY_CONTEXT):
            root_sum = sum((sqrt_money(total) for total in self.contributor_totals.values()), Decimal("0"))
            return quantize_money(root_sum * root_sum)


def resolve_strategy(strategy_name: str) -> VotingStrategyName:
    try:
        return VotingStrategyName(strategy_name)
    except ValueError as exc:
        raise UnsupportedStrategyError(f"unsupported_voting_strategy:{strategy_name}") from exc


def tally_contributions(contributions: Iterable[QFContribution]) -> dict[str, ProjectTally]:
    """Group by project, summing each contributor's USD before any square root.

    Projects appear in order of their first contribution. Projects whose
    contributions all lack a USD value are dropped.
    """
    tallies: dict[str, ProjectTally] = {}
    with localcontext(MONEY_CONTEXT):
        for contribution in contributions:
            tally = tallies.get(contribution.project_id)
            if tally is None:
                tally = ProjectTally(
                    project_id=contribution.project_id,
                    payout_address=contribution.payout_address,
                )
                tallies[contribution.project_id] = tally
            tally.total_tokens += contribution.amount
            if contribution.usd_value is None:
                continue
            contributor = normalize_address(contribution.contributor)
            tally.contributor_totals[contributor] = (
                tally.contributor_totals.get(contributor, Decimal("0")) + contribution.usd_value
            )
            tally.total_usd += contribution.usd_value
    return {key: tally for key, tally in tallies.items() if tally.contributor_totals}


def allocate_pot(
    scores: dict[str, Decimal],
    total_pot: Decimal,
    cap_percentage: Decimal | None = None,
) -> tuple[dict[str, Decimal], bool]:
    """Split ``total_pot`` proportionally to ``scores``.

    With a cap, each share is clamped to ``cap_percentage * total_pot`` and the
    surplus flows to the uncapped projects in proportion to their scores until
    nothing exceeds the cap. Returns the shares and whether pot was left over
    with no project able to absorb it.
    """
    with localcontext(MONEY_CONTEXT):
        score_total = sum(scores.values(), Decimal("0"))
        if score_total == 0:
            return {}, False
        shares = {key: score / score_total * total_pot for key, score in scores.items()}
        if cap_percentage is None:
            return shares, False

        cap = cap_percentage * total_pot
        capped: set[str] = set()
        while True:
            over = [key for key, share in shares.items() if key not in capped and share > cap]
            if not over:
                break
            surplus = sum((shares[key] - cap for key in over), Decimal("0"))
            for key in over:
                shares[key] = cap
                capped.add(key)
            open_keys = [key for key in shares if key not in capped]
            weight = sum((scores[key] for key in open_keys), Decimal("0"))
            if weight == 0:
                break
            for key in open_keys:
                shares[key] += surplus * scores[key] / weight

        allocated = sum(shares.values(), Decimal("0"))
        absorbing = [key for key in shares if key not in capped and scores[key] > 0]
        saturated = allocated < total_pot and not absorbing
    return shares, saturated


def _linear_qf(
    tallies: dict[str, ProjectTally],
    metadata: RoundMetadata,
    token_usd_price: Decimal | None,
) -> QFDistributionResults:
    scores = {key: tally.qf_score() for key, tally in tallies.items()}
    shares, saturated = allocate_pot(scores, metadata.total_pot, metadata.matching_cap_percentage)
    if not shares:
        return QFDistributionResults(distribution=[], is_saturated=False)

    entries: list[QFDistributionEntry] = []
    with localcontext(MONEY_CONTEXT):
        for key, tally in tallies.items():
            match_in_token = quantize_money(shares[key])
            percentage = match_in_token / metadata.total_pot if metadata.total_pot else Decimal("0")
            match_in_usd = None
            if token_usd_price is not None:
                match_in_usd = quantize_money(match_in_token * token_usd_price)
            entries.append(
                QFDistributionEntry(
                    project_id=tally.project_id,
                    payout_address=tally.payout_address,
                    match_amount_in_usd=match_in_usd,
                    match_amount_in_token=match_in_token,
                    match_amount=to_base_units(match_in_token, metadata.token_decimals),
                    match_pool_percentage=quantize_money(percentage),
                    total_contributions_in_usd=quantize_money(tally.total_usd),
                    total_contributions_in_token=str(tally.total_tokens),
                    unique_contributors_count=len(tally.contributor_totals),
                )
            )
    return QFDistributionResults(distribution=entries, is_saturated=saturated)


_MATCHERS: dict[
    VotingStrategyName,
    Callable[[dict[str, ProjectTally], RoundMetadata, Decimal | None], QFDistributionResults],
] = {
    VotingStrategyName.LINEAR_QUADRATIC_FUNDING: _linear_qf,
}


def match(
    contributions: Iterable[QFContribution],
    metadata: RoundMetadata,
    token_usd_price: Decimal | None = None,
) -> QFDistributionResults:
    """Compute the matching distribution of a round."""
    strategy = resolve_strategy(metadata.voting_strategy.strategy_name)
    results = _MATCHERS[strategy](tally_contributions(contributions), metadata, token_usd_price)
    log.info(
        "qf_match_computed strategy=%s projects=%s saturated=%s",
        strategy.value,
        len(results.distribution),
        results.is_saturated,
    )
    return results


def preview_match(
    contributions: Iterable[QFContribution],
    metadata: RoundMetadata,
    project_id: str,
    amount_in_usd: Decimal,
) -> MatchPreview:
    """Match of ``project_id`` before and after one more contribution from a new contributor."""
    strategy = resolve_strategy(metadata.voting_strategy.strategy_name)
    matcher = _MATCHERS[strategy]
    tallies = tally_contributions(contributions)
    before = _match_in_token(matcher(tallies, metadata, None), project_id)

    tally = tallies.get(project_id)
    if tally is None:
        tally = ProjectTally(project_id=project_id, payout_address="")
        tallies[project_id] = tally
    tally.contributor_totals[PREVIEW_CONTRIBUTOR] = (
        tally.contributor_totals.get(PREVIEW_CONTRIBUTOR, Decimal("0")) + amount_in_usd
    )
    tally.total_usd += amount_in_usd
    after = _match_in_token(matcher(tallies, metadata, None), project_id)

    return MatchPreview(
        project_id=project_id,
        amount_in_usd=amount_in_usd,
        original_match_amount_in_token=before,
        new_match_amount_in_token=after,
        difference_in_token=after - before,
    )


def _match_in_token(results: QFDistributionResults, project_id: str) -> Decimal:
    for entry in results.distribution:
        if entry.project_id == project_id:
            return entry.match_amount_in_token
    return Decimal("0")
