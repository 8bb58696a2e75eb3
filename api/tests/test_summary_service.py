from __future__ import annotations

import itertools
from decimal import Decimal

from factories import CONTRIBUTOR_1, CONTRIBUTOR_2, CONTRIBUTOR_3, make_contribution, worked_example

from grants_api.services.summary_service import filter_projects, summarize


def test_summarize_empty_is_all_zero() -> None:
    summary = summarize([])
    assert summary.contribution_count == 0
    assert summary.unique_contributors == 0
    assert summary.total_contributions_in_usd == Decimal("0")
    assert summary.average_usd_contribution == Decimal("0")
    assert summary.total_tipped_in_token == "0"
    assert summary.average_tip_in_token == "0"


def test_summarize_counts_and_usd_totals() -> None:
    summary = summarize(worked_example())
    assert summary.contribution_count == 3
    assert summary.unique_contributors == 2
    assert summary.total_contributions_in_usd == Decimal("600")
    assert summary.average_usd_contribution == Decimal("200")
    assert summary.contributions_missing_usd == 0


def test_summarize_is_invariant_under_permutation() -> None:
    contributions = worked_example() + [make_contribution("P3", CONTRIBUTOR_3, "12.5", amount=7)]
    expected = summarize(contributions)
    for permutation in itertools.permutations(contributions):
        assert summarize(permutation) == expected


def test_summarize_normalizes_contributor_case() -> None:
    mixed = "0x" + "AbCdEf" * 6 + "abcd"
    contributions = [
        make_contribution("P1", mixed, "1"),
        make_contribution("P1", mixed.lower(), "1"),
    ]
    summary = summarize(contributions)
    assert summary.unique_contributors == 1
    assert summary.unique_contributors <= summary.contribution_count


def test_summarize_skips_missing_usd_without_treating_it_as_zero() -> None:
    contributions = [
        make_contribution("P1", CONTRIBUTOR_1, "100"),
        make_contribution("P1", CONTRIBUTOR_2, "50"),
        make_contribution("P1", CONTRIBUTOR_3, None),
    ]
    summary = summarize(contributions)
    assert summary.contribution_count == 3
    assert summary.total_contributions_in_usd == Decimal("150")
    assert summary.average_usd_contribution == Decimal("50")
    assert summary.contributions_missing_usd == 1


def test_summarize_token_totals_use_exact_integers() -> None:
    contributions = [
        make_contribution("P1", CONTRIBUTOR_1, None, amount=10**30),
        make_contribution("P1", CONTRIBUTOR_2, None, amount=1),
    ]
    summary = summarize(contributions)
    assert summary.total_tipped_in_token == str(10**30 + 1)
    assert summary.average_tip_in_token == str((10**30 + 1) // 2)


def test_filter_projects_is_case_insensitive() -> None:
    contributions = worked_example()
    assert [item.project_id for item in filter_projects(contributions, ["p2"])] == ["P2"]
