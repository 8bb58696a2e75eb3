"""Round summaries, matches and payout trees from indexer data.

Update flows recompute from upstream, cache the result and persist it. A
persistence failure is logged and the computed value is still returned. Read
flows go cache, then store, then recompute.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Optional, Protocol

from grants_api.adapters.result_store import PROJECT_SUMMARY, ROUND_MATCH, ROUND_SUMMARY, ResultStore
from grants_api.errors import ValidationError
from grants_api.models.contribution import QFContribution
from grants_api.models.distribution import MatchPreview, PayoutTree, QFDistributionEntry, QFDistributionResults
from grants_api.models.hotfix import HotfixConfig
from grants_api.models.round import RoundMetadata
from grants_api.models.summary import ProjectSummaryRecord, QFContributionSummary
from grants_api.services import matching_service, summary_service
from grants_api.services.hotfix_service import HotfixService
from grants_api.services.payout_tree_service import build_payout_tree
from grants_api.services.pricing_client import token_decimals
from grants_api.services.result_cache import CACHE_MISS, ResultCache, fingerprint

log = logging.getLogger(__name__)


class RoundIndexer(Protocol):
    async def fetch_round_metadata(self, chain_id: str, round_id: str) -> RoundMetadata:
        ...

    async def fetch_contributions_for_round(self, chain_id: str, round_id: str) -> list[QFContribution]:
        ...

    async def fetch_contributions_for_projects(
        self, chain_id: str, round_id: str, project_ids: list[str]
    ) -> list[QFContribution]:
        ...


class PriceOracle(Protocol):
    async def price_contributions(self, chain_id: str, contributions: list[QFContribution]) -> list[QFContribution]:
        ...

    async def price_at(self, chain_id: str, token: str, timestamp: int) -> Decimal | None:
        ...


def require_ids(**ids: Optional[str]) -> None:
    missing = [name for name, value in ids.items() if not (value or "").strip()]
    if missing:
        raise ValidationError(f"missing_parameter:{','.join(missing)}")


class RoundService:
    def __init__(
        self,
        indexer: RoundIndexer,
        pricing: PriceOracle,
        hotfix_config: HotfixConfig,
        cache: ResultCache,
        store: ResultStore,
    ):
        self.indexer = indexer
        self.pricing = pricing
        self.hotfixes = HotfixService(hotfix_config, indexer)
        self.cache = cache
        self.store = store

    # ---- summaries ----

    async def update_round_summary(self, chain_id: str, round_id: str) -> QFContributionSummary:
        require_ids(chain_id=chain_id, round_id=round_id)
        await self._load_metadata(chain_id, round_id)
        contributions = await self._load_contributions(chain_id, round_id)
        summary = summary_service.summarize(contributions)
        self._remember(ROUND_SUMMARY, chain_id, round_id, summary)
        return summary

    async def get_round_summary(self, chain_id: str, round_id: str) -> QFContributionSummary:
        require_ids(chain_id=chain_id, round_id=round_id)
        cached = self._recall(ROUND_SUMMARY, chain_id, round_id, QFContributionSummary)
        if cached is not None:
            return cached
        return await self.update_round_summary(chain_id, round_id)

    async def update_project_summary(self, chain_id: str, round_id: str, project_id: str) -> ProjectSummaryRecord:
        require_ids(chain_id=chain_id, round_id=round_id, project_id=project_id)
        await self._load_metadata(chain_id, round_id)
        contributions = await self._load_contributions(chain_id, round_id, [project_id])
        summary = summary_service.summarize(contributions)
        record = ProjectSummaryRecord(
            chain_id=chain_id,
            round_id=round_id.lower(),
            project_id=project_id,
            **summary.model_dump(),
        )
        self._remember(PROJECT_SUMMARY, chain_id, round_id, record, project_id)
        return record

    async def get_project_summary(self, chain_id: str, round_id: str, project_id: str) -> ProjectSummaryRecord:
        require_ids(chain_id=chain_id, round_id=round_id, project_id=project_id)
        cached = self._recall(PROJECT_SUMMARY, chain_id, round_id, ProjectSummaryRecord, project_id)
        if cached is not None:
            return cached
        return await self.update_project_summary(chain_id, round_id, project_id)

    async def get_projects_summaries(
        self, chain_id: str, round_id: str, project_ids: list[str] | None = None
    ) -> list[ProjectSummaryRecord]:
        require_ids(chain_id=chain_id, round_id=round_id)
        if not project_ids:
            rows = self.store.list_results(PROJECT_SUMMARY, chain_id, round_id)
            return [ProjectSummaryRecord.model_validate(row) for row in rows]
        return [await self.get_project_summary(chain_id, round_id, project_id) for project_id in project_ids]

    # ---- matches ----

    async def update_round_match(self, chain_id: str, round_id: str) -> QFDistributionResults:
        require_ids(chain_id=chain_id, round_id=round_id)
        metadata = await self._load_metadata(chain_id, round_id)
        contributions = await self._load_contributions(chain_id, round_id)
        price_time = metadata.round_end_time or int(time.time())
        token_price = await self.pricing.price_at(chain_id, metadata.token, min(price_time, int(time.time())))
        results = matching_service.match(contributions, metadata, token_price)
        self._remember(ROUND_MATCH, chain_id, round_id, results)
        return results

    async def get_round_match(self, chain_id: str, round_id: str) -> QFDistributionResults:
        require_ids(chain_id=chain_id, round_id=round_id)
        cached = self._recall(ROUND_MATCH, chain_id, round_id, QFDistributionResults)
        if cached is not None:
            return cached
        return await self.update_round_match(chain_id, round_id)

    async def get_project_match(self, chain_id: str, round_id: str, project_id: str) -> QFDistributionEntry | None:
        require_ids(chain_id=chain_id, round_id=round_id, project_id=project_id)
        results = await self.get_round_match(chain_id, round_id)
        for entry in results.distribution:
            if entry.project_id.lower() == project_id.lower():
                return entry
        return None

    async def get_round_match_by_project_ids(
        self, chain_id: str, round_id: str, project_ids: list[str]
    ) -> list[QFDistributionEntry]:
        require_ids(chain_id=chain_id, round_id=round_id)
        wanted = {project_id.lower() for project_id in project_ids}
        results = await self.get_round_match(chain_id, round_id)
        return [entry for entry in results.distribution if entry.project_id.lower() in wanted]

    async def preview_project_match(
        self, chain_id: str, round_id: str, project_id: str, amount_in_usd: Decimal
    ) -> MatchPreview:
        require_ids(chain_id=chain_id, round_id=round_id, project_id=project_id)
        if amount_in_usd <= 0:
            raise ValidationError("preview_amount_must_be_positive")
        metadata = await self._load_metadata(chain_id, round_id)
        contributions = await self._load_contributions(chain_id, round_id)
        return matching_service.preview_match(contributions, metadata, project_id, amount_in_usd)

    # ---- finalize ----

    async def build_round_payout_tree(self, chain_id: str, round_id: str) -> PayoutTree:
        results = await self.get_round_match(chain_id, round_id)
        return build_payout_tree(results.distribution)

    # ---- helpers ----

    async def _load_metadata(self, chain_id: str, round_id: str) -> RoundMetadata:
        metadata = await self.indexer.fetch_round_metadata(chain_id, round_id)
        matching_service.resolve_strategy(metadata.voting_strategy.strategy_name)
        return metadata.model_copy(update={"token_decimals": token_decimals(chain_id, metadata.token)})

    async def _load_contributions(
        self, chain_id: str, round_id: str, project_ids: list[str] | None = None
    ) -> list[QFContribution]:
        if project_ids is None:
            raw = await self.indexer.fetch_contributions_for_round(chain_id, round_id)
        else:
            raw = await self.indexer.fetch_contributions_for_projects(chain_id, round_id, project_ids)
        contributions = await self.hotfixes.apply(chain_id, round_id, raw, project_ids)
        if project_ids is not None:
            contributions = summary_service.filter_projects(contributions, project_ids)
        return await self.pricing.price_contributions(chain_id, contributions)

    def _remember(self, kind: str, chain_id: str, round_id: str, value: Any, project_id: str | None = None) -> None:
        self.cache.set(fingerprint(kind, chain_id, round_id, project_id), value)
        try:
            self.store.save_result(kind, chain_id, round_id, value.model_dump(mode="json"), project_id)
        except Exception:
            log.warning(
                "result_persist_failed kind=%s chain_id=%s round_id=%s project_id=%s",
                kind,
                chain_id,
                round_id,
                project_id or "",
                exc_info=True,
            )

    def _recall(self, kind: str, chain_id: str, round_id: str, model: Any, project_id: str | None = None) -> Any:
        key = fingerprint(kind, chain_id, round_id, project_id)
        cached = self.cache.get(key)
        if cached is not CACHE_MISS:
            return cached
        try:
            row = self.store.get_result(kind, chain_id, round_id, project_id)
        except Exception:
            log.warning(
                "result_load_failed kind=%s chain_id=%s round_id=%s project_id=%s",
                kind,
                chain_id,
                round_id,
                project_id or "",
                exc_info=True,
            )
            return None
        if row is None:
            return None
        value = model.model_validate(row)
        self.cache.set(key, value)
        return value
