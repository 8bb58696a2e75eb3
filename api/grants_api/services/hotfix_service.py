"""Round-specific corrections applied to raw contribution data."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from grants_api.models.contribution import QFContribution, normalize_address
from grants_api.models.hotfix import HotfixConfig

log = logging.getLogger(__name__)


class ContributionSource(Protocol):
    async def fetch_contributions_for_round(self, chain_id: str, round_id: str) -> list[QFContribution]:
        ...


class HotfixService:
    """Apply, in order: recovered votes, backup round votes, ignored payout addresses.

    The input sequence is never modified; a new list is returned. Fetch
    failures propagate so a configured correction is never silently skipped.
    """

    def __init__(self, config: HotfixConfig, source: ContributionSource):
        self.config = config
        self.source = source

    async def apply(
        self,
        chain_id: str,
        round_id: str,
        contributions: Sequence[QFContribution],
        project_ids: Sequence[str] | None = None,
    ) -> list[QFContribution]:
        result = list(contributions)
        hotfix = self.config.for_round(round_id)
        if hotfix is None:
            return result

        if hotfix.recovery is not None:
            recovered = await self.source.fetch_contributions_for_round(
                hotfix.recovery.chain_id, hotfix.recovery.round_id
            )
            if project_ids is not None:
                wanted = {project_id.lower() for project_id in project_ids}
                recovered = [item for item in recovered if item.project_id.lower() in wanted]
            log.info(
                "hotfix_recovered_contributions round_id=%s source_chain=%s added=%s",
                round_id,
                hotfix.recovery.chain_id,
                len(recovered),
            )
            result.extend(recovered)

        if hotfix.backup_round_id:
            backup = await self.source.fetch_contributions_for_round(chain_id, hotfix.backup_round_id)
            log.info(
                "hotfix_backup_round round_id=%s backup_round_id=%s added=%s",
                round_id,
                hotfix.backup_round_id,
                len(backup),
            )
            result.extend(backup)

        if hotfix.ignored_addresses:
            kept = [
                item for item in result if normalize_address(item.payout_address) not in hotfix.ignored_addresses
            ]
            removed = len(result) - len(kept)
            if removed:
                log.info("hotfix_ignored_contributions round_id=%s removed=%s", round_id, removed)
            result = kept

        return result
