"""Round subgraph + IPFS client.

Fetches round metadata and vote events per chain. All transport, HTTP and
GraphQL failures surface as ``UpstreamFetchError``; nothing is retried here.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx

from grants_api.errors import UpstreamFetchError, ValidationError
from grants_api.models.contribution import QFContribution, QFVotedEvent
from grants_api.models.round import ChainId, RoundMetadata, VotingStrategy

log = logging.getLogger(__name__)

_GRAPH_HOST = "https://api.thegraph.com/subgraphs/name/allo-protocol"
DEFAULT_SUBGRAPH_URLS: dict[str, str] = {
    ChainId.MAINNET.value: f"{_GRAPH_HOST}/grants-round-mainnet",
    ChainId.GOERLI.value: f"{_GRAPH_HOST}/grants-round-goerli-testnet",
    ChainId.OPTIMISM_MAINNET.value: f"{_GRAPH_HOST}/grants-round-optimism-mainnet",
    ChainId.FANTOM_MAINNET.value: f"{_GRAPH_HOST}/grants-round-fantom-mainnet",
    ChainId.FANTOM_TESTNET.value: f"{_GRAPH_HOST}/grants-round-fantom-testnet",
    ChainId.POLYGON_MAINNET.value: f"{_GRAPH_HOST}/grants-round-polygon-mainnet",
    ChainId.MUMBAI.value: f"{_GRAPH_HOST}/grants-round-mumbai",
    ChainId.LOCAL_ROUND_LAB.value: "http://localhost:8000/subgraphs/name/allo-protocol/grants-round",
}
PAGE_SIZE = 1000

ROUND_QUERY = """
query GetRound($roundId: String) {
  rounds(where: {id: $roundId}) {
    id
    token
    roundStartTime
    roundEndTime
    votingStrategy { id strategyName }
    roundMetaPtr { protocol pointer }
  }
}
"""

VOTES_QUERY = """
query GetVotes($votingStrategyId: String, $lastId: String, $projectIds: [String!]) {
  qfvotes(
    first: %d
    orderBy: id
    orderDirection: asc
    where: {votingStrategy: $votingStrategyId, id_gt: $lastId%s}
  ) {
    id
    amount
    token
    from
    to
    projectId
    createdAt
  }
}
"""


@dataclass(frozen=True)
class IndexerConfig:
    subgraph_urls: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SUBGRAPH_URLS))
    ipfs_gateway: str = "https://ipfs.io/ipfs"
    timeout_seconds: float = 20.0

    @classmethod
    def from_env(cls) -> IndexerConfig:
        urls = dict(DEFAULT_SUBGRAPH_URLS)
        for chain in ChainId:
            override = (os.getenv(f"SUBGRAPH_URL_{chain.value}") or "").strip()
            if override:
                urls[chain.value] = override
        return cls(
            subgraph_urls=urls,
            ipfs_gateway=(os.getenv("IPFS_GATEWAY") or "https://ipfs.io/ipfs").strip().rstrip("/"),
            timeout_seconds=float((os.getenv("INDEXER_TIMEOUT_SECONDS") or "20").strip()),
        )


class IndexerClient:
    def __init__(self, config: IndexerConfig | None = None):
        self._config = config or IndexerConfig.from_env()

    def subgraph_url(self, chain_id: str) -> str:
        url = self._config.subgraph_urls.get(str(chain_id))
        if not url:
            raise ValidationError(f"unsupported_chain_id:{chain_id}")
        return url

    async def fetch_round_metadata(self, chain_id: str, round_id: str) -> RoundMetadata:
        round_row = await self._fetch_round(chain_id, round_id)
        pointer = (round_row.get("roundMetaPtr") or {}).get("pointer")
        if not pointer:
            raise UpstreamFetchError(f"round_meta_pointer_missing:{round_id}")
        document = await self._fetch_ipfs(pointer)

        matching = document.get("matchingFunds") if isinstance(document, dict) else None
        if not isinstance(matching, dict) or matching.get("matchingFundsAvailable") is None:
            raise UpstreamFetchError(f"round_matching_funds_missing:{round_id}")

        strategy = round_row.get("votingStrategy") or {}
        try:
            cap_percentage = None
            cap_amount = Decimal(str(matching.get("matchingCapAmount") or 0))
            # A zero cap amount means the round is uncapped.
            if matching.get("matchingCap") and cap_amount:
                cap_percentage = cap_amount / Decimal(100)
            return RoundMetadata(
                voting_strategy=VotingStrategy(
                    id=str(strategy.get("id") or ""),
                    strategy_name=str(strategy.get("strategyName") or ""),
                ),
                token=str(round_row.get("token") or ""),
                total_pot=Decimal(str(matching["matchingFundsAvailable"])),
                matching_cap_percentage=cap_percentage,
                round_start_time=_optional_int(round_row.get("roundStartTime")),
                round_end_time=_optional_int(round_row.get("roundEndTime")),
            )
        except (ValueError, ArithmeticError) as exc:
            raise UpstreamFetchError(f"round_matching_funds_invalid:{round_id}") from exc

    async def fetch_contributions_for_round(self, chain_id: str, round_id: str) -> list[QFContribution]:
        round_row = await self._fetch_round(chain_id, round_id)
        strategy_id = (round_row.get("votingStrategy") or {}).get("id")
        if not strategy_id:
            raise UpstreamFetchError(f"round_voting_strategy_missing:{round_id}")
        return await self.fetch_contributions_for_strategy(chain_id, strategy_id)

    async def fetch_contributions_for_projects(
        self, chain_id: str, round_id: str, project_ids: list[str]
    ) -> list[QFContribution]:
        round_row = await self._fetch_round(chain_id, round_id)
        strategy_id = (round_row.get("votingStrategy") or {}).get("id")
        if not strategy_id:
            raise UpstreamFetchError(f"round_voting_strategy_missing:{round_id}")
        return await self.fetch_contributions_for_strategy(chain_id, strategy_id, project_ids)

    async def fetch_contributions_for_strategy(
        self,
        chain_id: str,
        voting_strategy_id: str,
        project_ids: list[str] | None = None,
    ) -> list[QFContribution]:
        project_filter = ", projectId_in: $projectIds" if project_ids is not None else ""
        query = VOTES_QUERY % (PAGE_SIZE, project_filter)
        contributions: list[QFContribution] = []
        last_id = ""
        while True:
            variables: dict[str, Any] = {"votingStrategyId": voting_strategy_id, "lastId": last_id}
            if project_ids is not None:
                variables["projectIds"] = project_ids
            data = await self._graphql(chain_id, query, variables)
            rows = data.get("qfvotes") or []
            for row in rows:
                try:
                    contributions.append(QFVotedEvent.model_validate(row).to_contribution())
                except ValueError as exc:
                    raise UpstreamFetchError(f"invalid_vote_row:{row.get('id')}") from exc
            if len(rows) < PAGE_SIZE:
                break
            last_id = rows[-1]["id"]
        log.debug(
            "indexer_votes_fetched chain_id=%s voting_strategy=%s count=%s",
            chain_id,
            voting_strategy_id,
            len(contributions),
        )
        return contributions

    async def _fetch_round(self, chain_id: str, round_id: str) -> dict[str, Any]:
        data = await self._graphql(chain_id, ROUND_QUERY, {"roundId": round_id.lower()})
        rounds = data.get("rounds") or []
        if not rounds:
            raise UpstreamFetchError(f"round_not_found:{chain_id}:{round_id}")
        return rounds[0]

    async def _graphql(self, chain_id: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        url = self.subgraph_url(chain_id)
        body = await self._request("POST", url, json={"query": query, "variables": variables})
        if not isinstance(body, dict):
            raise UpstreamFetchError("subgraph_invalid_response")
        if body.get("errors"):
            raise UpstreamFetchError(f"subgraph_error:{body['errors']}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise UpstreamFetchError("subgraph_missing_data")
        return data

    async def _fetch_ipfs(self, pointer: str) -> Any:
        return await self._request("GET", f"{self._config.ipfs_gateway}/{pointer}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"upstream_request_failed:{url}:{exc}") from exc
        except ValueError as exc:
            raise UpstreamFetchError(f"upstream_invalid_json:{url}") from exc


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)
