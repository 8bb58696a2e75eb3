"""Pydantic models."""

from grants_api.models.contribution import QFContribution, QFVotedEvent
from grants_api.models.distribution import (
    MatchPreview,
    PayoutLeaf,
    PayoutTree,
    QFDistributionEntry,
    QFDistributionResults,
)
from grants_api.models.error import ErrorDetail
from grants_api.models.hotfix import HotfixConfig, RecoverySource, RoundHotfix
from grants_api.models.round import ChainId, RoundMetadata, VotingStrategy, VotingStrategyName
from grants_api.models.summary import ProjectSummaryRecord, QFContributionSummary

__all__ = [
    "ChainId",
    "ErrorDetail",
    "HotfixConfig",
    "MatchPreview",
    "PayoutLeaf",
    "PayoutTree",
    "ProjectSummaryRecord",
    "QFContribution",
    "QFContributionSummary",
    "QFDistributionEntry",
    "QFDistributionResults",
    "QFVotedEvent",
    "RecoverySource",
    "RoundHotfix",
    "RoundMetadata",
    "VotingStrategy",
    "VotingStrategyName",
]
