"""Error taxonomy shared by the core and its collaborators."""

from __future__ import annotations


class GrantsApiError(RuntimeError):
    pass


class ValidationError(GrantsApiError):
    """A required identifier (chain, round, project) is missing or malformed."""


class UnsupportedStrategyError(GrantsApiError):
    """The round uses a voting strategy with no matching implementation."""


class UpstreamFetchError(GrantsApiError):
    """Indexer, IPFS or pricing lookup failed."""


class EmptyDistributionError(GrantsApiError):
    """A payout tree was requested for a distribution with nothing payable."""


class PrecisionError(GrantsApiError):
    """An amount cannot be represented at the fixed-point scale without loss."""
