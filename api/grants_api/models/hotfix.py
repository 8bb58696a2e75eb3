"""Corrective overlay table applied to known-bad rounds.

The table is plain data so it can be swapped by pointing ``HOTFIX_CONFIG_PATH``
at a JSON document of the form::

    {"rounds": {"0xround": {"backup_round_id": "0x...",
                            "ignored_addresses": ["0x..."],
                            "recovery": {"chain_id": "10", "round_id": "0x..."}}}}
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from grants_api.models.contribution import normalize_address


class RecoverySource(BaseModel):
    """Where the misrouted votes of a round were indexed instead."""

    chain_id: str
    round_id: str

    @field_validator("round_id")
    @classmethod
    def _normalize_round(cls, value: str) -> str:
        return normalize_address(value)


class RoundHotfix(BaseModel):
    backup_round_id: str | None = None
    ignored_addresses: frozenset[str] = Field(default_factory=frozenset)
    recovery: RecoverySource | None = None

    @field_validator("backup_round_id")
    @classmethod
    def _normalize_backup(cls, value: str | None) -> str | None:
        return normalize_address(value) if value else None

    @field_validator("ignored_addresses")
    @classmethod
    def _normalize_ignored(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(normalize_address(item) for item in value if item)


class HotfixConfig(BaseModel):
    rounds: dict[str, RoundHotfix] = Field(default_factory=dict)

    @field_validator("rounds")
    @classmethod
    def _normalize_keys(cls, value: dict[str, RoundHotfix]) -> dict[str, RoundHotfix]:
        return {normalize_address(key): hotfix for key, hotfix in value.items()}

    def for_round(self, round_id: str) -> RoundHotfix | None:
        return self.rounds.get(normalize_address(round_id))

    @classmethod
    def from_file(cls, path: str | Path) -> HotfixConfig:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(payload)

    @classmethod
    def from_env(cls) -> HotfixConfig:
        path = (os.getenv("HOTFIX_CONFIG_PATH") or "").strip()
        if path:
            return cls.from_file(path)
        return default_hotfix_config()


def default_hotfix_config() -> HotfixConfig:
    # Production table: UNICEF votes sent to optimism, one extended round.
    return HotfixConfig(
        rounds={
            "0xdf75054cd67217aee44b4f9e4ebc651c00330938": RoundHotfix(
                recovery=RecoverySource(
                    chain_id="10",
                    round_id="0xdf75054cd67217aee44b4f9e4ebc651c00330938",
                ),
            ),
            "0x0524d9f611b3785f4675c90aa3161ab0e54c4a39": RoundHotfix(
                backup_round_id="0xa2ae8421776035c398c22e143290697da09d19d7",
                ignored_addresses=frozenset(
                    {
                        "0x4bfd2181be8fa2f6702dee41a46baabeb5d3dd3d",
                        "0x16e41af5e034113802d06064fbeb020cc3d47b19",
                    }
                ),
            ),
        }
    )
