from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_address(value: str) -> str:
    return (value or "").strip().lower()


class QFContribution(BaseModel):
    """Single vote as it flows through hotfixes, summaries and matching."""

    model_config = ConfigDict(frozen=True)

    amount: int = Field(gt=0)
    token: str
    contributor: str
    project_id: str
    payout_address: str
    usd_value: Decimal | None = Field(default=None, ge=0)
    created_at: int = 0

    @field_validator("token", "contributor", "payout_address")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_address(value)


class QFVotedEvent(BaseModel):
    """Raw vote row returned by the round subgraph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    amount: str
    token: str
    from_address: str = Field(alias="from")
    to: str
    project_id: str = Field(alias="projectId")
    created_at: str = Field(alias="createdAt")

    def to_contribution(self) -> QFContribution:
        return QFContribution(
            amount=int(self.amount),
            token=self.token,
            contributor=self.from_address,
            project_id=self.project_id,
            payout_address=self.to,
            created_at=int(self.created_at),
        )
