"""Durable storage for computed round results.

Rows are JSON payloads keyed by (kind, chain, round, project). The in-memory
backend serves development and tests; ``SqlResultStore`` backs production
(any SQLAlchemy URL, PostgreSQL in deployment).
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy import JSON, Column, DateTime, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

ROUND_SUMMARY = "round_summary"
PROJECT_SUMMARY = "project_summary"
ROUND_MATCH = "round_match"


def _row_id(kind: str, chain_id: str, round_id: str, project_id: Optional[str]) -> str:
    return ":".join([kind, str(chain_id), round_id.lower(), (project_id or "").lower()])


class ResultStore(Protocol):
    def save_result(
        self,
        kind: str,
        chain_id: str,
        round_id: str,
        payload: dict[str, Any],
        project_id: Optional[str] = None,
    ) -> None:
        ...

    def get_result(
        self, kind: str, chain_id: str, round_id: str, project_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        ...

    def list_results(self, kind: str, chain_id: str, round_id: str) -> list[dict[str, Any]]:
        ...


class InMemoryResultStore:
    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}

    def save_result(
        self,
        kind: str,
        chain_id: str,
        round_id: str,
        payload: dict[str, Any],
        project_id: Optional[str] = None,
    ) -> None:
        self._rows[_row_id(kind, chain_id, round_id, project_id)] = {
            "kind": kind,
            "chain_id": str(chain_id),
            "round_id": round_id.lower(),
            "payload": dict(payload),
        }

    def get_result(
        self, kind: str, chain_id: str, round_id: str, project_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        row = self._rows.get(_row_id(kind, chain_id, round_id, project_id))
        return dict(row["payload"]) if row else None

    def list_results(self, kind: str, chain_id: str, round_id: str) -> list[dict[str, Any]]:
        return [
            dict(row["payload"])
            for key, row in sorted(self._rows.items())
            if row["kind"] == kind and row["chain_id"] == str(chain_id) and row["round_id"] == round_id.lower()
        ]


class RoundResultModel(Base):
    __tablename__ = "round_results"

    id = Column(String, primary_key=True)
    kind = Column(String, nullable=False, index=True)
    chain_id = Column(String, nullable=False)
    round_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class SqlResultStore:
    def __init__(self, database_url: str | None = None) -> None:
        if not database_url:
            database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlResultStore")

        self.engine = create_engine(database_url, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self):
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def save_result(
        self,
        kind: str,
        chain_id: str,
        round_id: str,
        payload: dict[str, Any],
        project_id: Optional[str] = None,
    ) -> None:
        with self._session() as session:
            session.merge(
                RoundResultModel(
                    id=_row_id(kind, chain_id, round_id, project_id),
                    kind=kind,
                    chain_id=str(chain_id),
                    round_id=round_id.lower(),
                    project_id=project_id.lower() if project_id else None,
                    payload=payload,
                    updated_at=datetime.now(timezone.utc),
                )
            )

    def get_result(
        self, kind: str, chain_id: str, round_id: str, project_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        with self._session() as session:
            model = session.get(RoundResultModel, _row_id(kind, chain_id, round_id, project_id))
            return dict(model.payload) if model else None

    def list_results(self, kind: str, chain_id: str, round_id: str) -> list[dict[str, Any]]:
        with self._session() as session:
            rows = (
                session.query(RoundResultModel)
                .filter_by(kind=kind, chain_id=str(chain_id), round_id=round_id.lower())
                .order_by(RoundResultModel.id)
                .all()
            )
            return [dict(row.payload) for row in rows]
