from __future__ import annotations

import pytest

from grants_api.adapters.result_store import (
    PROJECT_SUMMARY,
    ROUND_MATCH,
    ROUND_SUMMARY,
    InMemoryResultStore,
    RoundResultModel,
    SqlResultStore,
)

ROUND = "0x" + "d" * 40


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryResultStore()
    return SqlResultStore(f"sqlite+pysqlite:///{tmp_path / 'results.db'}")


def test_missing_result_is_none(store) -> None:
    assert store.get_result(ROUND_SUMMARY, "1", ROUND) is None


def test_save_then_get_is_case_insensitive_on_ids(store) -> None:
    store.save_result(ROUND_SUMMARY, "1", ROUND.upper().replace("0X", "0x"), {"contribution_count": 3})
    assert store.get_result(ROUND_SUMMARY, "1", ROUND) == {"contribution_count": 3}


def test_save_overwrites_previous_row(store) -> None:
    store.save_result(ROUND_MATCH, "1", ROUND, {"is_saturated": False})
    store.save_result(ROUND_MATCH, "1", ROUND, {"is_saturated": True})
    assert store.get_result(ROUND_MATCH, "1", ROUND) == {"is_saturated": True}


def test_project_rows_are_listed_per_round(store) -> None:
    store.save_result(PROJECT_SUMMARY, "1", ROUND, {"project_id": "P2"}, project_id="P2")
    store.save_result(PROJECT_SUMMARY, "1", ROUND, {"project_id": "P1"}, project_id="P1")
    store.save_result(PROJECT_SUMMARY, "10", ROUND, {"project_id": "P3"}, project_id="P3")
    store.save_result(ROUND_SUMMARY, "1", ROUND, {"contribution_count": 1})

    rows = store.list_results(PROJECT_SUMMARY, "1", ROUND)

    assert [row["project_id"] for row in rows] == ["P1", "P2"]
    assert store.get_result(PROJECT_SUMMARY, "1", ROUND, "p1") == {"project_id": "P1"}


def test_sql_store_requires_database_url() -> None:
    with pytest.raises(ValueError):
        SqlResultStore()


def test_sql_rows_record_update_time(tmp_path) -> None:
    store = SqlResultStore(f"sqlite+pysqlite:///{tmp_path / 'results.db'}")
    store.save_result(ROUND_SUMMARY, "1", ROUND, {"contribution_count": 1})
    with store._session() as session:
        row = session.query(RoundResultModel).one()
        assert row.updated_at is not None
        assert row.round_id == ROUND
