"""Unit tests for the Copy-Trader process."""

from __future__ import annotations

import pytest

from copytrade_orchestrator.domain.models import CopyRelation, User
from copytrade_orchestrator.domain.store import DomainStore, EntityKind
from copytrade_orchestrator.processes import CopyTraderContext, build_copy_trader_process
from copytrade_orchestrator.workflow import run


def _ctx(store: DomainStore, ratio: float, trader_id: str = "T") -> CopyTraderContext:
    return CopyTraderContext(store=store, follower_id="F", trader_id=trader_id, copy_ratio=ratio)


@pytest.mark.parametrize("ratio", [0.011, 0.5, 1.0])
def test_valid_ratio_creates_active_relation(
    store: DomainStore, trader: User, follower: User, ratio: float
) -> None:
    final = run(build_copy_trader_process(), _ctx(store, ratio))

    assert final.error is None
    assert final.relation_id is not None
    relation = store.get(EntityKind.COPY_RELATIONS, final.relation_id)
    assert isinstance(relation, CopyRelation)
    assert relation.active
    assert relation.copy_ratio == ratio
    assert relation.follower_id == follower.id
    assert relation.trader_id == trader.id

    updated = store.get(EntityKind.USERS, trader.id)
    assert isinstance(updated, User)
    assert updated.followers_count == 1
    assert final.followers_count == 1
    assert store.verify_invariants() == []


@pytest.mark.parametrize(
    "ratio", [-1.0, 0.0, 0.005, 0.01, 1.0001, 2.0, float("nan"), float("inf"), float("-inf")]
)
def test_invalid_ratio_changes_nothing(store: DomainStore, trader: User, ratio: float) -> None:
    final = run(build_copy_trader_process(), _ctx(store, ratio))

    assert final.error == "Invalid copy ratio"
    assert final.relation_id is None
    assert store.list(EntityKind.COPY_RELATIONS) == []
    updated = store.get(EntityKind.USERS, trader.id)
    assert isinstance(updated, User)
    assert updated.followers_count == 0


def test_each_copy_increments_by_exactly_one(store: DomainStore, trader: User) -> None:
    process = build_copy_trader_process()
    for _ in range(3):
        run(process, _ctx(store, 0.5))

    updated = store.get(EntityKind.USERS, trader.id)
    assert isinstance(updated, User)
    assert updated.followers_count == 3


def test_unknown_trader_still_records_relation(store: DomainStore) -> None:
    final = run(build_copy_trader_process(), _ctx(store, 0.5, trader_id="ghost"))

    assert final.error is None
    assert final.relation_id is not None
    assert final.followers_count is None
