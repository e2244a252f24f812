"""Unit tests for the query/mutation service."""

from __future__ import annotations

import threading

import pytest

from copytrade_orchestrator.domain.models import (
    CopiedTrade,
    Trade,
    TradeDirection,
    TradeStatus,
    User,
)
from copytrade_orchestrator.domain.store import DomainStore, EntityKind
from copytrade_orchestrator.service import CopyTradingService, WorkflowRejected


def _open(service: CopyTradingService, trader_id: str, **kwargs: object) -> Trade:
    fields: dict[str, object] = {
        "trader_id": trader_id,
        "symbol": "BTC/USD",
        "direction": TradeDirection.LONG,
        "entry_price": 100.0,
        "quantity": 2.0,
    }
    fields.update(kwargs)
    return service.create_trade(**fields)  # type: ignore[arg-type]


def test_worked_example(service: CopyTradingService, trader: User, follower: User) -> None:
    service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)
    assert service.user(trader.id).followers_count == 1  # type: ignore[union-attr]

    trade = _open(service, trader.id)
    copies = service.my_copied_trades(follower.id)
    assert len(copies) == 1
    assert copies[0].quantity == 1.0

    closed = service.close_trade(trade.id, 110.0)
    assert closed is not None
    assert closed.pnl == 20.0
    assert service.my_copied_trades(follower.id)[0].pnl == 10.0
    assert service.store.verify_invariants() == []


def test_create_trade_rejection_is_typed(service: CopyTradingService, trader: User) -> None:
    with pytest.raises(WorkflowRejected) as excinfo:
        _open(service, trader.id, quantity=0.0)
    assert excinfo.value.message == "Invalid quantity"
    assert service.trades() == []


def test_copy_trader_rejection_is_typed(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    with pytest.raises(WorkflowRejected, match="Invalid copy ratio"):
        service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=1.5)
    assert service.user(trader.id).followers_count == 0  # type: ignore[union-attr]


def test_close_short_trade_propagates_to_copies(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.25)
    trade = _open(service, trader.id, direction=TradeDirection.SHORT, quantity=4.0)

    closed = service.close_trade(trade.id, 90.0)

    assert closed is not None
    assert closed.status is TradeStatus.CLOSED
    assert closed.exit_price == 90.0
    assert closed.pnl == 40.0
    assert closed.closed_at is not None
    (copied,) = service.my_copied_trades(follower.id)
    assert copied.status is TradeStatus.CLOSED
    assert copied.pnl == 10.0


def test_close_trade_twice_keeps_first_close(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)
    trade = _open(service, trader.id)

    first = service.close_trade(trade.id, 110.0)
    second = service.close_trade(trade.id, 50.0)

    assert first == second
    assert service.my_copied_trades(follower.id)[0].pnl == 10.0
    assert service.store.verify_invariants() == []


def test_close_unknown_trade_returns_none(service: CopyTradingService) -> None:
    assert service.close_trade("missing", 1.0) is None


def test_copied_quantity_is_fixed_at_creation(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    relation = service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)
    trade = _open(service, trader.id)
    service.stop_copying(relation.id)
    service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=1.0)

    service.close_trade(trade.id, 110.0)
    (copied,) = service.my_copied_trades(follower.id)
    assert copied.quantity == 1.0
    assert copied.pnl == 10.0


def test_stop_copying_decrements_once(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    relation = service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)

    stopped = service.stop_copying(relation.id)
    again = service.stop_copying(relation.id)

    assert stopped is not None and not stopped.active
    assert again is not None and not again.active
    assert service.user(trader.id).followers_count == 0  # type: ignore[union-attr]
    assert service.my_copy_relations(follower.id) == []
    assert service.store.verify_invariants() == []


def test_stop_copying_floors_follower_count_at_zero(
    service: CopyTradingService, store: DomainStore, follower: User
) -> None:
    store.insert(EntityKind.USERS, User(id="T0", username="t0", balance=1.0, is_trader=True))
    first = service.copy_trader(follower_id=follower.id, trader_id="T0", copy_ratio=0.5)
    second = service.copy_trader(follower_id=follower.id, trader_id="T0", copy_ratio=0.5)
    # Simulate drift: the count was reset behind the relations' back.
    store.update(EntityKind.USERS, "T0", lambda u: u.model_copy(update={"followers_count": 0}))

    service.stop_copying(first.id)
    service.stop_copying(second.id)

    assert service.user("T0").followers_count == 0  # type: ignore[union-attr]


def test_stop_copying_unknown_relation_returns_none(service: CopyTradingService) -> None:
    assert service.stop_copying("missing") is None


def test_stopped_relation_gets_no_new_copies(
    service: CopyTradingService, trader: User, follower: User
) -> None:
    relation = service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)
    service.stop_copying(relation.id)

    _open(service, trader.id)
    assert service.my_copied_trades(follower.id) == []


def test_queries(service: CopyTradingService, trader: User, follower: User) -> None:
    a = _open(service, trader.id)
    _open(service, "other")
    service.close_trade(a.id, 120.0)

    assert [u.id for u in service.traders()] == [trader.id]
    assert {u.id for u in service.users()} == {trader.id, follower.id}
    assert service.user("missing") is None
    assert len(service.trades()) == 2
    assert [t.id for t in service.trades(trader.id)] == [a.id]
    assert all(t.trader_id == "other" for t in service.open_trades())
    assert service.trades("nobody") == []


def test_register_user_uses_starting_balance(store: DomainStore) -> None:
    service = CopyTradingService(store, starting_balance=2500.0)
    user = service.register_user("newbie", True)

    assert user.balance == 2500.0
    assert user.is_trader
    assert user.followers_count == 0
    assert user.total_pnl == 0.0
    assert service.user(user.id) == user


def test_concurrent_copies_and_trades_stay_consistent(
    service: CopyTradingService, trader: User
) -> None:
    followers = [service.register_user(f"f{i}", False) for i in range(20)]
    barrier = threading.Barrier(len(followers) + 5)
    errors: list[BaseException] = []

    def copy(user_id: str) -> None:
        try:
            barrier.wait()
            service.copy_trader(follower_id=user_id, trader_id=trader.id, copy_ratio=0.5)
        except BaseException as e:  # noqa: BLE001
            errors.append(e)

    def trade() -> None:
        try:
            barrier.wait()
            _open(service, trader.id)
        except BaseException as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=copy, args=(f.id,)) for f in followers]
    threads += [threading.Thread(target=trade) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert service.user(trader.id).followers_count == 20  # type: ignore[union-attr]
    copies = service.store.list(EntityKind.COPIED_TRADES)
    assert all(isinstance(c, CopiedTrade) and c.quantity == 1.0 for c in copies)
    # Every copy belongs to a relation that existed when its trade fanned out.
    assert len(copies) <= 20 * 5
    assert service.store.verify_invariants() == []
