"""The shared, in-memory domain store.

One `DomainStore` is built at startup and handed to every workflow and query
path. It owns four tables (users, trades, copy relations, copied trades) and
guards them with a readers/writer lock:

- any number of concurrent readers
- at most one writer, which excludes all readers

Single operations (`get`, `insert`, `update`, `list`) each take the lock for
their own duration. Work that must observe and change several tables as one
step (a workflow task, closing a trade) opens a section instead:

    with store.write() as tx:
        relations = tx.list(EntityKind.COPY_RELATIONS, lambda r: r.active)
        ...
        tx.insert(EntityKind.COPIED_TRADES, copied)

The lock is not reentrant. Inside a section, use the section object only.

The store is volatile. Nothing is persisted.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TypeVar, cast

from pydantic import BaseModel

from copytrade_orchestrator.domain.models import (
    CopiedTrade,
    CopyRelation,
    Trade,
    TradeStatus,
    User,
    realized_pnl,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)


class EntityKind(str, Enum):
    USERS = "users"
    TRADES = "trades"
    COPY_RELATIONS = "copy_relations"
    COPIED_TRADES = "copied_trades"


ENTITY_TYPES: dict[EntityKind, type[BaseModel]] = {
    EntityKind.USERS: User,
    EntityKind.TRADES: Trade,
    EntityKind.COPY_RELATIONS: CopyRelation,
    EntityKind.COPIED_TRADES: CopiedTrade,
}


class ReadWriteLock:
    """Writer-preferring readers/writer lock.

    Once a writer is waiting, new readers queue behind it so a steady stream of
    queries cannot starve mutations.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class StoreView:
    """Read access to the tables. Only valid while its section is open."""

    def __init__(self, tables: dict[EntityKind, dict[str, BaseModel]]) -> None:
        self._tables = tables

    def get(self, kind: EntityKind, entity_id: str) -> BaseModel | None:
        return self._tables[kind].get(entity_id)

    def list(
        self, kind: EntityKind, predicate: Callable[[BaseModel], bool] | None = None
    ) -> list[BaseModel]:
        rows = self._tables[kind].values()
        if predicate is None:
            return list(rows)
        return [row for row in rows if predicate(row)]

    def count(self, kind: EntityKind) -> int:
        return len(self._tables[kind])


class StoreTransaction(StoreView):
    """Read/write access to the tables. Only valid while its section is open."""

    def insert(self, kind: EntityKind, entity: BaseModel) -> None:
        expected = ENTITY_TYPES[kind]
        if not isinstance(entity, expected):
            raise TypeError(
                f"Cannot insert {type(entity).__name__} into {kind.value}; "
                f"expected {expected.__name__}"
            )
        table = self._tables[kind]
        entity_id = getattr(entity, "id")
        if entity_id in table:
            raise KeyError(f"Duplicate id in {kind.value}: {entity_id}")
        table[entity_id] = entity

    def update(
        self, kind: EntityKind, entity_id: str, mutator: Callable[[E], E]
    ) -> E | None:
        """Replace an entity with `mutator(entity)`.

        Returns the new entity, or None if the id is unknown.
        """

        table = self._tables[kind]
        current = table.get(entity_id)
        if current is None:
            return None
        updated = mutator(current)  # type: ignore[arg-type]
        if getattr(updated, "id") != entity_id:
            raise ValueError(f"Mutator changed the id of {kind.value}/{entity_id}")
        table[entity_id] = updated
        return updated


class DomainStore:
    """Thread-safe owner of all users, trades, copy relations and copied trades."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._tables: dict[EntityKind, dict[str, BaseModel]] = {kind: {} for kind in EntityKind}

    @contextmanager
    def read(self) -> Iterator[StoreView]:
        self._lock.acquire_read()
        try:
            yield StoreView(self._tables)
        finally:
            self._lock.release_read()

    @contextmanager
    def write(self) -> Iterator[StoreTransaction]:
        self._lock.acquire_write()
        try:
            yield StoreTransaction(self._tables)
        finally:
            self._lock.release_write()

    def get(self, kind: EntityKind, entity_id: str) -> BaseModel | None:
        with self.read() as view:
            return view.get(kind, entity_id)

    def list(
        self, kind: EntityKind, predicate: Callable[[BaseModel], bool] | None = None
    ) -> list[BaseModel]:
        with self.read() as view:
            return view.list(kind, predicate)

    def insert(self, kind: EntityKind, entity: BaseModel) -> None:
        with self.write() as tx:
            tx.insert(kind, entity)

    def update(self, kind: EntityKind, entity_id: str, mutator: Callable[[E], E]) -> E | None:
        with self.write() as tx:
            return tx.update(kind, entity_id, mutator)

    def verify_invariants(self) -> list[str]:
        """Check the cross-entity invariants against one consistent snapshot.

        Returns human-readable violations; an empty list means consistent.
        """

        with self.read() as view:
            return _invariant_violations(view)


def _invariant_violations(view: StoreView) -> list[str]:
    problems: list[str] = []

    active_by_trader: dict[str, int] = {}
    for relation in cast(list[CopyRelation], view.list(EntityKind.COPY_RELATIONS)):
        if relation.active:
            active_by_trader[relation.trader_id] = active_by_trader.get(relation.trader_id, 0) + 1

    for user in cast(list[User], view.list(EntityKind.USERS)):
        expected = active_by_trader.get(user.id, 0)
        if user.followers_count != expected:
            problems.append(
                f"User {user.id} has followers_count={user.followers_count}, "
                f"but {expected} active copy relations"
            )

    for copied in cast(list[CopiedTrade], view.list(EntityKind.COPIED_TRADES)):
        original = view.get(EntityKind.TRADES, copied.original_trade_id)
        if not isinstance(original, Trade):
            problems.append(f"Copied trade {copied.id} references unknown trade")
            continue
        if copied.status is not original.status:
            problems.append(
                f"Copied trade {copied.id} is {copied.status.value}, "
                f"original {original.id} is {original.status.value}"
            )
            continue
        if original.status is TradeStatus.CLOSED:
            expected_pnl = realized_pnl(
                original.direction,
                entry_price=original.entry_price,
                exit_price=cast(float, original.exit_price),
                quantity=copied.quantity,
            )
            if copied.pnl is None or abs(copied.pnl - expected_pnl) > 1e-9:
                problems.append(
                    f"Copied trade {copied.id} has pnl={copied.pnl}, expected {expected_pnl}"
                )
        elif copied.pnl is not None:
            problems.append(f"Copied trade {copied.id} is open but carries pnl")

    return problems
