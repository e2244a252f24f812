"""Query/mutation surface over the domain store and the two processes.

`createTrade` and `copyTrader` run their process graphs; everything else is a
direct store operation. Unknown ids yield None (or an empty list), never an
exception.
"""

from __future__ import annotations

import logging
from typing import cast

from copytrade_orchestrator.domain.models import (
    CopiedTrade,
    CopyRelation,
    Trade,
    TradeDirection,
    TradeStatus,
    User,
)
from copytrade_orchestrator.domain.store import DomainStore, EntityKind
from copytrade_orchestrator.processes import (
    CopyTraderContext,
    CreateTradeContext,
    build_copy_trader_process,
    build_create_trade_process,
)
from copytrade_orchestrator.workflow import CompiledProcess, RunError, run

logger = logging.getLogger(__name__)


class WorkflowRejected(Exception):
    """A process finished normally but refused the request (validation failure)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CopyTradingService:
    def __init__(self, store: DomainStore, *, starting_balance: float = 10000.0) -> None:
        self.store = store
        self.starting_balance = starting_balance
        # Built once; compiled processes are immutable and shared by all requests.
        self.create_trade_process: CompiledProcess = build_create_trade_process()
        self.copy_trader_process: CompiledProcess = build_copy_trader_process()

    # ---- queries -------------------------------------------------------

    def traders(self) -> list[User]:
        return cast(
            list[User],
            self.store.list(EntityKind.USERS, lambda u: isinstance(u, User) and u.is_trader),
        )

    def users(self) -> list[User]:
        return cast(list[User], self.store.list(EntityKind.USERS))

    def user(self, user_id: str) -> User | None:
        return cast(User | None, self.store.get(EntityKind.USERS, user_id))

    def trades(self, trader_id: str | None = None) -> list[Trade]:
        if trader_id is None:
            return cast(list[Trade], self.store.list(EntityKind.TRADES))
        return cast(
            list[Trade],
            self.store.list(
                EntityKind.TRADES, lambda t: isinstance(t, Trade) and t.trader_id == trader_id
            ),
        )

    def open_trades(self) -> list[Trade]:
        return cast(
            list[Trade],
            self.store.list(
                EntityKind.TRADES,
                lambda t: isinstance(t, Trade) and t.status is TradeStatus.OPEN,
            ),
        )

    def my_copy_relations(self, follower_id: str) -> list[CopyRelation]:
        return cast(
            list[CopyRelation],
            self.store.list(
                EntityKind.COPY_RELATIONS,
                lambda r: isinstance(r, CopyRelation)
                and r.follower_id == follower_id
                and r.active,
            ),
        )

    def my_copied_trades(self, follower_id: str) -> list[CopiedTrade]:
        return cast(
            list[CopiedTrade],
            self.store.list(
                EntityKind.COPIED_TRADES,
                lambda c: isinstance(c, CopiedTrade) and c.follower_id == follower_id,
            ),
        )

    # ---- mutations -----------------------------------------------------

    def create_trade(
        self,
        *,
        trader_id: str,
        symbol: str,
        direction: TradeDirection,
        entry_price: float,
        quantity: float,
    ) -> Trade:
        """Run the Create-Trade process and return the stored trade.

        Raises:
            WorkflowRejected: if the input fails validation.
            RunError: if the process is miswired.
        """

        result = run(
            self.create_trade_process,
            CreateTradeContext(
                store=self.store,
                trader_id=trader_id,
                symbol=symbol,
                direction=direction,
                entry_price=entry_price,
                quantity=quantity,
            ),
        )
        if result.error is not None:
            raise WorkflowRejected(result.error)
        if result.trade_id is None:
            raise RunError("Trade creation failed", process=self.create_trade_process.name)

        # The store is the source of truth, not the context.
        trade = self.store.get(EntityKind.TRADES, result.trade_id)
        if not isinstance(trade, Trade):
            raise RunError(
                f"Trade {result.trade_id} missing after creation",
                process=self.create_trade_process.name,
            )
        return trade

    def copy_trader(self, *, follower_id: str, trader_id: str, copy_ratio: float) -> CopyRelation:
        """Run the Copy-Trader process and return the stored relation.

        Raises:
            WorkflowRejected: if the ratio is outside (0.01, 1.0].
            RunError: if the process is miswired.
        """

        result = run(
            self.copy_trader_process,
            CopyTraderContext(
                store=self.store,
                follower_id=follower_id,
                trader_id=trader_id,
                copy_ratio=copy_ratio,
            ),
        )
        if result.error is not None:
            raise WorkflowRejected(result.error)
        if result.relation_id is None:
            raise RunError("Copy failed", process=self.copy_trader_process.name)

        relation = self.store.get(EntityKind.COPY_RELATIONS, result.relation_id)
        if not isinstance(relation, CopyRelation):
            raise RunError(
                f"Copy relation {result.relation_id} missing after creation",
                process=self.copy_trader_process.name,
            )
        return relation

    def close_trade(self, trade_id: str, exit_price: float) -> Trade | None:
        """Close a trade and settle every position copied from it.

        A trade closes once; closing it again returns it unchanged.
        """

        with self.store.write() as tx:
            trade = tx.get(EntityKind.TRADES, trade_id)
            if not isinstance(trade, Trade):
                return None
            if trade.status is TradeStatus.CLOSED:
                logger.info("Trade already closed", extra={"trade_id": trade_id})
                return trade

            closed = trade.closed(exit_price)
            tx.update(EntityKind.TRADES, trade_id, lambda _t: closed)

            copies = tx.list(
                EntityKind.COPIED_TRADES,
                lambda c: isinstance(c, CopiedTrade) and c.original_trade_id == trade_id,
            )
            for copied in cast(list[CopiedTrade], copies):
                tx.update(EntityKind.COPIED_TRADES, copied.id, lambda c: c.closed_with(closed))

        logger.info(
            "Trade closed",
            extra={"trade_id": trade_id, "pnl": closed.pnl, "copies_settled": len(copies)},
        )
        return closed

    def stop_copying(self, relation_id: str) -> CopyRelation | None:
        """Deactivate a copy relation and decrement the trader's follower count.

        Relations never reactivate. Stopping an inactive relation changes nothing.
        """

        with self.store.write() as tx:
            relation = tx.get(EntityKind.COPY_RELATIONS, relation_id)
            if not isinstance(relation, CopyRelation):
                return None
            if not relation.active:
                return relation

            stopped = relation.model_copy(update={"active": False})
            tx.update(EntityKind.COPY_RELATIONS, relation_id, lambda _r: stopped)
            tx.update(
                EntityKind.USERS,
                relation.trader_id,
                lambda u: u.model_copy(update={"followers_count": max(u.followers_count - 1, 0)}),
            )

        logger.info(
            "Stopped copying",
            extra={"relation_id": relation_id, "trader_id": stopped.trader_id},
        )
        return stopped

    def register_user(self, username: str, is_trader: bool) -> User:
        user = User(username=username, balance=self.starting_balance, is_trader=is_trader)
        self.store.insert(EntityKind.USERS, user)
        logger.info("User registered", extra={"user_id": user.id, "is_trader": is_trader})
        return user
