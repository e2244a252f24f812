"""Create-Trade process.

    Validate Trade Input -> Is Valid? --Yes--> Create Trade Record -> Copy Trade To Followers
                                      --No---> end (error on context)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import cast

from copytrade_orchestrator.domain.models import CopiedTrade, CopyRelation, Trade, TradeDirection
from copytrade_orchestrator.domain.store import DomainStore, EntityKind
from copytrade_orchestrator.workflow import (
    CompiledProcess,
    ExclusiveGateway,
    ProcessDefinition,
    Task,
    build,
    require,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreateTradeContext:
    store: DomainStore
    trader_id: str
    symbol: str
    direction: TradeDirection
    entry_price: float
    quantity: float

    is_valid: bool = False
    trade_id: str | None = None
    copied_trade_ids: tuple[str, ...] = ()
    error: str | None = None
    aborted: bool = False


def validate_trade_input(ctx: CreateTradeContext) -> CreateTradeContext:
    # Both must be finite and positive; NaN fails every comparison.
    if not 0 < ctx.quantity < math.inf:
        result = replace(ctx, is_valid=False, error="Invalid quantity")
    elif not 0 < ctx.entry_price < math.inf:
        result = replace(ctx, is_valid=False, error="Invalid price")
    else:
        result = replace(ctx, is_valid=True, error=None)
    logger.info(
        "Trade input validated",
        extra={"trader_id": ctx.trader_id, "valid": result.is_valid, "error": result.error},
    )
    return result


def is_valid(ctx: CreateTradeContext) -> str:
    return "Yes" if ctx.is_valid else "No"


def create_trade_record(ctx: CreateTradeContext) -> CreateTradeContext:
    trade = Trade(
        trader_id=ctx.trader_id,
        symbol=ctx.symbol,
        direction=ctx.direction,
        entry_price=ctx.entry_price,
        quantity=ctx.quantity,
    )
    with ctx.store.write() as tx:
        tx.insert(EntityKind.TRADES, trade)
    logger.info("Trade created", extra={"trade_id": trade.id, "trader_id": trade.trader_id})
    return replace(ctx, trade_id=trade.id)


def copy_trade_to_followers(ctx: CreateTradeContext) -> CreateTradeContext:
    """Open one copied position per active relation following this trader.

    The relation set is read and the copies written inside one write section,
    so a concurrent Copy-Trader run lands either wholly before or after it.
    """

    trade_id: str = require(ctx, "trade_id")
    copied_ids: list[str] = []
    with ctx.store.write() as tx:
        relations = tx.list(
            EntityKind.COPY_RELATIONS,
            lambda r: isinstance(r, CopyRelation) and r.trader_id == ctx.trader_id and r.active,
        )
        for relation in cast(list[CopyRelation], relations):
            copied = CopiedTrade(
                original_trade_id=trade_id,
                follower_id=relation.follower_id,
                quantity=ctx.quantity * relation.copy_ratio,
            )
            tx.insert(EntityKind.COPIED_TRADES, copied)
            copied_ids.append(copied.id)
    logger.info("Trade copied to followers", extra={"trade_id": trade_id, "count": len(copied_ids)})
    return replace(ctx, copied_trade_ids=tuple(copied_ids))


CREATE_TRADE = ProcessDefinition(
    name="create_trade",
    start="Validate Trade Input",
    nodes=[
        Task("Validate Trade Input", validate_trade_input, next="Is Valid"),
        ExclusiveGateway(
            "Is Valid",
            is_valid,
            branches={"Yes": "Create Trade Record", "No": None},
        ),
        Task("Create Trade Record", create_trade_record, next="Copy Trade To Followers"),
        Task("Copy Trade To Followers", copy_trade_to_followers),
    ],
)


def build_create_trade_process() -> CompiledProcess:
    return build(CREATE_TRADE)
