"""Pydantic models for the four entity kinds owned by the domain store.

Entities are frozen: every change goes through `model_copy(update=...)` and the
store swaps the new instance in. A caller holding an entity can never observe
a later write through it.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TradeDirection(str, Enum):
    LONG = "Long"
    SHORT = "Short"


class TradeStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"


def realized_pnl(
    direction: TradeDirection, *, entry_price: float, exit_price: float, quantity: float
) -> float:
    """Profit/loss of a position closed at `exit_price`.

    Long gains when the price rises, Short gains when it falls.
    """

    if direction is TradeDirection.LONG:
        return (exit_price - entry_price) * quantity
    return (entry_price - exit_price) * quantity


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=new_id)


class User(_Entity):
    username: str
    balance: float
    total_pnl: float = 0.0
    win_rate: float = 0.0
    followers_count: int = Field(default=0, ge=0)
    is_trader: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class Trade(_Entity):
    trader_id: str
    symbol: str
    direction: TradeDirection
    entry_price: float
    exit_price: float | None = None
    quantity: float
    pnl: float | None = None
    status: TradeStatus = TradeStatus.OPEN
    created_at: datetime = Field(default_factory=utc_now)
    closed_at: datetime | None = None

    @model_validator(mode="after")
    def _closing_fields_match_status(self) -> Trade:
        closing = (self.exit_price, self.pnl, self.closed_at)
        if self.status is TradeStatus.CLOSED and any(v is None for v in closing):
            raise ValueError("closed trade requires exit_price, pnl and closed_at")
        if self.status is TradeStatus.OPEN and any(v is not None for v in closing):
            raise ValueError("open trade cannot carry exit_price, pnl or closed_at")
        return self

    def closed(self, exit_price: float, *, at: datetime | None = None) -> Trade:
        pnl = realized_pnl(
            self.direction,
            entry_price=self.entry_price,
            exit_price=exit_price,
            quantity=self.quantity,
        )
        return self.model_copy(
            update={
                "exit_price": exit_price,
                "pnl": pnl,
                "status": TradeStatus.CLOSED,
                "closed_at": at or utc_now(),
            }
        )


class CopyRelation(_Entity):
    follower_id: str
    trader_id: str
    copy_ratio: float = Field(gt=0, le=1.0)
    active: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class CopiedTrade(_Entity):
    original_trade_id: str
    follower_id: str
    quantity: float
    pnl: float | None = None
    status: TradeStatus = TradeStatus.OPEN

    def closed_with(self, original: Trade) -> CopiedTrade:
        """Mirror the original trade's close onto this position's own quantity."""

        if original.exit_price is None:
            raise ValueError(f"Trade {original.id} is not closed")
        pnl = realized_pnl(
            original.direction,
            entry_price=original.entry_price,
            exit_price=original.exit_price,
            quantity=self.quantity,
        )
        return self.model_copy(update={"pnl": pnl, "status": TradeStatus.CLOSED})
