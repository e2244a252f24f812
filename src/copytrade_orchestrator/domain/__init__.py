"""Domain entities and the shared in-memory store."""

from __future__ import annotations

from copytrade_orchestrator.domain.models import (
    CopiedTrade,
    CopyRelation,
    Trade,
    TradeDirection,
    TradeStatus,
    User,
    realized_pnl,
)
from copytrade_orchestrator.domain.store import DomainStore, EntityKind

__all__ = [
    "CopiedTrade",
    "CopyRelation",
    "DomainStore",
    "EntityKind",
    "Trade",
    "TradeDirection",
    "TradeStatus",
    "User",
    "realized_pnl",
]
