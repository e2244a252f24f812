"""Concrete processes wired to the domain store."""

from __future__ import annotations

from copytrade_orchestrator.processes.copy_trader import (
    CopyTraderContext,
    build_copy_trader_process,
)
from copytrade_orchestrator.processes.create_trade import (
    CreateTradeContext,
    build_create_trade_process,
)

__all__ = [
    "CopyTraderContext",
    "CreateTradeContext",
    "build_copy_trader_process",
    "build_create_trade_process",
]
