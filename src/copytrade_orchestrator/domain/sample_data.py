"""Demo users and trades loaded at startup when seeding is enabled."""

from __future__ import annotations

import logging

from copytrade_orchestrator.domain.models import Trade, TradeDirection, TradeStatus, User, utc_now
from copytrade_orchestrator.domain.store import DomainStore, EntityKind

logger = logging.getLogger(__name__)


def seed_sample_data(store: DomainStore) -> None:
    """Insert two traders, one investor, one open and one closed trade.

    Follower counts start at zero because no copy relations are seeded.
    """

    now = utc_now()
    users = [
        User(
            id="trader1",
            username="AlphaTrader",
            balance=100000.0,
            total_pnl=15420.50,
            win_rate=0.72,
            is_trader=True,
            created_at=now,
        ),
        User(
            id="trader2",
            username="CryptoKing",
            balance=250000.0,
            total_pnl=42350.0,
            win_rate=0.68,
            is_trader=True,
            created_at=now,
        ),
        User(
            id="user1",
            username="NewInvestor",
            balance=10000.0,
            total_pnl=520.0,
            win_rate=0.65,
            created_at=now,
        ),
    ]
    trades = [
        Trade(
            id="trade1",
            trader_id="trader1",
            symbol="BTC/USD",
            direction=TradeDirection.LONG,
            entry_price=42500.0,
            quantity=0.5,
            created_at=now,
        ),
        Trade(
            id="trade2",
            trader_id="trader2",
            symbol="ETH/USD",
            direction=TradeDirection.LONG,
            entry_price=2250.0,
            exit_price=2380.0,
            quantity=5.0,
            pnl=650.0,
            status=TradeStatus.CLOSED,
            created_at=now,
            closed_at=now,
        ),
    ]

    with store.write() as tx:
        for user in users:
            tx.insert(EntityKind.USERS, user)
        for trade in trades:
            tx.insert(EntityKind.TRADES, trade)

    logger.info("Sample data loaded", extra={"users": len(users), "trades": len(trades)})
