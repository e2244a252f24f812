"""Copy-trade orchestrator.

Provides:
- an in-memory domain store for users, trades and copy relations
- a small task/gateway workflow interpreter
- the Create-Trade and Copy-Trader processes built on top of it
- a FastAPI surface over the query/mutation service
"""

__version__ = "0.1.0"

from copytrade_orchestrator.config import CopyTradeSettings

__all__ = ["__version__", "CopyTradeSettings"]
