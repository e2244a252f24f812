"""FastAPI server adapter for the copy-trade backend.

This module exposes a REST API over `CopyTradingService`.

Design intent:
- Keep business logic in `copytrade_orchestrator.service` and the processes
- Keep server-specific concerns (routing, CORS, status mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from copytrade_orchestrator.server.app import create_app
