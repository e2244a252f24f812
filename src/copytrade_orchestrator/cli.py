"""CLI entrypoint for the copy-trade backend."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from copytrade_orchestrator import __version__
from copytrade_orchestrator.config import CopyTradeSettings
from copytrade_orchestrator.domain.models import TradeDirection
from copytrade_orchestrator.domain.store import DomainStore
from copytrade_orchestrator.logging import configure_logging
from copytrade_orchestrator.service import CopyTradingService, WorkflowRejected

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copytrade",
        description="Copy-trading backend driven by task/gateway workflows",
    )
    parser.add_argument(
        "--version", action="version", version=f"copytrade-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the REST API")
    serve.add_argument("--host", default=None, help="Bind address (default: COPYTRADE_HOST)")
    serve.add_argument(
        "--port", type=int, default=None, help="Bind port (default: COPYTRADE_PORT)"
    )

    subparsers.add_parser(
        "demo",
        help=(
            "Register a trader and a follower, copy at ratio 0.5, open and close a trade, "
            "then print the resulting records as JSON"
        ),
    )
    return parser


def run_demo(service: CopyTradingService) -> dict[str, object]:
    trader = service.register_user("DemoTrader", True)
    follower = service.register_user("DemoFollower", False)

    relation = service.copy_trader(follower_id=follower.id, trader_id=trader.id, copy_ratio=0.5)
    trade = service.create_trade(
        trader_id=trader.id,
        symbol="BTC/USD",
        direction=TradeDirection.LONG,
        entry_price=100.0,
        quantity=2.0,
    )
    closed = service.close_trade(trade.id, 110.0)

    return {
        "trader": service.user(trader.id),
        "relation": relation,
        "trade": closed,
        "copied_trades": service.my_copied_trades(follower.id),
        "violations": service.store.verify_invariants(),
    }


def _to_json(value: object) -> object:
    if isinstance(value, list):
        return [_to_json(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = CopyTradeSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            import uvicorn

            from copytrade_orchestrator.server.app import create_app

            host = args.host or settings.host
            port = args.port or settings.port
            logger.info("Starting server", extra={"host": host, "port": port})
            uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
            return 0

        if args.command == "demo":
            service = CopyTradingService(DomainStore(), starting_balance=settings.starting_balance)
            result = run_demo(service)
            print(json.dumps({k: _to_json(v) for k, v in result.items()}, indent=2))
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except WorkflowRejected as e:
        logger.warning("Request rejected", extra={"reason": e.message})
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
