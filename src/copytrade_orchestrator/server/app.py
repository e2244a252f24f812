"""FastAPI app factory.

Endpoints are intentionally thin wrappers over `CopyTradingService`.

Handlers are plain (sync) functions, so FastAPI runs each request on its
worker thread pool; a workflow runs to completion on that one thread.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio.to_thread
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from copytrade_orchestrator import __version__
from copytrade_orchestrator.config import CopyTradeSettings
from copytrade_orchestrator.domain.models import CopiedTrade, CopyRelation, Trade, User
from copytrade_orchestrator.domain.sample_data import seed_sample_data
from copytrade_orchestrator.domain.store import DomainStore
from copytrade_orchestrator.server.models import (
    CloseTradeRequest,
    CopyTraderRequest,
    CreateTradeRequest,
    HealthResponse,
    RegisterUserRequest,
)
from copytrade_orchestrator.service import CopyTradingService, WorkflowRejected
from copytrade_orchestrator.workflow import RunError

logger = logging.getLogger(__name__)


def create_app(
    settings: CopyTradeSettings | None = None, store: DomainStore | None = None
) -> FastAPI:
    settings = settings or CopyTradeSettings()

    if store is None:
        store = DomainStore()
        if settings.seed_sample_data:
            seed_sample_data(store)

    # Process graphs are built here, once; a wiring defect fails startup.
    service = CopyTradingService(store, starting_balance=settings.starting_balance)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        limiter = anyio.to_thread.current_default_thread_limiter()
        limiter.total_tokens = settings.worker_threads
        logger.info("Worker pool sized", extra={"worker_threads": settings.worker_threads})
        yield

    app = FastAPI(
        title="Copy-Trade Orchestrator",
        version=__version__,
        description="REST API over the copy-trading workflows and store.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RunError)
    async def run_error_handler(request: Request, exc: RunError) -> JSONResponse:
        logger.error(
            "Workflow run failed",
            exc_info=exc,
            extra={"path": request.url.path, "workflow": exc.process, "node": exc.node},
        )
        return JSONResponse(status_code=500, content={"detail": "Internal workflow error"})

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        violations = service.store.verify_invariants()
        return HealthResponse(
            status="ok",
            version=__version__,
            consistent=not violations,
            violations=violations,
        )

    # ---- queries -------------------------------------------------------

    @app.get("/api/traders", response_model=list[User])
    def traders() -> list[User]:
        return service.traders()

    @app.get("/api/users", response_model=list[User])
    def users() -> list[User]:
        return service.users()

    @app.get("/api/users/{user_id}", response_model=User)
    def get_user(user_id: str) -> User:
        user = service.user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @app.get("/api/trades", response_model=list[Trade])
    def trades(trader_id: str | None = Query(default=None)) -> list[Trade]:
        return service.trades(trader_id)

    @app.get("/api/trades/open", response_model=list[Trade])
    def open_trades() -> list[Trade]:
        return service.open_trades()

    @app.get("/api/followers/{follower_id}/copy-relations", response_model=list[CopyRelation])
    def my_copy_relations(follower_id: str) -> list[CopyRelation]:
        return service.my_copy_relations(follower_id)

    @app.get("/api/followers/{follower_id}/copied-trades", response_model=list[CopiedTrade])
    def my_copied_trades(follower_id: str) -> list[CopiedTrade]:
        return service.my_copied_trades(follower_id)

    # ---- mutations -----------------------------------------------------

    @app.post("/api/trades", response_model=Trade)
    def create_trade(req: CreateTradeRequest) -> Trade:
        try:
            return service.create_trade(
                trader_id=req.trader_id,
                symbol=req.symbol,
                direction=req.direction,
                entry_price=req.entry_price,
                quantity=req.quantity,
            )
        except WorkflowRejected as e:
            raise HTTPException(status_code=422, detail=e.message) from e

    @app.post("/api/trades/{trade_id}/close", response_model=Trade)
    def close_trade(trade_id: str, req: CloseTradeRequest) -> Trade:
        trade = service.close_trade(trade_id, req.exit_price)
        if trade is None:
            raise HTTPException(status_code=404, detail="Trade not found")
        return trade

    @app.post("/api/copy-relations", response_model=CopyRelation)
    def copy_trader(req: CopyTraderRequest) -> CopyRelation:
        try:
            return service.copy_trader(
                follower_id=req.follower_id,
                trader_id=req.trader_id,
                copy_ratio=req.copy_ratio,
            )
        except WorkflowRejected as e:
            raise HTTPException(status_code=422, detail=e.message) from e

    @app.post("/api/copy-relations/{relation_id}/stop", response_model=CopyRelation)
    def stop_copying(relation_id: str) -> CopyRelation:
        relation = service.stop_copying(relation_id)
        if relation is None:
            raise HTTPException(status_code=404, detail="Copy relation not found")
        return relation

    @app.post("/api/users", response_model=User)
    def register_user(req: RegisterUserRequest) -> User:
        return service.register_user(req.username, req.is_trader)

    return app
