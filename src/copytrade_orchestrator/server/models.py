"""Pydantic request/response models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field

from copytrade_orchestrator.domain.models import TradeDirection


class CreateTradeRequest(BaseModel):
    trader_id: str
    symbol: str = Field(min_length=1)
    direction: TradeDirection
    # Sign checks belong to the Create-Trade process, which reports them as
    # business errors; the request only has to be well-formed.
    entry_price: float
    quantity: float


class CloseTradeRequest(BaseModel):
    exit_price: float = Field(gt=0)


class CopyTraderRequest(BaseModel):
    follower_id: str
    trader_id: str
    copy_ratio: float


class RegisterUserRequest(BaseModel):
    username: str = Field(min_length=1)
    is_trader: bool = False


class HealthResponse(BaseModel):
    status: str
    version: str
    consistent: bool
    violations: list[str] = Field(default_factory=list)
