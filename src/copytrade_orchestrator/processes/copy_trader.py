"""Copy-Trader process.

    Validate Copy Request -> Is Valid? --Yes--> Create Copy Relation -> Update Follower Count
                                       --No---> end (error on context)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from copytrade_orchestrator.domain.models import CopyRelation, User
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

MIN_COPY_RATIO = 0.01
MAX_COPY_RATIO = 1.0


@dataclass(frozen=True, slots=True)
class CopyTraderContext:
    store: DomainStore
    follower_id: str
    trader_id: str
    copy_ratio: float

    is_valid: bool = False
    relation_id: str | None = None
    followers_count: int | None = None
    error: str | None = None
    aborted: bool = False


def validate_copy_request(ctx: CopyTraderContext) -> CopyTraderContext:
    # The lower bound is exclusive: 0.01 itself is rejected. NaN fails both sides.
    if not MIN_COPY_RATIO < ctx.copy_ratio <= MAX_COPY_RATIO:
        result = replace(ctx, is_valid=False, error="Invalid copy ratio")
    else:
        result = replace(ctx, is_valid=True, error=None)
    logger.info(
        "Copy request validated",
        extra={
            "follower_id": ctx.follower_id,
            "trader_id": ctx.trader_id,
            "valid": result.is_valid,
        },
    )
    return result


def is_valid(ctx: CopyTraderContext) -> str:
    return "Yes" if ctx.is_valid else "No"


def create_copy_relation(ctx: CopyTraderContext) -> CopyTraderContext:
    relation = CopyRelation(
        follower_id=ctx.follower_id,
        trader_id=ctx.trader_id,
        copy_ratio=ctx.copy_ratio,
    )
    with ctx.store.write() as tx:
        tx.insert(EntityKind.COPY_RELATIONS, relation)
    logger.info("Copy relation created", extra={"relation_id": relation.id})
    return replace(ctx, relation_id=relation.id)


def update_follower_count(ctx: CopyTraderContext) -> CopyTraderContext:
    require(ctx, "relation_id")
    with ctx.store.write() as tx:
        trader = tx.update(
            EntityKind.USERS,
            ctx.trader_id,
            lambda u: u.model_copy(update={"followers_count": u.followers_count + 1}),
        )
    if not isinstance(trader, User):
        # Relations may target ids with no user record; there is no count to keep.
        logger.warning("Trader not found for follower count", extra={"trader_id": ctx.trader_id})
        return ctx
    logger.info(
        "Follower count updated",
        extra={"trader_id": trader.id, "followers_count": trader.followers_count},
    )
    return replace(ctx, followers_count=trader.followers_count)


COPY_TRADER = ProcessDefinition(
    name="copy_trader",
    start="Validate Copy Request",
    nodes=[
        Task("Validate Copy Request", validate_copy_request, next="Is Valid"),
        ExclusiveGateway(
            "Is Valid",
            is_valid,
            branches={"Yes": "Create Copy Relation", "No": None},
        ),
        Task("Create Copy Relation", create_copy_relation, next="Update Follower Count"),
        Task("Update Follower Count", update_follower_count),
    ],
)


def build_copy_trader_process() -> CompiledProcess:
    return build(COPY_TRADER)
