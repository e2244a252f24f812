"""Interpreter for compiled task/gateway processes.

`run` walks the graph from the start node, one node at a time, until a node
has no successor or a task hands back an aborted context.

Business outcomes (e.g. "Invalid quantity") travel inside the returned context;
callers must inspect `context.error`. `RunError` is reserved for wiring defects
discovered while running.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from .graph import CompiledProcess, ExclusiveGateway, Task, WorkflowContext

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=WorkflowContext)


class RunError(RuntimeError):
    """A structural failure while executing a process."""

    def __init__(
        self, message: str, *, process: str | None = None, node: str | None = None
    ) -> None:
        super().__init__(message)
        self.process = process
        self.node = node


def require(context: object, field_name: str) -> Any:
    """Read a context field that an earlier task must have set.

    Raises:
        RunError: if the field is missing or None.
    """

    value = getattr(context, field_name, None)
    if value is None:
        raise RunError(f"Context field {field_name!r} is not set")
    return value


def run(process: CompiledProcess, context: C) -> C:
    """Execute `process` over `context` and return the final context."""

    context_type = type(context)
    logger.info("Process started", extra={"workflow": process.name})

    current: str | None = process.start
    while current is not None:
        node = process.nodes[current]
        logger.debug("Entering node", extra={"workflow": process.name, "node": node.name})

        if isinstance(node, Task):
            context = _run_task(process, node, context, context_type)
            if context.aborted:
                logger.warning(
                    "Process aborted",
                    extra={"workflow": process.name, "node": node.name, "error": context.error},
                )
                return context
            current = node.next
        elif isinstance(node, ExclusiveGateway):
            current = _choose_branch(process, node, context)
        else:  # pragma: no cover - build() rejects other node types
            raise RunError(f"Unsupported node {node!r}", process=process.name, node=current)

    logger.info(
        "Process completed",
        extra={"workflow": process.name, "error": context.error},
    )
    return context


def _run_task(process: CompiledProcess, node: Task[C], context: C, context_type: type) -> C:
    try:
        result = node.action(context)
    except RunError as e:
        if e.process is None:
            e.process = process.name
        if e.node is None:
            e.node = node.name
        raise
    except Exception as e:
        raise RunError(
            f"Task {node.name!r} failed: {e}", process=process.name, node=node.name
        ) from e

    if type(result) is not context_type:
        raise RunError(
            f"Task {node.name!r} returned {type(result).__name__}, "
            f"expected {context_type.__name__}",
            process=process.name,
            node=node.name,
        )
    return result


def _choose_branch(
    process: CompiledProcess, node: ExclusiveGateway[C], context: C
) -> str | None:
    try:
        label = node.predicate(context)
    except Exception as e:
        raise RunError(
            f"Gateway {node.name!r} failed: {e}", process=process.name, node=node.name
        ) from e

    if label not in node.branches:
        raise RunError(
            f"Gateway {node.name!r} chose unwired label {label!r}",
            process=process.name,
            node=node.name,
        )
    logger.debug(
        "Branch selected",
        extra={"workflow": process.name, "node": node.name, "label": label},
    )
    return node.branches[label]
