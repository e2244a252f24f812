"""A minimal interpreter for task/gateway processes.

This package provides:
- node types (`Task`, `ExclusiveGateway`) and a declarative `ProcessDefinition`
- `build`, which validates wiring once and yields an immutable `CompiledProcess`
- `run`, which drives one context through a compiled process

Graphs are acyclic and branch-once: every node is entered from at most one edge.
"""

from __future__ import annotations

from .engine import RunError, require, run
from .graph import (
    BuildError,
    CompiledProcess,
    ExclusiveGateway,
    ProcessDefinition,
    Task,
    WorkflowContext,
    build,
)

__all__ = [
    "BuildError",
    "CompiledProcess",
    "ExclusiveGateway",
    "ProcessDefinition",
    "RunError",
    "Task",
    "WorkflowContext",
    "build",
    "require",
    "run",
]
