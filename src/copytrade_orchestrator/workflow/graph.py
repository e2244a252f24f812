from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Generic, Protocol, TypeVar


class WorkflowContext(Protocol):
    """State threaded through one process execution.

    Contexts are frozen dataclasses. A task receives the current context and
    returns the next one, so only the running execution ever holds it.
    """

    @property
    def error(self) -> str | None: ...

    @property
    def aborted(self) -> bool: ...


C = TypeVar("C", bound=WorkflowContext)


class BuildError(ValueError):
    """The process definition cannot be wired into an executable graph."""


@dataclass(frozen=True, slots=True)
class Task(Generic[C]):
    """A single-entry, single-exit step.

    `next` names the successor node. None ends the process.
    """

    name: str
    action: Callable[[C], C]
    next: str | None = None


@dataclass(frozen=True, slots=True)
class ExclusiveGateway(Generic[C]):
    """An either/or branch point.

    `predicate` reads the context and returns one of `labels`; `branches` maps
    every label to the successor node name (None ends the process).
    """

    name: str
    predicate: Callable[[C], str]
    branches: Mapping[str, str | None]
    labels: tuple[str, ...] = ("Yes", "No")


Node = Task[Any] | ExclusiveGateway[Any]


@dataclass(frozen=True, slots=True)
class ProcessDefinition:
    """Declarative node table for one process."""

    name: str
    start: str
    nodes: Sequence[Node]


@dataclass(frozen=True, slots=True)
class CompiledProcess:
    """A validated, immutable process graph. Safe to share across threads."""

    name: str
    start: str
    nodes: Mapping[str, Node] = field(default_factory=dict)

    def successors(self, name: str) -> list[str]:
        return _targets(self.nodes[name])


def _targets(node: Node) -> list[str]:
    if isinstance(node, Task):
        return [node.next] if node.next is not None else []
    return [t for t in node.branches.values() if t is not None]


def build(definition: ProcessDefinition) -> CompiledProcess:
    """Validate a definition and freeze it into a `CompiledProcess`.

    Raises:
        BuildError: on duplicate or unknown node names, gateways whose branches
            do not match their labels, nodes entered from more than one edge,
            cycles, or nodes unreachable from the start node.
    """

    name = definition.name
    nodes: dict[str, Node] = {}
    for node in definition.nodes:
        if not isinstance(node, Task | ExclusiveGateway):
            raise BuildError(f"{name}: unsupported node type {type(node).__name__}")
        if node.name in nodes:
            raise BuildError(f"{name}: duplicate node name {node.name!r}")
        if isinstance(node, ExclusiveGateway):
            node = replace(node, branches=MappingProxyType(dict(node.branches)))
        nodes[node.name] = node

    if definition.start not in nodes:
        raise BuildError(f"{name}: start node {definition.start!r} is not defined")

    in_degree: dict[str, int] = {n: 0 for n in nodes}
    for node in nodes.values():
        if isinstance(node, ExclusiveGateway):
            if len(node.labels) < 2:
                raise BuildError(f"{name}: gateway {node.name!r} needs at least two labels")
            wired = set(node.branches)
            expected = set(node.labels)
            if wired != expected:
                missing = sorted(expected - wired)
                extra = sorted(wired - expected)
                raise BuildError(
                    f"{name}: gateway {node.name!r} branches do not match labels "
                    f"(missing={missing}, unexpected={extra})"
                )
        for target in _targets(node):
            if target not in nodes:
                raise BuildError(f"{name}: {node.name!r} points to unknown node {target!r}")
            in_degree[target] += 1

    for node_name, degree in in_degree.items():
        if degree > 1:
            raise BuildError(f"{name}: node {node_name!r} is entered from {degree} edges")
    if in_degree[definition.start] != 0:
        raise BuildError(f"{name}: start node {definition.start!r} has an incoming edge")

    # With in-degree <= 1 and an unentered start, every node reachable from the
    # start is visited once; anything left over sits on a cycle or is orphaned.
    reachable: set[str] = set()
    pending = [definition.start]
    while pending:
        current = pending.pop()
        reachable.add(current)
        pending.extend(_targets(nodes[current]))

    leftover = sorted(set(nodes) - reachable)
    if leftover:
        raise BuildError(f"{name}: nodes unreachable from start (or cyclic): {leftover}")

    return CompiledProcess(name=name, start=definition.start, nodes=MappingProxyType(nodes))
