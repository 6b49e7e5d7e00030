"""
Domain — DAG utilities (pure).

Dependency validation, stable topological ordering, cycle extraction,
and independent-set levels for the planner.
No I/O, no subprocess.

Graphs are given as ``deps``: node id → ids it depends on. Node order
in ``nodes`` is the declaration order and is the tie-break everywhere.
"""

from __future__ import annotations

import heapq
from collections.abc import Mapping, Sequence

from mintsetup.core.errors import CycleError, DanglingDependencyError, DuplicateIdError


def check_ids(nodes: Sequence[str], deps: Mapping[str, Sequence[str]]) -> None:
    """Raise on duplicate ids or references to undeclared ids."""
    seen: set[str] = set()
    for node in nodes:
        if node in seen:
            raise DuplicateIdError(node)
        seen.add(node)

    for node in nodes:
        for dep in deps.get(node, ()):
            if dep not in seen:
                raise DanglingDependencyError(node, dep)


def topological_order(nodes: Sequence[str], deps: Mapping[str, Sequence[str]]) -> list[str]:
    """Kahn's algorithm with a declaration-order tie-break.

    Among all nodes whose dependencies are satisfied, the one declared
    first is emitted first, so identical input always yields identical
    output.

    Raises:
        CycleError: naming one concrete cycle if the graph is not a DAG.
    """
    index = {node: i for i, node in enumerate(nodes)}
    in_degree: dict[str, int] = {node: 0 for node in nodes}
    dependents: dict[str, list[str]] = {node: [] for node in nodes}

    for node in nodes:
        for dep in _unique(deps.get(node, ())):
            in_degree[node] += 1
            dependents[dep].append(node)

    ready = [(index[n], n) for n in nodes if in_degree[n] == 0]
    heapq.heapify(ready)

    order: list[str] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for successor in dependents[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(ready, (index[successor], successor))

    if len(order) < len(nodes):
        remaining = [n for n in nodes if in_degree[n] > 0]
        raise CycleError(find_cycle(remaining, deps))

    return order


def find_cycle(nodes: Sequence[str], deps: Mapping[str, Sequence[str]]) -> list[str]:
    """Return one cycle as a closed path ``[a, b, ..., a]``.

    Only ``nodes`` are considered; callers pass the nodes Kahn's
    algorithm could not emit, all of which lie on or behind a cycle.
    """
    members = set(nodes)
    state: dict[str, int] = {}  # 1 = on stack, 2 = done

    for start in nodes:
        if state.get(start):
            continue
        stack: list[tuple[str, int]] = [(start, 0)]
        path: list[str] = [start]
        state[start] = 1
        while stack:
            node, i = stack[-1]
            children = [d for d in deps.get(node, ()) if d in members]
            if i < len(children):
                stack[-1] = (node, i + 1)
                child = children[i]
                if state.get(child) == 1:
                    return path[path.index(child):] + [child]
                if not state.get(child):
                    state[child] = 1
                    stack.append((child, 0))
                    path.append(child)
            else:
                state[node] = 2
                stack.pop()
                path.pop()

    return list(nodes)


def dependency_levels(order: Sequence[str], deps: Mapping[str, Sequence[str]]) -> dict[str, int]:
    """Longest-path depth of every node (roots are level 0).

    Two nodes on the same level never have a dependency path between
    them, so each level is an independent set.
    """
    level: dict[str, int] = {}
    for node in order:
        parents = deps.get(node, ())
        level[node] = 1 + max((level[p] for p in parents), default=-1)
    return level


def ancestors(node: str, deps: Mapping[str, Sequence[str]]) -> set[str]:
    """All nodes ``node`` transitively depends on."""
    found: set[str] = set()
    frontier = list(deps.get(node, ()))
    while frontier:
        current = frontier.pop()
        if current in found:
            continue
        found.add(current)
        frontier.extend(deps.get(current, ()))
    return found


def _unique(items: Sequence[str]) -> list[str]:
    out: list[str] = []
    for item in items:
        if item not in out:
            out.append(item)
    return out
