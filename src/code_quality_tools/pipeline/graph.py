"""Deterministic dependency graph of pipeline steps.

Nodes are step ids of the form ``<module>:<task>``; an edge
``(prerequisite, dependent)`` means the dependent step runs after the
prerequisite. The graph only describes edges for the host task engine; it never
executes anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from heapq import heapify, heappop, heappush


class CycleError(ValueError):
    """Raised when declared pipeline edges form a cycle."""

    cycles: tuple[tuple[str, ...], ...]

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        normalized: tuple[tuple[str, ...], ...] = tuple(tuple(path) for path in cycles)
        self.cycles = normalized

        if not normalized:
            message = "Pipeline graph contains at least one cycle."
        else:
            preview = ", ".join(" -> ".join(path) for path in normalized[:3])
            suffix = "..." if len(normalized) > 3 else ""
            message = f"Pipeline graph contains cycle(s): {preview}{suffix}"
        super().__init__(message)


def step_id(module_name: str, task_name: str) -> str:
    return f"{module_name}:{task_name}"


class PipelineGraph:
    """Directed graph of step ids with deterministic traversal and serialization."""

    __slots__ = ("_steps", "_dependents", "_prerequisites")

    def __init__(
        self,
        steps: Iterable[str] | None = None,
        edges: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._steps: set[str] = set()
        self._dependents: dict[str, set[str]] = {}
        self._prerequisites: dict[str, set[str]] = {}

        for step in steps or ():
            self.add_step(step)
        for prerequisite, dependent in edges or ():
            self.add_edge(prerequisite, dependent)

    @property
    def steps(self) -> tuple[str, ...]:
        return tuple(sorted(self._steps))

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        """All ``(prerequisite, dependent)`` pairs in deterministic order."""
        return tuple(
            (prerequisite, dependent)
            for prerequisite in sorted(self._steps)
            for dependent in sorted(self._dependents[prerequisite])
        )

    def __contains__(self, step: object) -> bool:
        return step in self._steps

    def add_step(self, step: str) -> None:
        self._validate_step_id(step)
        if step in self._steps:
            return
        self._steps.add(step)
        self._dependents[step] = set()
        self._prerequisites[step] = set()

    def add_edge(self, prerequisite: str, dependent: str) -> None:
        """Declare that ``dependent`` requires ``prerequisite``; duplicate edges are ignored."""
        if prerequisite == dependent:
            raise CycleError(((prerequisite, prerequisite),))
        self.add_step(prerequisite)
        self.add_step(dependent)
        self._dependents[prerequisite].add(dependent)
        self._prerequisites[dependent].add(prerequisite)

    def prerequisites(self, step: str) -> tuple[str, ...]:
        self._assert_step_exists(step)
        return tuple(sorted(self._prerequisites[step]))

    def dependents(self, step: str) -> tuple[str, ...]:
        self._assert_step_exists(step)
        return tuple(sorted(self._dependents[step]))

    def topological_order(self) -> tuple[str, ...]:
        """Deterministic execution order; raises ``CycleError`` if none exists."""
        indegree = {step: len(self._prerequisites[step]) for step in self._steps}
        ready = [step for step, degree in indegree.items() if degree == 0]
        heapify(ready)

        order: list[str] = []
        while ready:
            step = heappop(ready)
            order.append(step)
            for dependent in sorted(self._dependents[step]):
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heappush(ready, dependent)

        if len(order) != len(self._steps):
            raise CycleError(self.detect_cycles())
        return tuple(order)

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """Return cycles as closed paths, e.g. ``("a:x", "a:y", "a:x")``."""
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: dict[tuple[str, ...], None] = {}

        for start in sorted(self._steps):
            if state.get(start, 0) != 0:
                continue

            state[start] = 1
            stack.append(start)
            stack_index[start] = 0
            frames: list[tuple[str, Iterator[str]]] = [
                (start, iter(sorted(self._dependents[start])))
            ]

            while frames:
                step, children = frames[-1]
                child = next(children, None)
                if child is None:
                    frames.pop()
                    state[step] = 2
                    stack.pop()
                    del stack_index[step]
                    continue

                child_state = state.get(child, 0)
                if child_state == 0:
                    state[child] = 1
                    stack_index[child] = len(stack)
                    stack.append(child)
                    frames.append((child, iter(sorted(self._dependents[child]))))
                elif child_state == 1:
                    cycle = tuple(stack[stack_index[child] :] + [child])
                    cycles[_canonicalize_cycle(cycle)] = None

        return tuple(sorted(cycles))

    def subgraph(self, module_name: str) -> PipelineGraph:
        """Steps and edges belonging to one module."""
        prefix = f"{module_name}:"
        steps = [step for step in self._steps if step.startswith(prefix)]
        edges = [
            (prerequisite, dependent)
            for prerequisite, dependent in self.edges
            if prerequisite.startswith(prefix) and dependent.startswith(prefix)
        ]
        return PipelineGraph(steps=steps, edges=edges)

    def serialize(self) -> dict[str, object]:
        """Stable JSON-friendly mapping."""
        return {
            "steps": list(self.steps),
            "edges": [list(edge) for edge in self.edges],
        }

    @classmethod
    def deserialize(cls, payload: Mapping[str, object]) -> PipelineGraph:
        raw_steps = payload.get("steps", ())
        raw_edges = payload.get("edges", ())
        if not isinstance(raw_steps, Sequence) or isinstance(raw_steps, (str, bytes)):
            raise TypeError("'steps' must be a sequence of strings.")
        if not isinstance(raw_edges, Sequence) or isinstance(raw_edges, (str, bytes)):
            raise TypeError("'edges' must be a sequence of [prerequisite, dependent] pairs.")

        graph = cls()
        for index, raw_step in enumerate(raw_steps):
            if not isinstance(raw_step, str):
                raise TypeError(f"'steps[{index}]' must be a string.")
            graph.add_step(raw_step)
        for index, raw_edge in enumerate(raw_edges):
            if (
                not isinstance(raw_edge, Sequence)
                or isinstance(raw_edge, (str, bytes))
                or len(raw_edge) != 2
                or not all(isinstance(item, str) for item in raw_edge)
            ):
                raise TypeError(f"'edges[{index}]' must contain exactly two step ids.")
            graph.add_edge(raw_edge[0], raw_edge[1])
        return graph

    @staticmethod
    def _validate_step_id(step: str) -> None:
        if not step:
            raise ValueError("Step id must be non-empty.")

    def _assert_step_exists(self, step: str) -> None:
        if step not in self._steps:
            raise KeyError(f"Unknown step: {step}")


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    core = tuple(cycle[:-1])
    if len(core) == 1:
        return (core[0], core[0])
    best = min(core[offset:] + core[:offset] for offset in range(len(core)))
    return best + (best[0],)


__all__ = ["CycleError", "PipelineGraph", "step_id"]
