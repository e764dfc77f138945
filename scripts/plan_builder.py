"""
Plan builder and plan registry.

A plan is the ordered list of steps for one execution path through the
state graph. While the path is being walked the plan is open and owned by
exactly one continuation; once the path reaches a final state the plan is
closed into the PlanRegistry and becomes read-only.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Set, Tuple

from sm_errors import TestPlanError
from sm_model import Transition


PLAN_METHOD_LEADING = "testPlan_"


class StepKind(Enum):
    ASSERT = "assert"
    CALL = "call"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    stub_name: str

    def __str__(self):
        return f"{self.kind.value.capitalize()}({self.stub_name})"


def Assert(stub_name: str) -> Step:
    return Step(StepKind.ASSERT, stub_name)


def Call(stub_name: str) -> Step:
    return Step(StepKind.CALL, stub_name)


class PlanBuilder:
    """Accumulates steps and visited transitions for one path.

    path identifies the plan among its siblings: the root plan has the
    empty path and every branch clone appends the ordinal of the
    transition it follows.
    """

    def __init__(self, path: Tuple[int, ...] = ()):
        self.path = path
        self.steps: List[Step] = []
        self.visited: Set[Transition] = set()
        self.transitions: List[Transition] = []
        self.closed = False

    def _check_open(self):
        if self.closed:
            raise TestPlanError(f"Plan {self.path} is closed and cannot be modified")

    def add_assert(self, stub_name: str):
        self._check_open()
        self.steps.append(Assert(stub_name))

    def add_call(self, stub_name: str):
        self._check_open()
        self.steps.append(Call(stub_name))

    def has_visited(self, transition: Transition) -> bool:
        return transition in self.visited

    def visit(self, transition: Transition):
        self._check_open()
        self.visited.add(transition)
        self.transitions.append(transition)

    def clone(self, ordinal: int) -> 'PlanBuilder':
        """Copy steps and visited transitions into an independent builder."""
        clone = PlanBuilder(self.path + (ordinal,))
        clone.steps = list(self.steps)
        clone.visited = set(self.visited)
        clone.transitions = list(self.transitions)
        return clone

    def __repr__(self):
        return f"PlanBuilder(path={self.path}, steps={len(self.steps)}, closed={self.closed})"


@dataclass(frozen=True)
class NamedPlan:
    """A closed plan with its display name."""
    name: str
    path: Tuple[int, ...]
    steps: Tuple[Step, ...]
    transitions: Tuple[Transition, ...]


class PlanRegistry:
    """Append-only, thread-safe collection of closed plans."""

    def __init__(self):
        self._lock = threading.Lock()
        self._plans: Dict[Tuple[int, ...], PlanBuilder] = {}

    def register(self, plan: PlanBuilder) -> Tuple[int, ...]:
        """Close a plan and store it. Returns the plan id (its path)."""
        with self._lock:
            if plan.closed or plan.path in self._plans:
                raise TestPlanError(f"Plan {plan.path} is already registered")
            plan.closed = True
            self._plans[plan.path] = plan
        return plan.path

    def named_plans(self) -> List[NamedPlan]:
        """Plans in depth-first order of their paths, named testPlan_1..N."""
        with self._lock:
            plans = sorted(self._plans.values(), key=lambda p: p.path)
        return [
            NamedPlan(
                name=f"{PLAN_METHOD_LEADING}{index}",
                path=plan.path,
                steps=tuple(plan.steps),
                transitions=tuple(plan.transitions),
            )
            for index, plan in enumerate(plans, start=1)
        ]

    def __len__(self):
        with self._lock:
            return len(self._plans)
