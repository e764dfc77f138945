"""
Walk a state graph and synthesize test plans.

Starting from the initial state, every state visited contributes an
assertion that the state was reached. A state with one outgoing transition
continues the current plan. A state with several outgoing transitions
clones the plan once per transition, and each clone forces that
transition's guards to true. A transition is taken at most once per path,
which makes every walk finite even on cyclic graphs. Plans that reach a
final state are closed into the PlanRegistry.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from sm_errors import (
    Diagnostics, ModelIncompleteError, EmptyGuardExpressionError,
    MissingTargetError, TransitionIdentityError,
)
from sm_model import State, StateGraph, Transition
from stub_registry import Stub, StubKind, StubRegistry
from plan_builder import NamedPlan, PlanBuilder, PlanRegistry


@dataclass
class GenerationContext:
    """Everything shared by the continuations of one generation run."""
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    stubs: StubRegistry = None
    plans: PlanRegistry = field(default_factory=PlanRegistry)
    parallel: bool = False

    def __post_init__(self):
        if self.stubs is None:
            self.stubs = StubRegistry(self.diagnostics)


@dataclass
class GenerationResult:
    """Output of a generation run, ready for the emitter."""
    model_name: str
    stubs: List[Stub]
    plans: List[NamedPlan]
    diagnostics: Diagnostics


def check_transition_identity(graph: StateGraph):
    """Ensure every transition can serve as its own cycle-detection key.

    Raises TransitionIdentityError when a transition compares by value, is
    listed under a state that is not its source, or is listed twice.
    """
    seen = set()
    states = list(graph.states)
    if graph.initial_state not in states:
        states.insert(0, graph.initial_state)

    for state in states:
        for trans in state.transitions:
            if type(trans).__eq__ is not object.__eq__ or type(trans).__hash__ is not object.__hash__:
                raise TransitionIdentityError(
                    f"Transition {trans!r} must compare by identity, not by value"
                )
            if trans.source is not state:
                raise TransitionIdentityError(
                    f"Transition {trans!r} is listed under state {state.display_name} "
                    f"but its source is {trans.source.display_name}"
                )
            if id(trans) in seen:
                raise TransitionIdentityError(f"Transition {trans!r} is listed more than once")
            seen.add(id(trans))


class GraphExpander:
    """Expand states into plans, writing into a GenerationContext."""

    def __init__(self, context: GenerationContext):
        self.context = context

    def run(self, graph: StateGraph):
        check_transition_identity(graph)
        self.expand(graph.initial_state, PlanBuilder())

    def expand(self, state: State, plan: PlanBuilder):
        """Expand from state, continuing plan.

        Returns only once every continuation spawned from here (in-place
        linear steps and all branch clones) has finished.
        """
        while state is not None:
            state = self._expand_state(state, plan)

    def _expand_state(self, state: State, plan: PlanBuilder) -> Optional[State]:
        """Expand a single state. Returns the next state of a linear continuation."""
        stub = self.context.stubs.get_or_create(StubKind.ASSERT_STATE, state)
        plan.add_assert(stub.name)

        transitions = state.transitions
        next_state = None

        if not transitions and not state.final:
            self.context.diagnostics.report(ModelIncompleteError(
                f"State \"{state.display_name}\" is not final and does not have any transitions. "
                "All state machine flows must reach a final state."
            ))
            return None

        elif len(transitions) == 1:
            trans = transitions[0]
            if plan.has_visited(trans):
                return None
            plan.visit(trans)
            self._add_guard_steps(state, trans, plan, force=False)
            self._add_trigger_steps(trans, plan)
            if self._has_target(state, trans):
                if not state.final:
                    next_state = trans.target
            elif not state.final:
                return None

        elif len(transitions) > 1:
            continuations = []
            for ordinal, trans in enumerate(transitions):
                if plan.has_visited(trans):
                    continue
                branch = plan.clone(ordinal)
                branch.visit(trans)
                self._add_guard_steps(state, trans, branch, force=True)
                self._add_trigger_steps(trans, branch)
                if self._has_target(state, trans) and not state.final:
                    continuations.append((trans.target, branch))
            self._run_continuations(continuations)

        if state.final:
            self.context.plans.register(plan)
        return next_state

    def _has_target(self, state: State, trans: Transition) -> bool:
        if trans.target is not None:
            return True
        if state.final:
            message = f"Final state {state.display_name} has transition {trans.label} without a target state"
        else:
            message = f"{state.display_name} is not final and does not have a target state on transition {trans.label}"
        self.context.diagnostics.report(MissingTargetError(message))
        return False

    def _add_guard_steps(self, state: State, trans: Transition, plan: PlanBuilder, force: bool):
        """Assert every guard of a linear transition, or force every guard of a branch."""
        for body in trans.guards:
            if not body.strip():
                self.context.diagnostics.report(EmptyGuardExpressionError(
                    f"Guard condition for transition {trans.label} from state {state.display_name} is empty"
                ))
                continue
            if force:
                stub = self.context.stubs.get_or_create(StubKind.FORCE_GUARD_TRUE, body)
                plan.add_call(stub.name)
            else:
                stub = self.context.stubs.get_or_create(StubKind.ASSERT_GUARD_TRUE, body)
                plan.add_assert(stub.name)

    def _add_trigger_steps(self, trans: Transition, plan: PlanBuilder):
        for trigger in trans.triggers:
            stub = self.context.stubs.get_or_create(StubKind.INVOKE_TRIGGER, trigger)
            plan.add_call(stub.name)

    def _run_continuations(self, continuations: List[Tuple[State, PlanBuilder]]):
        """Expand branch clones and wait for all of them."""
        if not continuations:
            return
        if not self.context.parallel or len(continuations) == 1:
            for target, branch in continuations:
                self.expand(target, branch)
            return

        # Each fan-out point gets its own pool sized to its branch count
        with ThreadPoolExecutor(max_workers=len(continuations)) as pool:
            futures = [pool.submit(self.expand, target, branch) for target, branch in continuations]
            for future in futures:
                future.result()


def generate_test_plan(graph: StateGraph, parallel: bool = False,
                       on_report: Optional[Callable[[str], None]] = None) -> GenerationResult:
    """Generate stubs and plans for a state graph.

    Args:
        graph: The state graph to walk
        parallel: Expand branch clones concurrently
        on_report: Called with each diagnostic message as it is reported

    Returns:
        GenerationResult with deduplicated stubs, numbered plans and diagnostics
    """
    context = GenerationContext(diagnostics=Diagnostics(on_report), parallel=parallel)
    GraphExpander(context).run(graph)
    return GenerationResult(
        model_name=graph.name,
        stubs=context.stubs.stubs(),
        plans=context.plans.named_plans(),
        diagnostics=context.diagnostics,
    )
