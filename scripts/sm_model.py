"""
Model definitions for state machine test plan generation.

A StateGraph is a read-only view of a behavioral model: states, the
guarded and triggered transitions between them, and a start state. The
graph is built once by a front end (sm_parser.py, sm_loader.py) and is
never mutated by the generator.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Union

from sm_errors import ModelLoadError


# Name used in stubs for the synthetic initial pseudo-state
INITIAL_STATE_NAME = "InitialState"


# =============================================================================
# Trigger events
# =============================================================================

@dataclass(frozen=True)
class CallEvent:
    """Operation call on a class: Class.operation()."""
    class_name: str
    operation_name: str


@dataclass(frozen=True)
class ChangeEvent:
    """Change event: fires when a condition becomes true."""
    event_name: str
    condition_body: Optional[str] = None


@dataclass(frozen=True)
class TimeEvent:
    """Time event: fires at or after a time expression."""
    event_name: str
    when_expression: Optional[str] = None


@dataclass(frozen=True)
class OtherEvent:
    """Any event kind the generator has no dedicated naming rule for."""
    event_name: str
    kind: str = "signal"


# Union type for all trigger events
Trigger = Union[CallEvent, ChangeEvent, TimeEvent, OtherEvent]


def trigger_to_string(trigger: Trigger) -> str:
    """Convert a trigger to its notation form."""
    if isinstance(trigger, CallEvent):
        return f"{trigger.class_name}.{trigger.operation_name}()"
    elif isinstance(trigger, ChangeEvent):
        if trigger.condition_body is None:
            return f"change {trigger.event_name}"
        return f'change {trigger.event_name} when "{trigger.condition_body}"'
    elif isinstance(trigger, TimeEvent):
        if trigger.when_expression is None:
            return f"after {trigger.event_name}"
        return f'after {trigger.event_name} "{trigger.when_expression}"'
    else:
        return trigger.event_name


# =============================================================================
# States and transitions
# =============================================================================

# States and transitions compare by identity (eq=False). Two transitions
# between the same pair of states are distinct edges.

@dataclass(eq=False)
class State:
    name: str
    final: bool = False
    synthetic_initial: bool = False
    description: Optional[str] = None
    transitions: List['Transition'] = field(default_factory=list)
    line: int = 0

    @property
    def display_name(self) -> str:
        return INITIAL_STATE_NAME if self.synthetic_initial else self.name

    def __repr__(self):
        flags = " final" if self.final else ""
        return f"State({self.display_name!r}{flags})"


@dataclass(eq=False)
class Transition:
    source: State
    target: Optional[State] = None
    guards: List[str] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    name: Optional[str] = None
    line: int = 0

    @property
    def label(self) -> str:
        """Name used when talking about this transition in diagnostics."""
        if self.name:
            return self.name
        target = self.target.display_name if self.target else "?"
        return f"{self.source.display_name} -> {target}"

    def __repr__(self):
        return f"Transition({self.label!r})"


@dataclass(eq=False)
class StateGraph:
    name: str
    initial_state: State
    states: List[State] = field(default_factory=list)
    description: Optional[str] = None

    def state(self, name: str) -> State:
        for state in self.states:
            if state.name == name:
                return state
        raise KeyError(name)

    @property
    def transitions(self) -> List[Transition]:
        return [t for s in self.states for t in s.transitions]

    @property
    def final_states(self) -> List[State]:
        return [s for s in self.states if s.final]


# =============================================================================
# Graph builder
# =============================================================================

class StateGraphBuilder:
    """Assemble a StateGraph from names, resolving state references.

    Used by every front end so that name resolution and start-state rules
    live in one place.
    """

    def __init__(self, name: str, description: Optional[str] = None):
        self.name = name
        self.description = description
        self._states: Dict[str, State] = {}
        self._initial_name: Optional[str] = None
        self._pseudo_initial: Optional[State] = None
        self._pending: List[tuple] = []

    def add_state(self, name: str, initial: bool = False, final: bool = False,
                  description: Optional[str] = None, line: int = 0) -> State:
        if name in self._states:
            raise ModelLoadError(f"Duplicate state '{name}' in state machine '{self.name}'", line)
        state = State(name=name, final=final, description=description, line=line)
        self._states[name] = state
        if initial:
            if self._initial_name is not None:
                raise ModelLoadError(
                    f"State machine '{self.name}' has multiple initial states: "
                    f"['{self._initial_name}', '{name}']",
                    line
                )
            self._initial_name = name
        return state

    def add_transition(self, source: Optional[str], target: Optional[str],
                       guards: List[str] = None, triggers: List[Trigger] = None,
                       name: Optional[str] = None, line: int = 0):
        """Queue a transition. A source of None means the initial pseudo-state."""
        self._pending.append((source, target, list(guards or []), list(triggers or []), name, line))

    def _resolve(self, name: str, line: int) -> State:
        try:
            return self._states[name]
        except KeyError:
            raise ModelLoadError(
                f"Transition references unknown state '{name}' in state machine '{self.name}'",
                line
            ) from None

    def build(self) -> StateGraph:
        for source_name, target_name, guards, triggers, name, line in self._pending:
            if source_name is None:
                if self._pseudo_initial is None:
                    self._pseudo_initial = State(name=INITIAL_STATE_NAME, synthetic_initial=True, line=line)
                source = self._pseudo_initial
            else:
                source = self._resolve(source_name, line)
            target = self._resolve(target_name, line) if target_name is not None else None
            source.transitions.append(Transition(
                source=source, target=target, guards=guards, triggers=triggers,
                name=name, line=line,
            ))

        states = list(self._states.values())
        if self._pseudo_initial is not None:
            if self._initial_name is not None:
                raise ModelLoadError(
                    f"State machine '{self.name}' declares both an initial state "
                    f"'{self._initial_name}' and an initial pseudo-state transition"
                )
            initial = self._pseudo_initial
            states.insert(0, initial)
        elif self._initial_name is not None:
            initial = self._states[self._initial_name]
        else:
            raise ModelLoadError(f"State machine '{self.name}' has no initial state")

        return StateGraph(name=self.name, initial_state=initial, states=states,
                          description=self.description)
