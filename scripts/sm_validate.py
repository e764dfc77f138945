"""
Structural validation for state graphs.

These checks look at the graph as a whole, before any plan is generated,
so every defect is listed once instead of once per path that reaches it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Set

from sm_model import StateGraph, State, CallEvent, ChangeEvent, TimeEvent


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Finding:
    """One structural problem, located by model line (0 when unknown)."""
    severity: Severity
    message: str
    line: int = 0

    def format(self, path) -> str:
        """Render as path:line: severity: message."""
        loc = f":{self.line}" if self.line else ""
        return f"{path}{loc}: {self.severity.value}: {self.message}"


@dataclass
class ValidationResult:
    findings: List[Finding] = field(default_factory=list)

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(f.severity is Severity.ERROR for f in self.findings)

    @property
    def has_warnings(self) -> bool:
        return any(f.severity is Severity.WARNING for f in self.findings)

    def error(self, message: str, line: int = 0):
        self.findings.append(Finding(Severity.ERROR, message, line))

    def warning(self, message: str, line: int = 0):
        self.findings.append(Finding(Severity.WARNING, message, line))

    def report_lines(self, path) -> List[str]:
        """Errors first, then warnings, each in model order."""
        return [f.format(path) for f in self.errors + self.warnings]


def validate_graph(graph: StateGraph) -> ValidationResult:
    """Run all structural checks on a graph."""
    result = ValidationResult()

    if not graph.final_states:
        result.warning(f"State machine '{graph.name}' has no final states; no test plan can be generated")

    for state in graph.states:
        validate_state(state, result)

    check_unreachable_states(graph, result)
    return result


def validate_state(state: State, result: ValidationResult):
    """Check one state and its outgoing transitions, adding to result."""
    if not state.transitions and not state.final:
        result.error(
            f"State '{state.display_name}' is not final and has no outgoing transitions",
            state.line
        )

    for trans in state.transitions:
        if trans.target is None and not state.final:
            result.error(
                f"Transition {trans.label} from non-final state '{state.display_name}' has no target",
                trans.line
            )

        for body in trans.guards:
            if not body.strip():
                result.warning(f"Transition {trans.label} has an empty guard condition", trans.line)

        for trigger in trans.triggers:
            if isinstance(trigger, ChangeEvent) and not trigger.condition_body:
                result.warning(
                    f"Change event '{trigger.event_name}' on {trans.label} has no condition",
                    trans.line
                )
            elif isinstance(trigger, TimeEvent) and not trigger.when_expression:
                result.warning(
                    f"Time event '{trigger.event_name}' on {trans.label} has no when expression",
                    trans.line
                )
            elif not isinstance(trigger, (CallEvent, ChangeEvent, TimeEvent)):
                result.warning(
                    f"Event '{trigger.event_name}' on {trans.label} has an unsupported kind; "
                    "a generic invoke stub will be generated",
                    trans.line
                )


def check_unreachable_states(graph: StateGraph, result: ValidationResult):
    """Warn about states that cannot be reached from the initial state."""
    reachable: Set[State] = set()
    to_visit = [graph.initial_state]
    while to_visit:
        state = to_visit.pop()
        if state in reachable:
            continue
        reachable.add(state)
        to_visit.extend(t.target for t in state.transitions
                        if t.target is not None and t.target not in reachable)

    for state in graph.states:
        if state not in reachable:
            result.warning(f"State '{state.display_name}' is unreachable from the initial state", state.line)
