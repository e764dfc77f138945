"""
Stub naming and the deduplicated stub registry.

A stub is an abstract operation declared in the generated test plan class.
Plans call stubs to assert the current state, assert or force a guard
condition, or invoke a trigger. A stub's canonical name is a pure function
of its kind and the sanitized identifier it was derived from, so the same
state, guard or trigger met on different paths maps to one registry entry.
"""

import re
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, List, Optional, Union

from sm_errors import (
    Diagnostics, UnsupportedEventKindError, MissingEventExpressionError, StubNameCollisionError,
)
from sm_model import (
    State, Trigger, CallEvent, ChangeEvent, TimeEvent, OtherEvent,
    INITIAL_STATE_NAME,
)


ASSERT_STATE_LEADING = "currentStateIs_"
ASSERT_GUARD_LEADING = "conditionIsTrue_"
FORCE_GUARD_LEADING = "setToTrue_"
INVOKE_LEADING = "invoke_"
GENERATE_EVENT_LEADING = "generateEvent_"

# Multi-character symbols come first so that ">=" is not read as ">" "=".
MATH_SYMBOLS = [
    ("<=", "_lessOrEqual_"),
    (">=", "_greaterOrEqual_"),
    ("==", "_equals_"),
    ("!=", "_notEquals_"),
    ("<>", "_notEquals_"),
    ("&&", "_and_"),
    ("||", "_or_"),
    ("≤", "_lessOrEqual_"),
    ("≥", "_greaterOrEqual_"),
    ("≠", "_notEquals_"),
    ("∧", "_and_"),
    ("∨", "_or_"),
    ("¬", "_not_"),
    ("<", "_lessThan_"),
    (">", "_greaterThan_"),
    ("=", "_equals_"),
    ("!", "_not_"),
    ("+", "_plus_"),
    ("-", "_minus_"),
    ("*", "_times_"),
    ("/", "_dividedBy_"),
    ("%", "_modulo_"),
    ("^", "_pow_"),
]

_NON_ALPHANUMERIC = re.compile(r'[^A-Za-z0-9]')


def convert_math_symbols_to_text(text: str) -> str:
    for symbol, word in MATH_SYMBOLS:
        text = text.replace(symbol, word)
    return text


def sanitize(text: str) -> str:
    """Turn free-form text into identifier characters.

    Math symbols become words, then every remaining character that is not
    an ASCII letter or digit becomes an underscore.
    """
    return _NON_ALPHANUMERIC.sub("_", convert_math_symbols_to_text(text))


def capitalize(text: str) -> str:
    """Upper-case the first character only ("x_y" -> "X_y")."""
    return text[:1].upper() + text[1:]


class StubKind(Enum):
    """Stub kinds, in the order they are emitted."""
    ASSERT_STATE = auto()
    ASSERT_GUARD_TRUE = auto()
    FORCE_GUARD_TRUE = auto()
    INVOKE_TRIGGER = auto()


@dataclass(frozen=True)
class Stub:
    name: str
    kind: StubKind
    documentation: str


# =============================================================================
# Stub derivation
# =============================================================================

def state_stub(state: Union[State, str]) -> Stub:
    if isinstance(state, State):
        state_name = INITIAL_STATE_NAME if state.synthetic_initial else sanitize(state.name)
    else:
        state_name = sanitize(state)
    return Stub(
        name=ASSERT_STATE_LEADING + state_name,
        kind=StubKind.ASSERT_STATE,
        documentation=f"Method must return true if the current state is {state_name}",
    )


def assert_guard_stub(condition: str) -> Stub:
    return Stub(
        name=ASSERT_GUARD_LEADING + capitalize(sanitize(condition)),
        kind=StubKind.ASSERT_GUARD_TRUE,
        documentation=f"Method must evaluate and return true if the following condition is true: {condition}",
    )


def force_guard_stub(condition: str) -> Stub:
    return Stub(
        name=FORCE_GUARD_LEADING + capitalize(sanitize(condition)),
        kind=StubKind.FORCE_GUARD_TRUE,
        documentation=(
            "Method must call the tested system and ensure the following condition is true "
            f"so the test can progress on the current test branch: {condition}"
        ),
    )


def trigger_stub(trigger: Trigger, diagnostics: Optional[Diagnostics] = None) -> Stub:
    """Derive the invocation stub for a trigger.

    Change and time events without an expression, and event kinds with no
    naming rule, are reported to diagnostics and get a fallback name.
    """
    def report(warning):
        if diagnostics is not None:
            diagnostics.report(warning)

    if isinstance(trigger, CallEvent):
        name = f"{sanitize(trigger.class_name)}_{sanitize(trigger.operation_name)}"
        doc = (
            "Method must return true if the method invocation is successful. "
            f"Allows a particular implementation to call \"{trigger.operation_name}\" "
            f"on class \"{trigger.class_name}\" so we can assert the transition after the event is correct"
        )
    elif isinstance(trigger, ChangeEvent):
        if not trigger.condition_body:
            report(MissingEventExpressionError(f"Event {trigger.event_name} has no body/expression"))
            name = GENERATE_EVENT_LEADING + sanitize(trigger.event_name)
            doc = (
                f"Method must ensure change event \"{trigger.event_name}\" happens "
                "so we can assert the transition after the event is correct"
            )
        else:
            body = sanitize(trigger.condition_body)
            name = f"{sanitize(trigger.event_name)}_{body}"
            doc = (
                "Method must return true if the event invocation is successful. "
                f"Allows a particular implementation to force condition \"{trigger.condition_body}\" "
                f"of event \"{trigger.event_name}\" to true so we can assert the transition after the event is correct"
            )
    elif isinstance(trigger, TimeEvent):
        if not trigger.when_expression:
            report(MissingEventExpressionError(f"Event {trigger.event_name} has no when/expression"))
            name = GENERATE_EVENT_LEADING + sanitize(trigger.event_name)
            doc = (
                f"Method must ensure time event \"{trigger.event_name}\" happens "
                "so we can assert the transition after the event is correct"
            )
        else:
            name = f"{sanitize(trigger.event_name)}_{sanitize(trigger.when_expression)}"
            doc = (
                "Method must return true if the event invocation is successful. "
                f"Allows a particular implementation to force time event \"{trigger.event_name}\" "
                f"with expression \"{trigger.when_expression}\" to happen so we can assert the transition after the event is correct"
            )
    else:
        kind = trigger.kind if isinstance(trigger, OtherEvent) else type(trigger).__name__
        event_name = getattr(trigger, "event_name", str(trigger))
        report(UnsupportedEventKindError(f"Event type of {kind} not supported yet (event {event_name})"))
        name = INVOKE_LEADING + sanitize(event_name)
        doc = (
            f"Event type of {kind} not supported yet. Method must ensure event \"{event_name}\" "
            "is raised so we can assert the transition after the event is correct"
        )

    return Stub(name=name, kind=StubKind.INVOKE_TRIGGER, documentation=doc)


def derive_stub(kind: StubKind, identifier, diagnostics: Optional[Diagnostics] = None) -> Stub:
    if kind is StubKind.ASSERT_STATE:
        return state_stub(identifier)
    elif kind is StubKind.ASSERT_GUARD_TRUE:
        return assert_guard_stub(identifier)
    elif kind is StubKind.FORCE_GUARD_TRUE:
        return force_guard_stub(identifier)
    elif kind is StubKind.INVOKE_TRIGGER:
        return trigger_stub(identifier, diagnostics)
    raise ValueError(f"Unknown stub kind: {kind}")


# =============================================================================
# Registry
# =============================================================================

class StubRegistry:
    """Create-once store of stubs keyed by canonical name.

    get_or_create is atomic: concurrent callers deriving the same name all
    receive the single stored instance. A name already taken by a stub of
    another kind raises StubNameCollisionError.
    """

    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self.diagnostics = diagnostics
        self._lock = threading.Lock()
        self._stubs: Dict[str, Stub] = {}

    def get_or_create(self, kind: StubKind, identifier) -> Stub:
        stub = derive_stub(kind, identifier, self.diagnostics)
        with self._lock:
            existing = self._stubs.setdefault(stub.name, stub)
        if existing.kind is not stub.kind:
            raise StubNameCollisionError(
                f"Stub name {stub.name} is derived by both {existing.kind.name} and {stub.kind.name}"
            )
        return existing

    def get(self, name: str) -> Optional[Stub]:
        with self._lock:
            return self._stubs.get(name)

    def stubs(self) -> List[Stub]:
        """All stubs grouped by kind, sorted by name within a kind."""
        with self._lock:
            stubs = list(self._stubs.values())
        return sorted(stubs, key=lambda s: (s.kind.value, s.name))

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._stubs

    def __len__(self):
        with self._lock:
            return len(self._stubs)
