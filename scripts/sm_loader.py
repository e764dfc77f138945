"""
Load state machine models from disk.

Two notations are supported:
- .sm files, parsed by sm_parser
- .yaml / .yml files with this layout:

    name: Door
    initial: Closed            # or a transition from "[*]"
    states:
      Closed: {}
      Open: {description: Door is open}
      Done: {final: true}
    transitions:
      - name: open
        from: Closed
        to: Open
        guards: ["unlocked == true"]
        triggers:
          - call: Door.open
          - change: shut
            when: "sensor < 1"
          - time: expire
            when: 30s
          - kick               # any other event
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import re

import yaml

from sm_errors import ModelLoadError
from sm_model import (
    StateGraph, StateGraphBuilder, Trigger,
    CallEvent, ChangeEvent, TimeEvent, OtherEvent,
)
import sm_parser


PSEUDO_INITIAL = "[*]"

NOTATION_SUFFIXES = {".sm"}
YAML_SUFFIXES = {".yaml", ".yml"}

# Same rule as NAME in sm_grammar.lark
_NAME = re.compile(r"[A-Za-z][A-Za-z0-9_]*\Z")


def load_model(path: Union[str, Path], name: Optional[str] = None) -> StateGraph:
    """Load a model file, choosing the notation from the file suffix."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model not found: {path}")

    suffix = path.suffix.lower()
    if suffix in NOTATION_SUFFIXES:
        return sm_parser.parse_file(path, name)
    elif suffix in YAML_SUFFIXES:
        return load_yaml_model(path, name)
    raise ModelLoadError(
        f"Unsupported model file type '{path.suffix}' "
        f"(expected one of {sorted(NOTATION_SUFFIXES | YAML_SUFFIXES)})"
    )


def load_yaml_model(path: Union[str, Path], name: Optional[str] = None) -> StateGraph:
    path = Path(path)
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            raise ModelLoadError(f"Invalid YAML in {path}: {e}", mark.line + 1 if mark else 0) from e

    return graph_from_dict(data or {}, path.stem, name)


def graph_from_dict(data: Dict[str, Any], default_name: str = sm_parser.DEFAULT_MACHINE_NAME,
                    name: Optional[str] = None) -> StateGraph:
    """Build a StateGraph from a parsed YAML document.

    name, when given, replaces the document's own name.
    """
    if not isinstance(data, dict):
        raise ModelLoadError("Model must be a mapping with 'states' and 'transitions'")

    builder = StateGraphBuilder(name or str(data.get("name") or default_name), data.get("description"))
    initial = data.get("initial")
    if initial is not None:
        initial = str(initial)

    states = data.get("states") or {}
    if isinstance(states, list):
        states = {str(s): {} for s in states}
    if not isinstance(states, dict):
        raise ModelLoadError("'states' must be a mapping of state name to options")

    for state_name, options in states.items():
        options = options or {}
        if not isinstance(options, dict):
            raise ModelLoadError(f"Options of state '{state_name}' must be a mapping")
        final = options.get("final", False)
        if not isinstance(final, bool):
            raise ModelLoadError(f"'final' of state '{state_name}' must be true or false, got {final!r}")
        builder.add_state(
            str(state_name),
            initial=str(state_name) == initial,
            final=final,
            description=options.get("description"),
        )
    if initial is not None and initial not in {str(s) for s in states}:
        raise ModelLoadError(f"Initial state '{initial}' is not a declared state")

    for index, trans in enumerate(data.get("transitions") or []):
        if not isinstance(trans, dict) or "from" not in trans:
            raise ModelLoadError(f"Transition #{index + 1} must be a mapping with a 'from' key")
        source = str(trans["from"])
        target = trans.get("to")
        builder.add_transition(
            None if source == PSEUDO_INITIAL else source,
            None if target is None else str(target),
            guards=_parse_guards(trans),
            triggers=[_parse_trigger(t) for t in _as_list(trans.get("triggers", trans.get("trigger")))],
            name=trans.get("name"),
        )

    return builder.build()


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _parse_guards(trans: Dict[str, Any]) -> List[str]:
    guards = _as_list(trans.get("guards", trans.get("guard")))
    # A YAML null guard ("guard:") is kept as an empty body
    return ["" if g is None else str(g) for g in guards]


def _name(value, what: str) -> str:
    value = str(value)
    if not _NAME.match(value):
        raise ModelLoadError(f"{what} '{value}' must start with a letter and contain only letters, digits and '_'")
    return value


def _parse_trigger(entry) -> Trigger:
    if isinstance(entry, str):
        return OtherEvent(event_name=_name(entry, "Event name"))
    if not isinstance(entry, dict) or not entry:
        raise ModelLoadError(f"Invalid trigger: {entry!r}")

    if "call" in entry:
        target = str(entry["call"])
        if target.endswith("()"):
            target = target[:-2]
        class_name, dot, operation_name = target.rpartition(".")
        if not dot or not class_name or not operation_name:
            raise ModelLoadError(f"Call trigger must be Class.operation, got '{entry['call']}'")
        return CallEvent(class_name=_name(class_name, "Class name"),
                         operation_name=_name(operation_name, "Operation name"))
    elif "change" in entry:
        when = entry.get("when")
        return ChangeEvent(event_name=_name(entry["change"], "Event name"), condition_body=None if when is None else str(when))
    elif "time" in entry:
        when = entry.get("when")
        return TimeEvent(event_name=_name(entry["time"], "Event name"), when_expression=None if when is None else str(when))
    elif "event" in entry:
        return OtherEvent(event_name=_name(entry["event"], "Event name"), kind=str(entry.get("kind", "signal")))
    elif len(entry) == 1:
        # {signal: kick} style: the key names the event kind
        kind, event_name = next(iter(entry.items()))
        return OtherEvent(event_name=_name(event_name, "Event name"), kind=str(kind))
    raise ModelLoadError(f"Invalid trigger: {entry!r}")
