"""
Parser for the state machine notation using Lark.

Uses the grammar in sm_grammar.lark and Lark's LALR parser to produce
notation-level declarations, which are then resolved into a StateGraph.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from lark import Lark, Transformer, Token, v_args
from lark.exceptions import UnexpectedInput

from sm_errors import ModelLoadError
from sm_model import (
    StateGraph, StateGraphBuilder, Trigger,
    CallEvent, ChangeEvent, TimeEvent, OtherEvent,
)


GRAMMAR_PATH = Path(__file__).parent / "sm_grammar.lark"

DEFAULT_MACHINE_NAME = "StateMachine"


# =============================================================================
# Notation declarations
# =============================================================================

@dataclass
class StateDecl:
    name: str
    initial: bool = False
    final: bool = False
    description: Optional[str] = None
    line: int = 0


@dataclass
class TransitionDecl:
    source: Optional[str]  # None for the initial pseudo-state [*]
    target: Optional[str]  # None for ~
    guards: List[str] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    name: Optional[str] = None
    line: int = 0


@dataclass
class MachineDecl:
    name: Optional[str] = None
    description: Optional[str] = None
    states: List[StateDecl] = field(default_factory=list)
    transitions: List[TransitionDecl] = field(default_factory=list)


@v_args(inline=True)
class StateMachineTransformer(Transformer):
    """Transform the Lark parse tree into notation declarations."""

    def start(self, *items):
        machine = MachineDecl()
        for item in items:
            if isinstance(item, tuple) and item[0] == "machine":
                _, machine.name, machine.description = item
            elif isinstance(item, StateDecl):
                machine.states.append(item)
            elif isinstance(item, TransitionDecl):
                machine.transitions.append(item)
        return machine

    def machine_decl(self, name, description=None):
        return ("machine", str(name), self._unquote(description))

    # =========================================================================
    # States
    # =========================================================================

    def state_decl(self, name, *rest):
        decl = StateDecl(name=str(name), line=name.line)
        for item in rest:
            if isinstance(item, Token) and item.type == "ESCAPED_STRING":
                decl.description = self._unquote(item)
            elif item == "initial":
                decl.initial = True
            elif item == "final":
                decl.final = True
        return decl

    def state_flag(self, flag):
        return str(flag)

    # =========================================================================
    # Transitions
    # =========================================================================

    def transition_decl(self, *items):
        items = list(items)
        name = None
        if isinstance(items[0], tuple) and items[0][0] == "label":
            name = items.pop(0)[1]
        source, target = items[0], items[1]

        decl = TransitionDecl(
            source=None if source.type == "PSEUDO_INITIAL" else str(source),
            target=None if target.type == "NO_TARGET" else str(target),
            name=name,
            line=source.line,
        )
        for clause in items[2:]:
            if clause and isinstance(clause[0], str):
                decl.guards = clause
            else:
                decl.triggers = clause
        return decl

    def label(self, name):
        return ("label", str(name))

    def source(self, token):
        return token

    def target(self, token):
        return token

    def guard_clause(self, *bodies):
        return [self._unquote(b) for b in bodies]

    def trigger_clause(self, *triggers):
        return list(triggers)

    # =========================================================================
    # Triggers
    # =========================================================================

    def call_trigger(self, class_name, operation_name):
        return CallEvent(class_name=str(class_name), operation_name=str(operation_name))

    def change_trigger(self, name, body=None):
        return ChangeEvent(event_name=str(name), condition_body=self._unquote(body))

    def time_trigger(self, name, expression=None):
        return TimeEvent(event_name=str(name), when_expression=self._unquote(expression))

    def other_trigger(self, name):
        return OtherEvent(event_name=str(name))

    def _unquote(self, s):
        """Remove quotes from a string token."""
        if s is None:
            return None
        s = str(s)
        if s.startswith('"') and s.endswith('"'):
            s = s[1:-1]
        return s.replace('\\"', '"').replace('\\\\', '\\')


# Create parser instance
_parser = None


def get_parser():
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        _parser = Lark(grammar, parser='lalr')
    return _parser


def parse_declarations(source: str) -> MachineDecl:
    """Parse notation source into declarations, without resolving names."""
    try:
        tree = get_parser().parse(source)
    except UnexpectedInput as e:
        raise ModelLoadError(f"Syntax error: {e}", getattr(e, "line", 0)) from e
    return StateMachineTransformer().transform(tree)


def build_graph(machine: MachineDecl, name: Optional[str] = None) -> StateGraph:
    """Resolve declarations into a StateGraph."""
    builder = StateGraphBuilder(
        name or machine.name or DEFAULT_MACHINE_NAME,
        machine.description,
    )
    for state in machine.states:
        builder.add_state(state.name, initial=state.initial, final=state.final,
                          description=state.description, line=state.line)
    for trans in machine.transitions:
        builder.add_transition(trans.source, trans.target, guards=trans.guards,
                               triggers=trans.triggers, name=trans.name, line=trans.line)
    return builder.build()


def parse(source: str, name: Optional[str] = None) -> StateGraph:
    """Parse notation source code into a StateGraph."""
    return build_graph(parse_declarations(source), name)


def parse_file(path: Union[str, Path], name: Optional[str] = None) -> StateGraph:
    """Parse a notation file into a StateGraph."""
    with open(path) as f:
        return parse(f.read(), name)
