"""
Render generated stubs and plans as a Python abstract test plan class.
"""

import keyword
from pathlib import Path
from typing import List, Optional

from graph_expander import GenerationResult
from sm_errors import InvalidStubNameError
from plan_builder import NamedPlan, StepKind
from stub_registry import Stub, sanitize


TEST_PLAN_CLASS_LEADING = "TestPlanForStateMachine"
GENERATION_STRATEGY = "TransitionCorrectnessTestStrategy"


def plan_class_name(model_name: str) -> str:
    return TEST_PLAN_CLASS_LEADING + sanitize(model_name)


def _docstring(text: str, indent: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'{indent}"""{escaped}"""'


def generate_stub_python(stub: Stub) -> List[str]:
    """Abstract method declaration for one stub."""
    if not stub.name.isidentifier() or keyword.iskeyword(stub.name):
        raise InvalidStubNameError(f"Stub name {stub.name!r} is not a valid method name")
    return [
        "    @abstractmethod",
        f"    def {stub.name}(self, *arguments) -> bool:",
        _docstring(stub.documentation, "        "),
    ]


def generate_plan_python(plan: NamedPlan) -> List[str]:
    """Concrete method running one plan's steps in order."""
    lines = [f"    def {plan.name}(self):"]
    for step in plan.steps:
        if step.kind is StepKind.ASSERT:
            lines.append(f"        assert self.{step.stub_name}()")
        else:
            lines.append(f"        self.{step.stub_name}()")
    return lines


def generate_python(result: GenerationResult, source: Optional[str] = None,
                    output_path: Path = None) -> str:
    """Generate the test plan module for a generation result."""
    class_name = plan_class_name(result.model_name)

    lines = ['"""']
    lines.append(f"Test plan for state machine {result.model_name}.")
    lines.append("")
    lines.append(f"Subclass {class_name} and implement every abstract method to")
    lines.append("drive and observe the system under test; each testPlan_N method")
    lines.append("then walks one path of the state machine.")
    lines.append("")
    if source:
        lines.append(f"GENERATED BY {GENERATION_STRATEGY} FROM {source}")
    else:
        lines.append(f"GENERATED BY {GENERATION_STRATEGY}")
    lines.append('"""')
    lines.append("")
    lines.append("from abc import ABC, abstractmethod")
    lines.append("")
    lines.append("")
    lines.append(f"class {class_name}(ABC):")
    lines.append(_docstring(
        f"Abstract test plan checking the transitions of state machine {result.model_name}.",
        "    "
    ))

    for stub in result.stubs:
        lines.append("")
        lines.extend(generate_stub_python(stub))

    for plan in result.plans:
        lines.append("")
        lines.extend(generate_plan_python(plan))

    lines.append("")
    output = "\n".join(lines)

    if output_path:
        with open(output_path, "w") as f:
            f.write(output)

    return output
