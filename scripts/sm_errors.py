"""
Errors and diagnostics for test plan generation.

Fatal errors are raised. Non-fatal conditions are instances of
GenerationWarning that the generator hands to a Diagnostics collector
instead of raising; generation then continues with the affected guard,
path or name skipped or replaced.
"""

import threading
from typing import Callable, Iterator, List, Optional


class TestPlanError(Exception):
    """Base class for all test plan generation errors."""
    # Keep pytest from collecting this as a test class
    __test__ = False


# =============================================================================
# Fatal errors
# =============================================================================

class ModelLoadError(TestPlanError):
    """The model notation could not be turned into a state graph."""

    def __init__(self, message: str, line: int = 0):
        self.message = message
        self.line = line
        loc = f"line {line}: " if line else ""
        super().__init__(f"{loc}{message}")


class TransitionIdentityError(TestPlanError):
    """A transition cannot be used as a stable identity for cycle detection."""


class StubNameCollisionError(TestPlanError):
    """Two stubs of different kinds derive the same method name."""


class InvalidStubNameError(TestPlanError):
    """A stub name is not a valid Python method name."""


# =============================================================================
# Non-fatal conditions
# =============================================================================

class GenerationWarning(TestPlanError):
    """A model defect that skips part of the generation but never aborts it."""


class ModelIncompleteError(GenerationWarning):
    """A non-final state has no outgoing transitions; the path is abandoned."""


class EmptyGuardExpressionError(GenerationWarning):
    """A guard body is empty; that single guard step is skipped."""


class UnsupportedEventKindError(GenerationWarning):
    """A trigger event kind has no naming rule; a generic name is used."""


class MissingEventExpressionError(GenerationWarning):
    """A change or time event has no expression; a fallback name is used."""


class MissingTargetError(GenerationWarning):
    """A transition has no target state."""


class Diagnostics:
    """Ordered, thread-safe collection of reported GenerationWarnings.

    on_report, when given, is called with the message of every report as
    it happens. It is the single hook through which a user interface is
    notified.
    """

    def __init__(self, on_report: Optional[Callable[[str], None]] = None):
        self._lock = threading.Lock()
        self._items: List[GenerationWarning] = []
        self.on_report = on_report

    def report(self, warning: GenerationWarning):
        with self._lock:
            self._items.append(warning)
        if self.on_report is not None:
            self.on_report(str(warning))

    @property
    def items(self) -> List[GenerationWarning]:
        with self._lock:
            return list(self._items)

    @property
    def messages(self) -> List[str]:
        return [str(w) for w in self.items]

    def of_type(self, kind: type) -> List[GenerationWarning]:
        return [w for w in self.items if isinstance(w, kind)]

    def __len__(self):
        return len(self.items)

    def __iter__(self) -> Iterator[GenerationWarning]:
        return iter(self.items)

    def __str__(self):
        return "\n".join(self.messages)
