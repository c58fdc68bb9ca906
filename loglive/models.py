"""Core data models shared by the scope builder, evaluator and annotation layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BindingKind(str, Enum):
    FUNCTION = "function"
    VARIABLE = "variable"


class TargetKind(str, Enum):
    PLAIN_EXPRESSION = "plain_expression"
    VARIABLE_INIT = "variable_init"
    DEBUG_PRINT_CALL = "debug_print_call"


class FailureKind(str, Enum):
    RUNTIME = "runtime"
    TIMEOUT = "timeout"
    SYNTAX = "syntax"


@dataclass
class Binding:
    name: str
    kind: BindingKind
    source_text: str
    value_text: str
    line: int
    origin: Optional[str] = None


@dataclass
class EvaluationTarget:
    node: Any
    kind: TargetKind
    source_text: str
    line: int


@dataclass
class EvaluationOutcome:
    """Result of evaluating one snippet: a value or a classified failure."""

    value: Any = None
    failure_kind: Optional[FailureKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure_kind is None

    @classmethod
    def success(cls, value: Any) -> "EvaluationOutcome":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "EvaluationOutcome":
        return cls(failure_kind=kind, message=message)


@dataclass
class Annotation:
    line: int
    column: int
    text: str
    style: str = "gray"

    @property
    def content_text(self) -> str:
        return f" // {self.text}"


@dataclass
class RunReport:
    document_id: str
    annotations: List[Annotation] = field(default_factory=list)
    outcomes: List[EvaluationOutcome] = field(default_factory=list)
    binding_failures: Dict[str, str] = field(default_factory=dict)
    skipped_imports: List[str] = field(default_factory=list)
    syntax_error: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.syntax_error is not None or self.error is not None


class EnvironmentPolicy(str, Enum):
    """How a session treats the environment between runs of one document."""

    FRESH = "fresh"
    ACCUMULATE = "accumulate"
