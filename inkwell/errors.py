# inkwell/errors.py
"""
Inkwell Error Types and Reporting Module

Structured errors raised by the analysis pipeline. Every error carries a
stable code, an optional source span, free-form notes and a hint, and can
be rendered either GCC-style (for terminals) or as a JSON-ready mapping.

Error Hierarchy:
────────────────
    InkwellError (base)
    ├── ParseError              - source text rejected by the grammar
    ├── NoEntryPointsError      - parsed fine, but nothing externally callable
    ├── UnknownFunctionError    - target filter matched no entry point
    └── ConfigError             - malformed or inconsistent configuration

Error Codes:
────────────
Codes follow the pattern INK-NNNN:
  - 1000-1999: parse errors
  - 2000-2999: analysis errors
  - 3000-3999: configuration errors

Only ParseError is produced by the instrumentor; once a file parses, the
rewrite is total.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Dict, List, Optional, Sequence


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    PARSE = "parse"
    ANALYSIS = "analysis"
    CONFIG = "config"


@dataclass(frozen=True, slots=True)
class ErrorCode:
    """A stable ``INK-NNNN`` error code."""

    number: int
    phase: ErrorPhase
    title: str

    @property
    def code(self) -> str:
        return f"INK-{self.number:04d}"

    def __str__(self) -> str:
        return self.code


class InkwellErrorCodes:
    """Predefined error codes."""

    SYNTAX = ErrorCode(1000, ErrorPhase.PARSE, "syntax error")
    INCOMPLETE_PARSE = ErrorCode(1001, ErrorPhase.PARSE, "trailing input")

    NO_ENTRY_POINTS = ErrorCode(2000, ErrorPhase.ANALYSIS, "no entry points")
    UNKNOWN_FUNCTION = ErrorCode(2001, ErrorPhase.ANALYSIS, "unknown function")

    INVALID_CONFIG = ErrorCode(3000, ErrorPhase.CONFIG, "invalid configuration")


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE SPANS AND NOTES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class SourceSpan:
    """A position in a contract source file (1-based line and column)."""

    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"
        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))
        return ":".join(parts)


@dataclass
class ErrorNote:
    """Additional context attached to an error."""

    message: str
    label: str = "note"

    def __str__(self) -> str:
        prefix = f"{self.label}: " if self.label else ""
        return f"{prefix}{self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class InkwellError(Exception):
    """
    Base exception for all inkwell errors.

    Carries structured information that can be pretty-printed or
    serialised for downstream tooling.
    """

    default_code: ErrorCode = InkwellErrorCodes.SYNTAX

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        notes: Optional[List[ErrorNote]] = None,
        hint: str = "",
        source_line: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.span = span or SourceSpan()
        self.notes: List[ErrorNote] = list(notes or [])
        self.hint = hint
        self.source_line = source_line

    def add_note(self, message: str, label: str = "note") -> "InkwellError":
        """Add a note to this error."""
        self.notes.append(ErrorNote(message=message, label=label))
        return self

    def with_hint(self, hint: str) -> "InkwellError":
        """Add a hint to this error."""
        self.hint = hint
        return self

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        lines = [f"{self.span}: error: {self.message} [{self.code}]"]
        if self.source_line:
            lines.append(f"    {self.source_line}")
            if self.span.column > 0:
                lines.append(f"    {' ' * (self.span.column - 1)}^")
        for note in self.notes:
            lines.append(str(note))
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def to_json(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "code": self.code.code,
            "phase": self.code.phase.value,
            "message": self.message,
            "location": {
                "file": self.span.file,
                "line": self.span.line,
                "column": self.span.column,
            },
            "notes": [{"label": n.label, "message": n.message} for n in self.notes],
            "hint": self.hint,
        }

    def __str__(self) -> str:
        return self.to_gcc_format()


class ParseError(InkwellError):
    """Source text could not be parsed."""

    default_code = InkwellErrorCodes.SYNTAX


class NoEntryPointsError(InkwellError):
    """
    The file parsed, but no function qualified as an entry point.

    ``selector_constant_count`` is the number of selector-like constants
    seen anywhere in the file. A nonzero count usually means the contract
    is generated by a declarative macro and must be macro-expanded before
    its real entry points become visible.
    """

    default_code = InkwellErrorCodes.NO_ENTRY_POINTS

    def __init__(
        self,
        file: str,
        selector_constant_count: int = 0,
        impl_count: int = 0,
        candidate_count: int = 0,
    ) -> None:
        self.selector_constant_count = selector_constant_count
        self.impl_count = impl_count
        self.candidate_count = candidate_count
        super().__init__(
            f"no entry points found ({impl_count} impl block(s), "
            f"{candidate_count} method(s) inspected, "
            f"{selector_constant_count} selector-like constant(s))",
            span=SourceSpan(file=file),
        )
        for cause in self.candidate_causes():
            self.add_note(cause, label="possible cause")
        if selector_constant_count:
            self.with_hint(
                "selector constants were found; expand the contract macros "
                "(e.g. `cargo expand`) and analyze the expanded source"
            )
        else:
            self.with_hint(
                "mark the contract impl block with #[public] or make the "
                "entry-point methods `pub fn name(&self, ...)`"
            )

    def candidate_causes(self) -> List[str]:
        causes = []
        if self.impl_count == 0:
            causes.append("the file contains no impl blocks")
        causes.append("no impl block or method carries an #[external]/#[public] marker")
        causes.append("no `pub` method takes a self receiver outside the lifecycle blocklist")
        if self.selector_constant_count:
            causes.append(
                "the contract is generated by a macro; "
                f"{self.selector_constant_count} selector-like constant(s) were seen"
            )
        else:
            causes.append("the contract may be generated by a macro that has not been expanded")
        return causes


class UnknownFunctionError(InkwellError):
    """The requested target function is not among the entry points."""

    default_code = InkwellErrorCodes.UNKNOWN_FUNCTION

    def __init__(self, name: str, available: Sequence[str], file: str = "") -> None:
        self.name = name
        self.available = list(available)
        super().__init__(
            f"function `{name}` is not an entry point of this contract",
            span=SourceSpan(file=file),
        )
        if self.available:
            self.add_note("entry points: " + ", ".join(self.available))


class ConfigError(InkwellError):
    """Configuration could not be loaded or is inconsistent."""

    default_code = InkwellErrorCodes.INVALID_CONFIG


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "InkwellErrorCodes",
    "SourceSpan",
    "ErrorNote",
    "InkwellError",
    "ParseError",
    "NoEntryPointsError",
    "UnknownFunctionError",
    "ConfigError",
]
