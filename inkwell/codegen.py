"""
inkwell/codegen.py
==================

Indentation-aware emitter for generated Rust source.

Used by :mod:`inkwell.instrumentor` to build the ``__ink_profiling``
runtime module.  ``block(header)`` opens ``header {`` and closes the brace
on exit::

    out = CodeEmitter()
    with out.block("impl InkTracker"):
        out.emit("pub const fn new() -> Self { .. }")
"""

from __future__ import annotations

from io import StringIO
from typing import Any, Iterable

__all__ = ["CodeEmitter", "rust_str"]


def rust_str(s: str) -> str:
    """Rust string literal for *s*.

    >>> rust_str('say "hi"')
    '"say \\\\"hi\\\\""'
    """
    escaped = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


class CodeEmitter:
    """Low-level code emission with indentation management."""

    def __init__(self, indent_str: str = "    ") -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self._indent_level = 0

    def emit(self, code: str = "") -> None:
        """Emit a line of code at the current indentation."""
        if code.strip():
            self._buffer.write(self._indent_str * self._indent_level)
            self._buffer.write(code)
        self._buffer.write("\n")

    def emit_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.emit(line)

    def emit_blank(self, count: int = 1) -> None:
        self._buffer.write("\n" * count)

    def emit_comment(self, text: str) -> None:
        for line in text.split("\n"):
            self.emit(f"// {line}".rstrip())

    def emit_doc(self, text: str) -> None:
        for line in text.strip().split("\n"):
            self.emit(f"/// {line}".rstrip())

    def indent(self) -> None:
        self._indent_level += 1

    def dedent(self) -> None:
        self._indent_level = max(0, self._indent_level - 1)

    def block(self, header: str, closer: str = "}") -> "CodeEmitter._BlockContext":
        """Context manager for a braced block."""
        return self._BlockContext(self, header, closer)

    class _BlockContext:
        def __init__(self, emitter: "CodeEmitter", header: str, closer: str) -> None:
            self._emitter = emitter
            self._header = header
            self._closer = closer

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(f"{self._header} {{" if self._header else "{")
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()
            self._emitter.emit(self._closer)

    def get_code(self) -> str:
        return self._buffer.getvalue()
