"""
inkwell/printer.py
==================

Canonical single-line rendering of AST nodes.

The classifier and the instrumentor match operation patterns against the
text of a node.  Rendering from the tree instead of slicing the source
gives one spelling per construct (``self.balances.get(to)``,
``msg::sender()``, ``a + b``) whatever the original layout, comments or
line breaks were.
"""

from __future__ import annotations

from typing import Any, Optional

from inkwell import ast as A

__all__ = ["Printer", "render"]

_DELIMITERS = {"(": ("(", ")"), "[": ("[", "]"), "{": ("{", "}")}


class Printer:
    """Renders expressions, statements and blocks to compact text."""

    def render(self, node: Any) -> str:
        if node is None:
            return ""
        method = getattr(self, "_render_" + type(node).__name__, None)
        if method is None:
            raise TypeError(f"cannot render {type(node).__name__}")
        return method(node)

    def _list(self, nodes) -> str:
        return ", ".join(self.render(n) for n in nodes)

    # --- fragments -------------------------------------------------------

    def _render_TypeRef(self, node: A.TypeRef) -> str:
        return node.text

    def _render_Pattern(self, node: A.Pattern) -> str:
        return node.text

    # --- expressions -----------------------------------------------------

    def _render_Lit(self, node: A.Lit) -> str:
        return node.text

    def _render_PathExpr(self, node: A.PathExpr) -> str:
        return node.text

    def _render_MethodCall(self, node: A.MethodCall) -> str:
        return (f"{self.render(node.receiver)}.{node.method}{node.turbofish}"
                f"({self._list(node.args)})")

    def _render_Call(self, node: A.Call) -> str:
        return f"{self.render(node.func)}({self._list(node.args)})"

    def _render_Field(self, node: A.Field) -> str:
        return f"{self.render(node.base)}.{node.member}"

    def _render_Index(self, node: A.Index) -> str:
        return f"{self.render(node.base)}[{self.render(node.index)}]"

    def _render_Binary(self, node: A.Binary) -> str:
        return f"{self.render(node.left)} {node.op} {self.render(node.right)}"

    def _render_Assign(self, node: A.Assign) -> str:
        return f"{self.render(node.left)} = {self.render(node.right)}"

    def _render_Unary(self, node: A.Unary) -> str:
        op = node.op + " " if node.op.endswith("mut") else node.op
        return op + self.render(node.operand)

    def _render_Cast(self, node: A.Cast) -> str:
        return f"{self.render(node.expr)} as {node.ty.text}"

    def _render_Try(self, node: A.Try) -> str:
        return self.render(node.expr) + "?"

    def _render_Await(self, node: A.Await) -> str:
        return self.render(node.expr) + ".await"

    def _render_Paren(self, node: A.Paren) -> str:
        return f"({self.render(node.inner)})"

    def _render_TupleExpr(self, node: A.TupleExpr) -> str:
        if len(node.elems) == 1:
            return f"({self.render(node.elems[0])},)"
        return f"({self._list(node.elems)})"

    def _render_ArrayExpr(self, node: A.ArrayExpr) -> str:
        if node.length is not None:
            return f"[{self.render(node.elems[0])}; {self.render(node.length)}]"
        return f"[{self._list(node.elems)}]"

    def _render_FieldInit(self, node: A.FieldInit) -> str:
        if node.value is None:
            return node.name
        return f"{node.name}: {self.render(node.value)}"

    def _render_StructLit(self, node: A.StructLit) -> str:
        parts = [self.render(f) for f in node.fields]
        if node.base is not None:
            parts.append(".." + self.render(node.base))
        if not parts:
            return node.path + " {}"
        return f"{node.path} {{ {', '.join(parts)} }}"

    def _render_MacroCall(self, node: A.MacroCall) -> str:
        opening, closing = _DELIMITERS[node.delimiter]
        return f"{node.path}!{opening}{node.tokens}{closing}"

    def _render_Range(self, node: A.Range) -> str:
        op = "..=" if node.inclusive else ".."
        return f"{self.render(node.start)}{op}{self.render(node.end)}"

    def _render_Closure(self, node: A.Closure) -> str:
        prefix = "move " if node.is_move else ""
        if node.ret is not None:
            return f"{prefix}{node.params} -> {node.ret.text} {self.render(node.body)}"
        return f"{prefix}{node.params} {self.render(node.body)}"

    def _render_Let(self, node: A.Let) -> str:
        return f"let {node.pattern.text} = {self.render(node.expr)}"

    def _label(self, label: str) -> str:
        return f"{label}: " if label else ""

    def _render_BlockExpr(self, node: A.BlockExpr) -> str:
        prefix = node.kind + " " if node.kind else ""
        return self._label(node.label) + prefix + self.render(node.block)

    def _render_If(self, node: A.If) -> str:
        text = f"if {self.render(node.cond)} {self.render(node.then)}"
        if node.orelse is not None:
            text += " else " + self.render(node.orelse)
        return text

    def _render_MatchArm(self, node: A.MatchArm) -> str:
        guard = f" if {self.render(node.guard)}" if node.guard is not None else ""
        return f"{node.pattern.text}{guard} => {self.render(node.body)}"

    def _render_Match(self, node: A.Match) -> str:
        arms = ", ".join(self.render(arm) for arm in node.arms)
        body = f"{{ {arms} }}" if arms else "{}"
        return f"match {self.render(node.scrutinee)} {body}"

    def _render_Loop(self, node: A.Loop) -> str:
        return f"{self._label(node.label)}loop {self.render(node.body)}"

    def _render_While(self, node: A.While) -> str:
        return (f"{self._label(node.label)}while {self.render(node.cond)} "
                f"{self.render(node.body)}")

    def _render_ForLoop(self, node: A.ForLoop) -> str:
        return (f"{self._label(node.label)}for {node.pattern.text} in "
                f"{self.render(node.iter)} {self.render(node.body)}")

    def _render_Return(self, node: A.Return) -> str:
        if node.value is None:
            return "return"
        return "return " + self.render(node.value)

    def _render_Break(self, node: A.Break) -> str:
        parts = ["break"]
        if node.label:
            parts.append(node.label)
        if node.value is not None:
            parts.append(self.render(node.value))
        return " ".join(parts)

    def _render_Continue(self, node: A.Continue) -> str:
        return f"continue {node.label}" if node.label else "continue"

    # --- statements ------------------------------------------------------

    def _render_LetStmt(self, node: A.LetStmt) -> str:
        text = "let " + node.pattern.text
        if node.ty is not None:
            text += ": " + node.ty.text
        if node.init is not None:
            text += " = " + self.render(node.init)
        if node.orelse is not None:
            text += " else " + self.render(node.orelse)
        return text + ";"

    def _render_ExprStmt(self, node: A.ExprStmt) -> str:
        return self.render(node.expr) + (";" if node.semi else "")

    def _render_ItemStmt(self, node: A.ItemStmt) -> str:
        item = node.item
        if isinstance(item, A.FnItem):
            return item.signature + " { .. }"
        return f"{type(item).__name__} {getattr(item, 'name', '')}".rstrip()

    def _render_EmptyStmt(self, node: A.EmptyStmt) -> str:
        return ";"

    def _render_Block(self, node: A.Block) -> str:
        parts = [self.render(stmt) for stmt in node.stmts]
        if node.tail is not None:
            parts.append(self.render(node.tail))
        if not parts:
            return "{}"
        return "{ " + " ".join(parts) + " }"


_PRINTER = Printer()


def render(node: Optional[Any]) -> str:
    """Render *node* with the shared :class:`Printer`."""
    return _PRINTER.render(node)
