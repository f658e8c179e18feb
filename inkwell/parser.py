"""
inkwell/parser.py
=================

Builds the :mod:`inkwell.ast` tree from source text.

Parsing is done by the ``parsimonious`` grammar in :mod:`inkwell.grammar`;
:class:`RustASTBuilder` is a ``NodeVisitor`` that folds the resulting parse
tree bottom-up into frozen AST nodes.  Rules that are only kept as text
(types, patterns, generics, attributes, token trees, keywords) are
short-circuited in :meth:`RustASTBuilder.visit` so their sub-trees are
never walked.

Failures surface as :class:`inkwell.errors.ParseError` carrying the line,
column and source line of the failure point.
"""

from __future__ import annotations

import bisect
import logging
import re
import sys
from dataclasses import replace
from typing import Any, List, Optional, Sequence, Tuple

from parsimonious.exceptions import IncompleteParseError, ParseError as PegParseError
from parsimonious.expressions import OneOf, Quantifier, Sequence as PegSequence
from parsimonious.nodes import Node, NodeVisitor

from inkwell import ast as A
from inkwell.errors import InkwellErrorCodes, ParseError, SourceSpan
from inkwell.grammar import EXPRESSION_RULES, NO_STRUCT_SUFFIX, RUST_GRAMMAR

__all__ = ["parse_source", "RustASTBuilder", "compact_text", "normalize_tokens"]

log = logging.getLogger(__name__)

# Parsimonious and the visitor both recurse once per grammar level.
_MIN_RECURSION_LIMIT = 20000

_WS_RE = re.compile(r"\s+")
_ATTR_PATH_RE = re.compile(
    r"#\s*!?\s*\[\s*(?:unsafe\s*\(\s*)?([A-Za-z_][A-Za-z0-9_]*(?:\s*::\s*[A-Za-z_][A-Za-z0-9_]*)*)"
)


# ═══════════════════════════════════════════════════════════════════════════
# TEXT CANONICALISATION
# ═══════════════════════════════════════════════════════════════════════════

def compact_text(text: str) -> str:
    """Collapse whitespace and tighten spacing around paths and brackets."""
    text = _WS_RE.sub(" ", text).strip()
    text = re.sub(r"\s*(::|\.)\s*(?=[A-Za-z_0-9<*{])", r"\1", text)
    text = re.sub(r"([(\[])\s+", r"\1", text)
    text = re.sub(r"\s+([)\],;])", r"\1", text)
    return text


def _skip_block_comment(text: str, start: int) -> int:
    """Offset just past the block comment opening at *start*; they nest."""
    depth = 0
    i = start
    while i < len(text):
        if text.startswith("/*", i):
            depth += 1
            i += 2
        elif text.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return i


def _strip_trivia(text: str) -> str:
    """Drop comments and surrounding whitespace from string-free text."""
    if "/" not in text:
        return text.strip()
    out: List[str] = []
    i = 0
    while i < len(text):
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end < 0 else end
            out.append(" ")
        elif text.startswith("/*", i):
            i = _skip_block_comment(text, i)
            out.append(" ")
        else:
            out.append(text[i])
            i += 1
    return "".join(out).strip()


def normalize_tokens(text: str) -> str:
    """Canonical form of a macro token tree body."""
    text = compact_text(text)
    return re.sub(r"(?<=[A-Za-z0-9_!>])\s+\(", "(", text)


# ═══════════════════════════════════════════════════════════════════════════
# AST BUILDER
# ═══════════════════════════════════════════════════════════════════════════

def _opt(children: Sequence[Any]) -> Any:
    """First element of an optional match, or None."""
    return children[0] if children else None


def _sep_list(first: Any, rest: Sequence[Sequence[Any]]) -> List[Any]:
    """Flatten ``x ("," _ x)*`` into a list."""
    return [first] + [group[-1] for group in rest]


class RustASTBuilder(NodeVisitor):
    """Visitor that converts a parsimonious parse tree into AST nodes."""

    unwrapped_exceptions = (ParseError,)

    # Rules kept as text: their children are never visited.
    _OPAQUE = frozenset({
        "_", "type", "type_no_bounds", "pattern", "pattern_no_alt",
        "generic_params", "generic_args", "where_clause", "bounds", "vis",
        "use_tree", "lifetime", "label", "abi", "delim_tt", "outer_attr",
        "inner_attr", "turbofish", "closure_params", "ret_type", "qself",
        "simple_path", "path_ident", "ident", "underscore", "tuple_index",
        "unary_op", "literal", "self_param", "keyword",
    })

    def __init__(self, text: str, filename: str = "<source>") -> None:
        self.text = text
        self.filename = filename
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    # -- plumbing -------------------------------------------------------

    def visit(self, node: Node) -> Any:
        name = node.expr_name
        if name in self._OPAQUE or (name.isupper() and name):
            method = getattr(self, "visit_" + name, self._visit_keyword)
            return method(node, [])
        return super().visit(node)

    def generic_visit(self, node: Node, visited_children: List[Any]) -> Any:
        expr = node.expr
        if isinstance(expr, OneOf):
            return visited_children[0]
        if isinstance(expr, (PegSequence, Quantifier)):
            return visited_children
        return node

    def _visit_keyword(self, node: Node, _children: List[Any]) -> str:
        return node.text.strip()

    def _position(self, offset: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def _span(self, node: Node) -> A.Span:
        line, col = self._position(node.start)
        return A.Span(node.start, node.start + len(node.text.rstrip()), line, col)

    @staticmethod
    def _join(first: A.Span, last: A.Span) -> A.Span:
        return A.Span(first.start, max(first.end, last.end), first.line, first.col)

    # -- lexical / opaque -----------------------------------------------

    def visit__(self, node: Node, _children: List[Any]) -> None:
        return None

    def visit_ident(self, node: Node, _children: List[Any]) -> str:
        return _strip_trivia(node.text)

    visit_path_ident = visit_ident
    visit_tuple_index = visit_ident
    visit_lifetime = visit_ident
    visit_underscore = visit_ident

    def visit_label(self, node: Node, _children: List[Any]) -> str:
        return _strip_trivia(node.text).rstrip(":").strip()

    def visit_simple_path(self, node: Node, _children: List[Any]) -> str:
        return _WS_RE.sub("", _strip_trivia(node.text))

    visit_vis = visit_simple_path
    visit_unary_op = visit_simple_path

    def visit_literal(self, node: Node, _children: List[Any]) -> A.Lit:
        token = node.children[0]
        line, col = self._position(token.start)
        return A.Lit(token.text, A.Span(token.start, token.end, line, col))

    def _text(self, node: Node, _children: List[Any]) -> str:
        return compact_text(node.text)

    visit_generic_params = _text
    visit_generic_args = _text
    visit_where_clause = _text
    visit_bounds = _text
    visit_use_tree = _text
    visit_abi = _text
    visit_turbofish = _text
    visit_closure_params = _text
    visit_qself = _text

    def visit_type(self, node: Node, _children: List[Any]) -> A.TypeRef:
        return A.TypeRef(compact_text(node.text), self._span(node))

    visit_type_no_bounds = visit_type

    def visit_ret_type(self, node: Node, _children: List[Any]) -> A.TypeRef:
        return A.TypeRef(compact_text(node.text.lstrip()[2:]), self._span(node))

    def visit_pattern(self, node: Node, _children: List[Any]) -> A.Pattern:
        return A.Pattern(compact_text(node.text), self._span(node))

    visit_pattern_no_alt = visit_pattern

    def visit_self_param(self, node: Node, _children: List[Any]) -> A.Param:
        return A.Param(pattern=compact_text(node.text), is_self=True)

    def visit_delim_tt(self, node: Node, _children: List[Any]) -> Tuple[str, str]:
        # delim_tt -> paren_tt / bracket_tt / brace_tt -> open _ tt* close _
        tokens = node.children[0].children[2]
        return node.text[0], normalize_tokens(tokens.text)

    def _attribute(self, node: Node, inner: bool) -> A.Attribute:
        closing = node.children[-2]
        text = compact_text(self.text[node.start:closing.end])
        match = _ATTR_PATH_RE.match(text)
        path = _WS_RE.sub("", match.group(1)) if match else ""
        return A.Attribute(path=path, text=text, inner=inner, span=self._span(node))

    def visit_outer_attr(self, node: Node, _children: List[Any]) -> A.Attribute:
        return self._attribute(node, inner=False)

    def visit_inner_attr(self, node: Node, _children: List[Any]) -> A.Attribute:
        return self._attribute(node, inner=True)

    # -- file & items ---------------------------------------------------

    def visit_file(self, node: Node, children: List[Any]) -> A.SourceFile:
        _, attrs, items = children
        return A.SourceFile(
            items=tuple(items), attrs=tuple(attrs), text=self.text, filename=self.filename,
        )

    def _finish_item(self, node: Node, children: List[Any]) -> A.Item:
        attrs, vis_opt, item = children
        changes: dict = {"attrs": tuple(attrs), "span": self._span(node)}
        if hasattr(item, "vis"):
            changes["vis"] = _opt(vis_opt) or ""
        if isinstance(item, A.FnItem):
            vis_node, kind_node = node.children[1], node.children[2]
            start = vis_node.start if vis_node.children else kind_node.start
            end = item.body.span.start if item.body is not None else kind_node.end
            signature = compact_text(self.text[start:end]).rstrip(";").strip()
            changes["signature"] = re.sub(r",\s*\)", ")", signature)
        return replace(item, **changes)

    def visit_item(self, node: Node, children: List[Any]) -> A.Item:
        return self._finish_item(node, children)

    def visit_stmt_item(self, node: Node, children: List[Any]) -> A.ItemStmt:
        return A.ItemStmt(self._finish_item(node, children), self._span(node))

    def visit_fn_item(self, node: Node, children: List[Any]) -> A.FnItem:
        _quals, _fn, name, _generics, _lp, _, params, _rp, _, ret, _where, body = children
        return A.FnItem(
            name=name,
            params=tuple(_opt(params) or ()),
            ret=_opt(ret),
            body=body,
        )

    def visit_fn_body(self, node: Node, children: List[Any]) -> Optional[A.Block]:
        body = children[0]
        return body if isinstance(body, A.Block) else None

    def visit_fn_params(self, node: Node, children: List[Any]) -> List[A.Param]:
        first, rest, _trailing = children
        return _sep_list(first, rest)

    def visit_fn_param(self, node: Node, children: List[Any]) -> A.Param:
        return children[1]

    def visit_typed_param(self, node: Node, children: List[Any]) -> A.Param:
        pattern, ty = children
        return A.Param(pattern=pattern.text, ty=ty)

    def visit_type_annot(self, node: Node, children: List[Any]) -> A.TypeRef:
        return children[2]

    def visit_impl_item(self, node: Node, children: List[Any]) -> A.ImplItem:
        _unsafe, _impl, _generics, trait, self_ty, _where, _lb, _, _inner, items, _rb, _ = children
        return A.ImplItem(self_ty=self_ty, items=tuple(items), trait=_opt(trait))

    def visit_impl_trait(self, node: Node, children: List[Any]) -> A.TypeRef:
        return children[2]

    def visit_struct_item(self, node: Node, children: List[Any]) -> A.StructItem:
        return A.StructItem(name=children[1])

    def visit_enum_item(self, node: Node, children: List[Any]) -> A.EnumItem:
        return A.EnumItem(name=children[1])

    def visit_trait_item(self, node: Node, children: List[Any]) -> A.TraitItem:
        name, items = children[3], children[10]
        return A.TraitItem(name=name, items=tuple(items))

    def visit_const_item(self, node: Node, children: List[Any]) -> A.ConstItem:
        _const, name, _colon, _, ty, init, _semi, _ = children
        value = init[0][2] if init else None
        return A.ConstItem(name=name, ty=ty, value=value)

    def visit_static_item(self, node: Node, children: List[Any]) -> A.ConstItem:
        _static, _mut, name, _colon, _, ty, init, _semi, _ = children
        value = init[0][2] if init else None
        return A.ConstItem(name=name, ty=ty, value=value, is_static=True)

    def visit_mod_item(self, node: Node, children: List[Any]) -> A.ModItem:
        _unsafe, _mod, name, body = children
        items = tuple(body[3]) if len(body) == 6 else None
        return A.ModItem(name=name, items=items)

    def _other(kind: str):  # type: ignore[misc]
        def visit(self: "RustASTBuilder", node: Node, children: List[Any]) -> A.OtherItem:
            return A.OtherItem(kind=kind, text=compact_text(node.text))
        return visit

    visit_use_item = _other("use")
    visit_type_alias = _other("type")
    visit_extern_crate = _other("extern_crate")
    visit_extern_block = _other("extern")
    del _other

    def visit_macro_item(self, node: Node, children: List[Any]) -> A.MacroItem:
        path, _bang, _, _name, tokens, _semi = children
        return A.MacroItem(path=path, tokens=tokens[1])

    # -- statements -----------------------------------------------------

    def visit_block(self, node: Node, children: List[Any]) -> A.Block:
        stmts, tail = children[3]
        return A.Block(stmts=stmts, tail=tail, span=self._span(node))

    def visit_stmt_seq(self, node: Node, children: List[Any]) -> Tuple[Tuple[A.Stmt, ...], Optional[A.Expr]]:
        stmts, tail = children
        return tuple(stmts), _opt(tail)

    def visit_stmt_ws(self, node: Node, children: List[Any]) -> A.Stmt:
        return children[0]

    def visit_stmt(self, node: Node, children: List[Any]) -> A.Stmt:
        return children[0]

    def visit_empty_stmt(self, node: Node, _children: List[Any]) -> A.EmptyStmt:
        return A.EmptyStmt(self._span(node))

    def visit_let_stmt(self, node: Node, children: List[Any]) -> A.LetStmt:
        attrs, _let, pattern, ty, init, _semi = children
        expr, orelse = _opt(init) or (None, None)
        return A.LetStmt(
            pattern=pattern, ty=_opt(ty), init=expr, orelse=orelse,
            attrs=tuple(attrs), span=self._span(node),
        )

    def visit_let_init(self, node: Node, children: List[Any]) -> Tuple[A.Expr, Optional[A.Block]]:
        _eq, _, expr, orelse = children
        return expr, _opt(orelse)

    def visit_let_else(self, node: Node, children: List[Any]) -> A.Block:
        return children[1]

    def visit_block_stmt(self, node: Node, children: List[Any]) -> A.ExprStmt:
        attrs, expr, _not, semi = children
        return A.ExprStmt(expr=expr, semi=bool(semi), attrs=tuple(attrs), span=self._span(node))

    def visit_expr_stmt(self, node: Node, children: List[Any]) -> A.ExprStmt:
        attrs, expr, _semi = children
        return A.ExprStmt(expr=expr, semi=True, attrs=tuple(attrs), span=self._span(node))

    def visit_block_tail(self, node: Node, children: List[Any]) -> A.Expr:
        return children[1]

    # -- operators ------------------------------------------------------

    def visit_expr(self, node: Node, children: List[Any]) -> A.Expr:
        left, assign = children
        if not assign:
            return left
        op_node, _, right = assign[0]
        span = self._join(left.span, right.span)
        if op_node.text == "=":
            return A.Assign(left, right, span)
        return A.Binary(op_node.text, left, right, span)

    def visit_range_full(self, node: Node, children: List[Any]) -> A.Range:
        start, op_node, _, end = children
        return A.Range(_opt(start), _opt(end), op_node.text == "..=", self._span(node))

    def _fold_binary(self, node: Node, children: List[Any]) -> A.Expr:
        left, rest = children
        for op_node, _, right in rest:
            left = A.Binary(op_node.text, left, right, self._join(left.span, right.span))
        return left

    visit_or_expr = _fold_binary
    visit_and_expr = _fold_binary
    visit_cmp_expr = _fold_binary
    visit_bitor_expr = _fold_binary
    visit_bitxor_expr = _fold_binary
    visit_bitand_expr = _fold_binary
    visit_shift_expr = _fold_binary
    visit_add_expr = _fold_binary
    visit_mul_expr = _fold_binary

    def visit_cast_expr(self, node: Node, children: List[Any]) -> A.Expr:
        expr, casts = children
        for _as, ty in casts:
            expr = A.Cast(expr, ty, self._join(expr.span, ty.span))
        return expr

    def visit_unary_expr(self, node: Node, children: List[Any]) -> A.Expr:
        child = children[0]
        if isinstance(child, list):
            op, operand = child
            return A.Unary(op, operand, self._span(node))
        return child

    def visit_postfix_expr(self, node: Node, children: List[Any]) -> A.Expr:
        expr, ops = children
        first = expr.span
        for op in ops:
            kind, payload, end = op
            span = A.Span(first.start, end, first.line, first.col)
            if kind == "method":
                name, turbofish, args = payload
                expr = A.MethodCall(expr, name, tuple(args), turbofish, span)
            elif kind == "await":
                expr = A.Await(expr, span)
            elif kind == "field":
                expr = A.Field(expr, payload, span)
            elif kind == "call":
                expr = A.Call(expr, tuple(payload), span)
            elif kind == "index":
                expr = A.Index(expr, payload, span)
            else:
                expr = A.Try(expr, span)
        return expr

    def _end(self, node: Node) -> int:
        return node.start + len(node.text.rstrip())

    def visit_method_call_op(self, node: Node, children: List[Any]) -> tuple:
        _dot, _, name, turbofish, _lp, _, args, _rp, _ = children
        return "method", (name, _opt(turbofish) or "", _opt(args) or []), self._end(node)

    def visit_await_op(self, node: Node, children: List[Any]) -> tuple:
        return "await", None, self._end(node)

    def visit_field_op(self, node: Node, children: List[Any]) -> tuple:
        return "field", children[2], self._end(node)

    def visit_call_op(self, node: Node, children: List[Any]) -> tuple:
        return "call", _opt(children[2]) or [], self._end(node)

    def visit_index_op(self, node: Node, children: List[Any]) -> tuple:
        return "index", children[2], self._end(node)

    def visit_try_op(self, node: Node, children: List[Any]) -> tuple:
        return "try", None, self._end(node)

    def visit_expr_list(self, node: Node, children: List[Any]) -> List[A.Expr]:
        first, rest, _trailing = children
        return _sep_list(first, rest)

    # -- primaries ------------------------------------------------------

    def visit_closure(self, node: Node, children: List[Any]) -> A.Closure:
        _async, move, params, (ret, body) = children
        return A.Closure(params=params, body=body, is_move=bool(move), ret=ret, span=self._span(node))

    def visit_closure_body(self, node: Node, children: List[Any]) -> Tuple[Optional[A.TypeRef], A.Expr]:
        child = children[0]
        if isinstance(child, list):
            ret, block = child
            return ret, A.BlockExpr(block, span=block.span)
        return None, child

    def visit_if_expr(self, node: Node, children: List[Any]) -> A.If:
        _if, cond, then, orelse = children
        return A.If(cond, then, _opt(orelse), self._span(node))

    def visit_else_branch(self, node: Node, children: List[Any]) -> A.Expr:
        return children[1]

    def visit_let_chain(self, node: Node, children: List[Any]) -> A.Expr:
        left, rest = children
        for _op, _, right in rest:
            left = A.Binary("&&", left, right, self._join(left.span, right.span))
        return left

    def visit_let_cond(self, node: Node, children: List[Any]) -> A.Let:
        _let, pattern, _eq, _, expr = children
        return A.Let(pattern, expr, self._span(node))

    def visit_match_expr(self, node: Node, children: List[Any]) -> A.Match:
        _match, scrutinee, _lb, _, _inner, arms, _rb, _ = children
        return A.Match(scrutinee, tuple(arms), self._span(node))

    def visit_match_arm(self, node: Node, children: List[Any]) -> A.MatchArm:
        _attrs, pattern, guard, _arrow, _, body = children
        return A.MatchArm(pattern, _opt(guard), body, self._span(node))

    def visit_match_guard(self, node: Node, children: List[Any]) -> A.Expr:
        return children[1]

    def visit_arm_body(self, node: Node, children: List[Any]) -> A.Expr:
        return children[0][0]

    def visit_loop_expr(self, node: Node, children: List[Any]) -> A.Loop:
        label, _loop, body = children
        return A.Loop(body, _opt(label) or "", self._span(node))

    def visit_while_expr(self, node: Node, children: List[Any]) -> A.While:
        label, _while, cond, body = children
        return A.While(cond, body, _opt(label) or "", self._span(node))

    def visit_for_expr(self, node: Node, children: List[Any]) -> A.ForLoop:
        label, _for, pattern, _in, iterable, body = children
        return A.ForLoop(pattern, iterable, body, _opt(label) or "", self._span(node))

    def visit_unsafe_block(self, node: Node, children: List[Any]) -> A.BlockExpr:
        return A.BlockExpr(children[1], kind="unsafe", span=self._span(node))

    def visit_async_block(self, node: Node, children: List[Any]) -> A.BlockExpr:
        return A.BlockExpr(children[2], kind="async", span=self._span(node))

    def visit_block_expr(self, node: Node, children: List[Any]) -> A.BlockExpr:
        label, block = children
        return A.BlockExpr(block, label=_opt(label) or "", span=self._span(node))

    def visit_macro_call(self, node: Node, children: List[Any]) -> A.MacroCall:
        path, _bang, _, (delimiter, tokens) = children
        return A.MacroCall(path, delimiter, tokens, self._span(node))

    def visit_struct_lit(self, node: Node, children: List[Any]) -> A.StructLit:
        path, _lb, _, (fields, base), _rb, _ = children
        return A.StructLit(path.text, tuple(fields), base, self._span(node))

    def visit_struct_lit_body(self, node: Node, children: List[Any]) -> Tuple[List[A.FieldInit], Optional[A.Expr]]:
        fields, base = children
        if fields:
            first, rest, _trailing = fields[0]
            fields = _sep_list(first, rest)
        return fields, _opt(base)

    def visit_struct_field(self, node: Node, children: List[Any]) -> A.FieldInit:
        child = children[1]
        if isinstance(child, list):
            name, _colon, _, value = child
            return A.FieldInit(name, value, self._span(node))
        return A.FieldInit(child, None, self._span(node))

    def visit_struct_base(self, node: Node, children: List[Any]) -> A.Expr:
        return children[2]

    def visit_path_expr(self, node: Node, children: List[Any]) -> A.PathExpr:
        return children[0]

    def visit_plain_path_expr(self, node: Node, children: List[Any]) -> A.PathExpr:
        _lead, first, rest = children
        segments = tuple(_sep_list(first, rest))
        return A.PathExpr(segments, _WS_RE.sub("", _strip_trivia(node.text)), self._span(node))

    def visit_qualified_path_expr(self, node: Node, children: List[Any]) -> A.PathExpr:
        _qself, rest = children
        segments = tuple(group[-1] for group in rest)
        return A.PathExpr(segments, compact_text(node.text), self._span(node))

    def visit_expr_segment(self, node: Node, children: List[Any]) -> str:
        return children[0]

    def visit_unit_expr(self, node: Node, _children: List[Any]) -> A.TupleExpr:
        return A.TupleExpr((), self._span(node))

    def visit_paren_expr(self, node: Node, children: List[Any]) -> A.Paren:
        return A.Paren(children[2], self._span(node))

    def visit_tuple_expr(self, node: Node, children: List[Any]) -> A.TupleExpr:
        _lp, _, first, _comma, _, rest, _rp, _ = children
        return A.TupleExpr((first,) + tuple(_opt(rest) or ()), self._span(node))

    def visit_array_expr(self, node: Node, children: List[Any]) -> A.ArrayExpr:
        body = _opt(children[2])
        if isinstance(body, A.ArrayExpr):
            return replace(body, span=self._span(node))
        return A.ArrayExpr(tuple(body or ()), span=self._span(node))

    def visit_array_body(self, node: Node, children: List[Any]) -> Any:
        return children[0]

    def visit_array_repeat(self, node: Node, children: List[Any]) -> A.ArrayExpr:
        elem, _semi, _, length = children
        return A.ArrayExpr((elem,), length)

    def visit_return_expr(self, node: Node, children: List[Any]) -> A.Return:
        return A.Return(_opt(children[1]), self._span(node))

    def visit_break_expr(self, node: Node, children: List[Any]) -> A.Break:
        _break, label, value = children
        return A.Break(_opt(label) or "", _opt(value), self._span(node))

    def visit_continue_expr(self, node: Node, children: List[Any]) -> A.Continue:
        return A.Continue(_opt(children[1]) or "", self._span(node))


for _rule in EXPRESSION_RULES:
    _method = getattr(RustASTBuilder, "visit_" + _rule, None)
    if _method is not None:
        setattr(RustASTBuilder, "visit_" + _rule + NO_STRUCT_SUFFIX, _method)
del _rule, _method


# ═══════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

def _source_line(text: str, line: int) -> str:
    lines = text.splitlines()
    if 1 <= line <= len(lines):
        return lines[line - 1].rstrip()
    return ""


def _deepest_failure(text: str, pos: int) -> Optional[PegParseError]:
    try:
        RUST_GRAMMAR["item"].match(text, pos=pos)
    except PegParseError as exc:
        return exc
    return None


def parse_source(text: str, filename: str = "<source>") -> A.SourceFile:
    """Parse *text* into a :class:`~inkwell.ast.SourceFile`.

    Raises
    ------
    ParseError
        If the text is not accepted by the grammar.
    """
    if sys.getrecursionlimit() < _MIN_RECURSION_LIMIT:
        sys.setrecursionlimit(_MIN_RECURSION_LIMIT)

    try:
        tree = RUST_GRAMMAR.parse(text)
    except IncompleteParseError as exc:
        # The file rule stops before the first bad item; re-match that item
        # alone to locate the farthest point the grammar reached inside it.
        failure = _deepest_failure(text, exc.pos) or exc
        line, col = failure.line(), failure.column()
        snippet = text[failure.pos:failure.pos + 40].split("\n", 1)[0]
        item_line = exc.line()
        raise ParseError(
            f"unexpected input {snippet!r}",
            code=InkwellErrorCodes.INCOMPLETE_PARSE,
            span=SourceSpan(filename, line, col),
            source_line=_source_line(text, line),
            hint=f"the item starting on line {item_line} could not be parsed",
        ) from exc
    except PegParseError as exc:
        line, col = exc.line(), exc.column()
        rule = exc.expr.name if exc.expr is not None and exc.expr.name else "item"
        raise ParseError(
            f"could not parse {rule}",
            span=SourceSpan(filename, line, col),
            source_line=_source_line(text, line),
        ) from exc

    source = RustASTBuilder(text, filename).visit(tree)
    log.debug("parsed %s: %d top-level item(s)", filename, len(source.items))
    return source
