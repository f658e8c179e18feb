"""inkwell/ast.py – Abstract syntax for contract source files.

The parser produces a tree of frozen dataclasses that the analyzer and the
instrumentor consume.  Only the parts of the language that carry cost
information are modelled structurally: items, statements and the full
expression language.  Types, patterns, generics and attributes are kept
as canonical text because nothing downstream looks inside them.

Design invariants
-----------------
* Every node is a frozen dataclass (immutable after construction).
* Child sequences are tuples, never lists.
* Every node records its ``Span`` (byte offsets plus 1-based line and
  column of its first character) so operations can be anchored to the
  line they came from and statements can be spliced by offset.
* Expressions form a tagged union (``Expr``); compound assignment is a
  ``Binary`` whose ``op`` ends in ``=``, plain assignment is ``Assign``.

Module layout
-------------
§1  Spans & text fragments
§2  Expressions
§3  Statements & blocks
§4  Items
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union

# ════════════════════════════════════════════════════════════════════════
# §1  Spans & text fragments
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open byte range ``[start, end)`` in the source text."""

    start: int = 0
    end: int = 0
    line: int = 0
    col: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.col}"


#: Sentinel for synthesised nodes.
NO_SPAN = Span()


@dataclass(frozen=True, slots=True)
class Attribute:
    """An outer or inner attribute such as ``#[public]``.

    ``path`` is the attribute path (``public``, ``cfg``,
    ``stylus_sdk::prelude::public``); ``text`` is the full canonical text.
    """

    path: str
    text: str
    inner: bool = False
    span: Span = field(default=NO_SPAN, repr=False)

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True, slots=True)
class TypeRef:
    """A type, kept as canonical text."""

    text: str
    span: Span = field(default=NO_SPAN, repr=False)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class Pattern:
    """A pattern, kept as canonical text."""

    text: str
    span: Span = field(default=NO_SPAN, repr=False)

    def __str__(self) -> str:
        return self.text


# ════════════════════════════════════════════════════════════════════════
# §2  Expressions
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Lit:
    text: str
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class PathExpr:
    """``a::b::<T>::c``; ``segments`` holds the bare identifiers."""

    segments: Tuple[str, ...]
    text: str
    span: Span = field(default=NO_SPAN, repr=False)

    @property
    def is_self_rooted(self) -> bool:
        return bool(self.segments) and self.segments[0] == "self"


@dataclass(frozen=True, slots=True)
class MethodCall:
    receiver: "Expr"
    method: str
    args: Tuple["Expr", ...]
    turbofish: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Call:
    func: "Expr"
    args: Tuple["Expr", ...]
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Field:
    base: "Expr"
    member: str
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Index:
    base: "Expr"
    index: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Binary:
    """Binary operator, including compound assignment (``+=``, ``<<=``...)."""

    op: str
    left: "Expr"
    right: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Assign:
    left: "Expr"
    right: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Unary:
    """Prefix operator: ``-``, ``!``, ``*``, ``&``, ``&mut``, ``&&``."""

    op: str
    operand: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Cast:
    expr: "Expr"
    ty: TypeRef
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Try:
    expr: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Await:
    expr: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Paren:
    inner: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class TupleExpr:
    elems: Tuple["Expr", ...]
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ArrayExpr:
    """``[a, b, c]``, or ``[elem; length]`` when ``length`` is set."""

    elems: Tuple["Expr", ...]
    length: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class FieldInit:
    """``name: value`` inside a struct literal; ``value`` is None for shorthand."""

    name: str
    value: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class StructLit:
    path: str
    fields: Tuple[FieldInit, ...]
    base: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class MacroCall:
    """``path!(tokens)``; the token tree is kept as canonical text."""

    path: str
    delimiter: str
    tokens: str
    span: Span = field(default=NO_SPAN, repr=False)

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True, slots=True)
class Range:
    start: Optional["Expr"]
    end: Optional["Expr"]
    inclusive: bool = False
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Closure:
    params: str
    body: "Expr"
    is_move: bool = False
    ret: Optional[TypeRef] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Let:
    """``let PAT = EXPR`` in an ``if``/``while`` condition."""

    pattern: Pattern
    expr: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class BlockExpr:
    """Plain, ``unsafe`` or ``async`` block used as an expression."""

    block: "Block"
    kind: str = ""
    label: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class If:
    cond: "Expr"
    then: "Block"
    orelse: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class MatchArm:
    pattern: Pattern
    guard: Optional["Expr"]
    body: "Expr"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Match:
    scrutinee: "Expr"
    arms: Tuple[MatchArm, ...]
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Loop:
    body: "Block"
    label: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class While:
    cond: "Expr"
    body: "Block"
    label: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ForLoop:
    pattern: Pattern
    iter: "Expr"
    body: "Block"
    label: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Return:
    value: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Break:
    label: str = ""
    value: Optional["Expr"] = None
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class Continue:
    label: str = ""
    span: Span = field(default=NO_SPAN, repr=False)


Expr = Union[
    Lit, PathExpr, MethodCall, Call, Field, Index, Binary, Assign, Unary,
    Cast, Try, Await, Paren, TupleExpr, ArrayExpr, StructLit, MacroCall,
    Range, Closure, Let, BlockExpr, If, Match, Loop, While, ForLoop,
    Return, Break, Continue,
]

#: Expressions that own nested statement blocks.
BLOCK_LIKE = (BlockExpr, If, Match, Loop, While, ForLoop)


# ════════════════════════════════════════════════════════════════════════
# §3  Statements & blocks
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LetStmt:
    pattern: Pattern
    ty: Optional[TypeRef] = None
    init: Optional[Expr] = None
    orelse: Optional["Block"] = None
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ExprStmt:
    """An expression statement; ``semi`` is False for block-like statements
    written without a trailing semicolon."""

    expr: Expr
    semi: bool = True
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ItemStmt:
    item: "Item"
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class EmptyStmt:
    span: Span = field(default=NO_SPAN, repr=False)


Stmt = Union[LetStmt, ExprStmt, ItemStmt, EmptyStmt]


@dataclass(frozen=True, slots=True)
class Block:
    """``{ stmts; tail }``."""

    stmts: Tuple[Stmt, ...]
    tail: Optional[Expr] = None
    span: Span = field(default=NO_SPAN, repr=False)


# ════════════════════════════════════════════════════════════════════════
# §4  Items
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Param:
    """A function parameter; ``pattern`` is ``self`` for receivers."""

    pattern: str
    ty: Optional[TypeRef] = None
    is_self: bool = False


@dataclass(frozen=True, slots=True)
class FnItem:
    name: str
    params: Tuple[Param, ...]
    ret: Optional[TypeRef] = None
    body: Optional[Block] = None
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    signature: str = ""
    span: Span = field(default=NO_SPAN, repr=False)

    @property
    def has_self(self) -> bool:
        return any(p.is_self for p in self.params)

    @property
    def is_pub(self) -> bool:
        return self.vis == "pub"


@dataclass(frozen=True, slots=True)
class ImplItem:
    self_ty: TypeRef
    items: Tuple["Item", ...]
    trait: Optional[TypeRef] = None
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)

    def methods(self) -> Iterator[FnItem]:
        for item in self.items:
            if isinstance(item, FnItem):
                yield item


@dataclass(frozen=True, slots=True)
class StructItem:
    name: str
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class EnumItem:
    name: str
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class TraitItem:
    name: str
    items: Tuple["Item", ...] = ()
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ConstItem:
    """``const`` or ``static`` item."""

    name: str
    ty: TypeRef
    value: Optional[Expr] = None
    is_static: bool = False
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class ModItem:
    name: str
    items: Optional[Tuple["Item", ...]] = None
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class MacroItem:
    """Item-position macro invocation (``sol_storage! { .. }``)."""

    path: str
    tokens: str
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


@dataclass(frozen=True, slots=True)
class OtherItem:
    """``use``, ``type``, ``extern crate`` and ``extern`` blocks."""

    kind: str
    text: str
    vis: str = ""
    attrs: Tuple[Attribute, ...] = ()
    span: Span = field(default=NO_SPAN, repr=False)


Item = Union[
    FnItem, ImplItem, StructItem, EnumItem, TraitItem, ConstItem, ModItem,
    MacroItem, OtherItem,
]


@dataclass(frozen=True, slots=True)
class SourceFile:
    items: Tuple[Item, ...]
    attrs: Tuple[Attribute, ...] = ()
    text: str = field(default="", repr=False)
    filename: str = "<source>"

    def walk_items(self) -> Iterator[Item]:
        """Yield every item, descending into inline modules, in source order."""
        stack = list(reversed(self.items))
        while stack:
            item = stack.pop()
            yield item
            if isinstance(item, ModItem) and item.items:
                stack.extend(reversed(item.items))

    def impls(self) -> Iterator[ImplItem]:
        for item in self.walk_items():
            if isinstance(item, ImplItem):
                yield item
