"""
inkwell/classifier.py
=====================

Expression classifier.

Turns one expression, statement or block into the ordered list of
:class:`~inkwell.models.Operation` records it is expected to cost.  Two
kinds of evidence are combined:

* **Text patterns** over the canonical text of a node
  (:func:`inkwell.printer.render`).  Every non-block-like node is
  checked, in this order:

  ============  ==========================================  =============
  check         trigger                                     category
  ============  ==========================================  =============
  read          ``self.`` + a lookup call, or bare          storage_read
                ``self.x`` with no call and no ``=``
  write         ``self.`` + a mutating call, or ``+=``/``-=``  storage_write
  identity      ``msg::sender()``, ``tx::origin()``, ...    evm_context
  value         ``msg::value()``, ...                       evm_context
  block         ``block::number()``, ...                    evm_context
  event         ``evm::log(``, ``.emit(``, ...              event
  call          ``.call(``, ``CallBuilder``, ...            external_call
  crypto        ``keccak256``, ``sha256``, ...              crypto
  ============  ==========================================  =============

* **Structure**, appended after a node's children: compound assignment
  into a storage-looking path, plain assignment into one, and index or
  field access on a ``self``-rooted base.

Recursion follows calls, method calls, binary operators, assignments,
indexing and field access only.  A method-call receiver that is itself a
method call is skipped; the outer chain's text already covers it.

Everything here is pure: each call returns a fresh list, and results are
concatenated in depth-first, left-to-right order.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from inkwell import ast as A
from inkwell.cost_model import (
    CONTROL_FLOW,
    CRYPTO,
    DEFAULT_COST_MODEL,
    EVENT,
    EVM_CONTEXT,
    EXTERNAL_CALL,
    STORAGE_READ,
    STORAGE_WRITE,
    CostModel,
)
from inkwell.entity import extract_entity
from inkwell.models import Operation
from inkwell.printer import render

__all__ = [
    "ExpressionClassifier",
    "classify_expr",
    "classify_stmt",
    "classify_block",
    "text_operations",
    "probe_class",
    "is_probe_candidate",
    "REQUIRE_MACROS",
]


# ═══════════════════════════════════════════════════════════════════════════
# PATTERN TABLES
# ═══════════════════════════════════════════════════════════════════════════

READ_CALLS = (".get(", ".getter()", ".at(", ".value()", ".len()")
WRITE_CALLS = (".insert(", ".set(", ".push(")
EMBEDDED_WRITE_CALLS = (".insert(", ".set(")
EMBEDDED_READ_CALLS = (".get(", ".getter(")
COMPOUND_WRITES = ("+=", "-=")

SENDER_PATTERNS = ("msg::sender()", "msg.sender()", ".msg_sender()")
ORIGIN_PATTERNS = ("tx::origin()", ".tx_origin()")
VALUE_PATTERNS = ("msg::value()", "msg.value()", ".msg_value()")
BLOCK_PATTERNS = (
    "block::number()", "block.number()",
    "block::timestamp()", "block.timestamp()",
    "block::basefee()", "block.basefee()",
    "block::chainid()", "block.chainid()",
    "block::coinbase()", "block.coinbase()",
    "block::gas_limit()", "block.gas_limit()",
    ".block_number()", ".block_timestamp()",
)
EVENT_PATTERNS = ("evm::log(", ".emit(", "log(self.vm()", ".raw_log(")
CALL_PATTERNS = (".call(", "CallBuilder", "Call::new", "RawCall::new", ".static_call(", ".delegate_call(")
CRYPTO_PATTERNS = ("keccak256", "sha256", "ecdsa", "ecrecover")

#: Statement macros costed as a guard check.
REQUIRE_MACROS = frozenset({"require", "assert", "assert_eq", "assert_ne", "ensure"})

_COMPOUND_OPS = frozenset({"+=", "-=", "*=", "/="})
_STORAGE_NAME_HINTS = ("storage", "balances", "map", "vec")

# (operation, category, severity)
OpTag = Tuple[str, str, str]


def _any(text: str, patterns: Sequence[str]) -> bool:
    return any(p in text for p in patterns)


def _storage_read(text: str) -> Optional[str]:
    if "self." not in text:
        return None
    if _any(text, READ_CALLS):
        return "nested get()" if text.count(".get(") >= 2 else "get()"
    if text.startswith("self.") and "(" not in text and "=" not in text:
        return "direct"
    return None


def _storage_write(text: str) -> Optional[str]:
    if "self." not in text:
        return None
    if _any(text, WRITE_CALLS):
        if _any(text, EMBEDDED_WRITE_CALLS) and _any(text, EMBEDDED_READ_CALLS):
            return "write() + embedded_read"
        return "write()"
    if _any(text, COMPOUND_WRITES):
        return "compound_write"
    return None


def text_operations(text: str) -> List[OpTag]:
    """Operation tags matched by the canonical text of one node.

    >>> text_operations("self.balances.get(owner)")
    [('storage_read (get())', 'storage_read', 'high')]
    >>> text_operations("msg::sender()")
    [('msg::sender()', 'evm_context', 'low')]
    """
    tags: List[OpTag] = []
    kind = _storage_read(text)
    if kind is not None:
        tags.append((f"storage_read ({kind})", STORAGE_READ, "high"))
    kind = _storage_write(text)
    if kind is not None:
        tags.append((f"storage_write ({kind})", STORAGE_WRITE, "high"))
    if _any(text, SENDER_PATTERNS):
        tags.append(("msg::sender()", EVM_CONTEXT, "low"))
    if _any(text, ORIGIN_PATTERNS):
        tags.append(("tx::origin()", EVM_CONTEXT, "low"))
    if _any(text, VALUE_PATTERNS):
        tags.append(("msg::value()", EVM_CONTEXT, "low"))
    if _any(text, BLOCK_PATTERNS):
        tags.append(("block_info", EVM_CONTEXT, "low"))
    if _any(text, EVENT_PATTERNS):
        tags.append(("event_emit", EVENT, "medium"))
    if _any(text, CALL_PATTERNS):
        tags.append(("external_call", EXTERNAL_CALL, "high"))
    if _any(text, CRYPTO_PATTERNS):
        tags.append(("crypto_hash", CRYPTO, "medium"))
    return tags


# ═══════════════════════════════════════════════════════════════════════════
# STATEMENT-LEVEL PROBE CLASSES (shared with the instrumentor)
# ═══════════════════════════════════════════════════════════════════════════

_PROBE_CLASSES: Tuple[Tuple[str, Sequence[str]], ...] = (
    ("storage_read", (".get(", ".at(")),
    ("storage_write", (".insert(", ".set(")),
    ("event_emit", EVENT_PATTERNS),
    ("msg_sender", SENDER_PATTERNS + ORIGIN_PATTERNS),
    ("msg_value", VALUE_PATTERNS),
    ("block_info", BLOCK_PATTERNS),
    ("external_call", CALL_PATTERNS),
    ("crypto_hash", CRYPTO_PATTERNS),
)

_EXPENSIVE = tuple(p for _, patterns in _PROBE_CLASSES[2:] for p in patterns)


def is_probe_candidate(text: str) -> bool:
    """Storage access or an expensive host/crypto call."""
    storage = "self." in text and (
        _any(text, (".get(", ".insert(", ".set(")) or "(" not in text
    )
    return storage or _any(text, _EXPENSIVE)


def probe_class(text: str) -> Optional[str]:
    """First matching probe class, in precedence order, or None."""
    for name, patterns in _PROBE_CLASSES:
        if _any(text, patterns):
            return name
    return None


# ═══════════════════════════════════════════════════════════════════════════
# STRUCTURAL PREDICATES
# ═══════════════════════════════════════════════════════════════════════════

def looks_like_storage_write(expr: A.Expr) -> bool:
    if isinstance(expr, A.PathExpr):
        return any(hint in seg for seg in expr.segments for hint in _STORAGE_NAME_HINTS)
    if isinstance(expr, (A.Field, A.Index)):
        return looks_like_storage_write(expr.base)
    return False


def looks_like_storage_access(expr: A.Expr) -> bool:
    if isinstance(expr, A.PathExpr):
        return expr.is_self_rooted
    if isinstance(expr, A.Field):
        return looks_like_storage_access(expr.base) or expr.member == "storage"
    if isinstance(expr, A.Index):
        return looks_like_storage_access(expr.base)
    return False


# ═══════════════════════════════════════════════════════════════════════════
# CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════════

class ExpressionClassifier:
    """Classifies AST nodes into operations costed by *cost_model*."""

    def __init__(self, cost_model: CostModel = DEFAULT_COST_MODEL) -> None:
        self.cost_model = cost_model

    def _op(self, node, code: str, operation: str, category: str, severity: str) -> Operation:
        span = getattr(node, "span", A.NO_SPAN)
        return Operation(
            line=span.line,
            column=span.col,
            code=code,
            operation=operation,
            entity=extract_entity(code),
            ink=self.cost_model.cost(operation, category),
            category=category,
            severity=severity,
        )

    # --- blocks and statements -------------------------------------------

    def classify_block(self, block: Optional[A.Block]) -> List[Operation]:
        if block is None:
            return []
        ops: List[Operation] = []
        for stmt in block.stmts:
            ops += self.classify_stmt(stmt)
        if block.tail is not None:
            ops += self.classify_expr(block.tail)
        return ops

    def classify_stmt(self, stmt: A.Stmt) -> List[Operation]:
        if isinstance(stmt, A.LetStmt):
            ops = self.classify_expr(stmt.init) if stmt.init is not None else []
            return ops + self.classify_block(stmt.orelse)
        if isinstance(stmt, A.ExprStmt):
            if isinstance(stmt.expr, A.MacroCall):
                return self._statement_macro(stmt.expr)
            return self.classify_expr(stmt.expr)
        return []

    def _statement_macro(self, mac: A.MacroCall) -> List[Operation]:
        if mac.name not in REQUIRE_MACROS:
            return []
        return [self._op(mac, render(mac), "require_check", CONTROL_FLOW, "low")]

    # --- expressions -----------------------------------------------------

    def classify_expr(self, expr: A.Expr) -> List[Operation]:
        if isinstance(expr, A.BLOCK_LIKE):
            return self._block_like(expr)
        if isinstance(expr, A.Let):
            return self.classify_expr(expr.expr)

        text = render(expr)
        ops = [self._op(expr, text, *tag) for tag in text_operations(text)]

        if isinstance(expr, A.MethodCall):
            if not isinstance(expr.receiver, A.MethodCall):
                ops += self.classify_expr(expr.receiver)
            for arg in expr.args:
                ops += self.classify_expr(arg)
        elif isinstance(expr, A.Call):
            ops += self.classify_expr(expr.func)
            for arg in expr.args:
                ops += self.classify_expr(arg)
        elif isinstance(expr, A.Binary):
            ops += self.classify_expr(expr.left)
            ops += self.classify_expr(expr.right)
            if expr.op in _COMPOUND_OPS and looks_like_storage_write(expr.left):
                ops.append(self._op(expr, text, "storage_compound_update", STORAGE_WRITE, "high"))
        elif isinstance(expr, A.Assign):
            ops += self.classify_expr(expr.left)
            ops += self.classify_expr(expr.right)
            if looks_like_storage_write(expr.left):
                ops.append(self._op(expr, text, "storage_assign", STORAGE_WRITE, "high"))
        elif isinstance(expr, A.Index):
            ops += self.classify_expr(expr.base)
            ops += self.classify_expr(expr.index)
            if looks_like_storage_access(expr.base):
                ops.append(self._op(expr, text, "storage_index_access", STORAGE_READ, "high"))
        elif isinstance(expr, A.Field):
            ops += self.classify_expr(expr.base)
            if looks_like_storage_access(expr.base):
                ops.append(self._op(expr, text, "storage_field_access", STORAGE_READ, "high"))
        return ops

    def _block_like(self, expr) -> List[Operation]:
        if isinstance(expr, A.BlockExpr):
            return self.classify_block(expr.block)
        if isinstance(expr, A.If):
            ops = self.classify_expr(expr.cond) + self.classify_block(expr.then)
            if expr.orelse is not None:
                ops += self.classify_expr(expr.orelse)
            return ops
        if isinstance(expr, A.Match):
            ops = self.classify_expr(expr.scrutinee)
            for arm in expr.arms:
                if arm.guard is not None:
                    ops += self.classify_expr(arm.guard)
                ops += self.classify_expr(arm.body)
            return ops
        if isinstance(expr, A.Loop):
            return self.classify_block(expr.body)
        if isinstance(expr, A.While):
            return self.classify_expr(expr.cond) + self.classify_block(expr.body)
        if isinstance(expr, A.ForLoop):
            return self.classify_expr(expr.iter) + self.classify_block(expr.body)
        raise TypeError(f"not a block-like expression: {type(expr).__name__}")


_DEFAULT = ExpressionClassifier()


def classify_expr(expr: A.Expr, cost_model: Optional[CostModel] = None) -> List[Operation]:
    classifier = ExpressionClassifier(cost_model) if cost_model is not None else _DEFAULT
    return classifier.classify_expr(expr)


def classify_stmt(stmt: A.Stmt, cost_model: Optional[CostModel] = None) -> List[Operation]:
    classifier = ExpressionClassifier(cost_model) if cost_model is not None else _DEFAULT
    return classifier.classify_stmt(stmt)


def classify_block(block: A.Block, cost_model: Optional[CostModel] = None) -> List[Operation]:
    classifier = ExpressionClassifier(cost_model) if cost_model is not None else _DEFAULT
    return classifier.classify_block(block)
