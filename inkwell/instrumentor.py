"""
inkwell/instrumentor.py
=======================

Probe injection.

:class:`Instrumentor` rewrites the entry-point bodies of a contract so
that every statement the classifier considers costly is bracketed by
runtime probes, and appends a self-contained ``__ink_profiling`` module
that records the measured ink deltas and re-applies the dry-nib checks of
:mod:`inkwell.runtime` to them.

Every inserted line is behind ``#[cfg(feature = "ink-profiling")]``.
With the feature off the rewritten file compiles to the original program:
probed statements that must be captured keep their original text under
``#[cfg(not(feature = "ink-profiling"))]``, all other probed statements
are left untouched between the probe lines.

Rewriting never re-prints the tree.  Each probed statement becomes one
:class:`Edit` (byte range plus replacement) and the edits are spliced into
the original text back to front, so every byte outside a probed statement
is preserved.

Probed statement, storage-read class::

    #[cfg(feature = "ink-profiling")]
    let __ink_before_0 = __ink_profiling::probe_before(0);
    #[cfg(feature = "ink-profiling")]
    let __ink_result_0: U256 = self.balances.get(owner);
    #[cfg(feature = "ink-profiling")]
    __ink_profiling::probe_after_with_size(0, __ink_before_0, ::core::mem::size_of_val(&__ink_result_0), Some("storage_read"));
    #[cfg(feature = "ink-profiling")]
    let balance: U256 = __ink_result_0;
    #[cfg(not(feature = "ink-profiling"))]
    let balance: U256 = self.balances.get(owner);
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from inkwell import ast as A
from inkwell.classifier import is_probe_candidate, probe_class
from inkwell.codegen import CodeEmitter, rust_str
from inkwell.entry_points import discover_entry_points
from inkwell.models import InstrumentedOperation
from inkwell.parser import parse_source
from inkwell.printer import render
from inkwell.runtime import DEFAULT_THRESHOLDS, RuntimeThresholds

__all__ = ["FEATURE", "MODULE_NAME", "CFG_ON", "CFG_OFF", "Edit", "Instrumentor", "instrument_source",
           "generate_runtime_module", "apply_edits"]

log = logging.getLogger(__name__)

FEATURE = "ink-profiling"
MODULE_NAME = "__ink_profiling"

CFG_ON = f'#[cfg(feature = "{FEATURE}")]'
CFG_OFF = f'#[cfg(not(feature = "{FEATURE}"))]'


@dataclass(frozen=True, slots=True)
class Edit:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str


def apply_edits(text: str, edits: List[Edit]) -> str:
    """Splice non-overlapping edits into *text*."""
    ordered = sorted(edits, key=lambda e: e.start, reverse=True)
    limit = len(text)
    for edit in ordered:
        if edit.end > limit:
            raise ValueError(f"overlapping edit at offset {edit.start}")
        text = text[:edit.start] + edit.replacement + text[edit.end:]
        limit = edit.start
    return text


def _module_depths(items, depth: int = 0, out: Optional[Dict[int, int]] = None) -> Dict[int, int]:
    """``id(impl) -> number of inline modules enclosing it``."""
    out = {} if out is None else out
    for item in items:
        if isinstance(item, A.ImplItem):
            out[id(item)] = depth
        elif isinstance(item, A.ModItem) and item.items:
            _module_depths(item.items, depth + 1, out)
    return out


# ═══════════════════════════════════════════════════════════════════════════
# INSTRUMENTOR
# ═══════════════════════════════════════════════════════════════════════════

class Instrumentor:
    """
    Inserts probes into the entry points of a contract.

    Probe ids start at 0 for every :meth:`instrument` call and increase by
    one per probed statement; :attr:`operations` lists the probes of the
    most recent call in id order.
    """

    def __init__(self, thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS) -> None:
        self.thresholds = thresholds
        self._next_id = 0
        self._operations: List[InstrumentedOperation] = []
        self._text = ""

    @property
    def operations(self) -> List[InstrumentedOperation]:
        return list(self._operations)

    def instrument(self, source: str, filename: str = "<source>") -> str:
        """Return the instrumented source.

        Raises :class:`~inkwell.errors.ParseError` if *source* does not
        parse; once it does, the rewrite cannot fail.
        """
        tree = parse_source(source, filename)
        self._next_id = 0
        self._operations = []
        self._text = source

        depths = _module_depths(tree.items)
        edits: List[Edit] = []
        for ep in discover_entry_points(tree).entry_points:
            module = "super::" * depths.get(id(ep.impl), 0) + MODULE_NAME
            edits += self._block(ep.fn.body, ep.name, module)

        out = apply_edits(source, edits)
        if not out.endswith("\n"):
            out += "\n"
        out += "\n" + generate_runtime_module(self.thresholds)
        log.info("inserted %d probe(s)", len(self._operations))
        return out

    # --- traversal -------------------------------------------------------

    def _block(self, block: Optional[A.Block], function: str, module: str) -> List[Edit]:
        if block is None:
            return []
        edits: List[Edit] = []
        for stmt in block.stmts:
            edit = self._probe(stmt, function, module)
            if edit is not None:
                edits.append(edit)
                continue
            for nested in self._nested_blocks(stmt):
                edits += self._block(nested, function, module)
        if isinstance(block.tail, A.BLOCK_LIKE):
            for nested in _blocks_of(block.tail):
                edits += self._block(nested, function, module)
        return edits

    def _nested_blocks(self, stmt: A.Stmt) -> List[A.Block]:
        expr = None
        if isinstance(stmt, A.ExprStmt):
            expr = stmt.expr
        elif isinstance(stmt, A.LetStmt):
            expr = stmt.init
        if not isinstance(expr, A.BLOCK_LIKE):
            return []
        return _blocks_of(expr)

    def _probe(self, stmt: A.Stmt, function: str, module: str) -> Optional[Edit]:
        if isinstance(stmt, A.LetStmt):
            target = stmt.init
        elif isinstance(stmt, A.ExprStmt) and stmt.semi and not isinstance(stmt.expr, A.BLOCK_LIKE):
            target = stmt.expr
        else:
            return None
        if target is None:
            return None
        text = render(target)
        kind = probe_class(text)
        if kind is None or not is_probe_candidate(text):
            return None

        probe_id = self._next_id
        self._next_id += 1
        self._operations.append(InstrumentedOperation(
            probe_id=probe_id, operation_type=kind, line=stmt.span.line, function=function,
        ))
        log.debug("probe %d (%s) at line %d in %s", probe_id, kind, stmt.span.line, function)

        original = self._text[stmt.span.start:stmt.span.end]
        if kind == "storage_read":
            lines = self._captured(stmt, target, probe_id, kind, module, original)
        else:
            lines = [
                CFG_ON,
                f"let __ink_before_{probe_id} = {module}::probe_before({probe_id});",
                original,
                CFG_ON,
                f"{module}::probe_after({probe_id}, __ink_before_{probe_id}, Some({rust_str(kind)}));",
            ]
        return Edit(stmt.span.start, stmt.span.end, self._join(lines, stmt.span.start))

    def _captured(self, stmt: A.Stmt, target: A.Expr, probe_id: int, kind: str,
                  module: str, original: str) -> List[str]:
        before = f"__ink_before_{probe_id}"
        result = f"__ink_result_{probe_id}"
        init = self._text[target.span.start:target.span.end]
        annot = ""
        if isinstance(stmt, A.LetStmt) and stmt.ty is not None:
            annot = f": {stmt.ty.text}"
        lines = [
            CFG_ON,
            f"let {before} = {module}::probe_before({probe_id});",
            CFG_ON,
            f"let {result}{annot} = {init};",
            CFG_ON,
            f"{module}::probe_after_with_size({probe_id}, {before}, "
            f"::core::mem::size_of_val(&{result}), Some({rust_str(kind)}));",
        ]
        if isinstance(stmt, A.LetStmt):
            rebind = f"let {stmt.pattern.text}{annot} = {result}"
            if stmt.orelse is not None:
                rebind += " else " + self._text[stmt.orelse.span.start:stmt.orelse.span.end]
            lines += [CFG_ON, rebind + ";"]
        lines += [CFG_OFF, original]
        return lines

    def _join(self, lines: List[str], offset: int) -> str:
        line_start = self._text.rfind("\n", 0, offset) + 1
        indent = self._text[line_start:offset]
        if indent.strip():
            indent = ""
        return ("\n" + indent).join(lines)


def _blocks_of(expr) -> List[A.Block]:
    """Statement blocks owned directly by a block-like expression."""
    if isinstance(expr, A.BlockExpr):
        return [expr.block]
    if isinstance(expr, A.If):
        blocks = [expr.then]
        if expr.orelse is not None:
            blocks += _blocks_of(expr.orelse)
        return blocks
    if isinstance(expr, A.Match):
        return [arm.body.block for arm in expr.arms if isinstance(arm.body, A.BlockExpr)]
    if isinstance(expr, (A.Loop, A.While, A.ForLoop)):
        return [expr.body]
    return []


def instrument_source(source: str, filename: str = "<source>",
                      thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS
                      ) -> Tuple[str, List[InstrumentedOperation]]:
    """Instrument *source*; returns the new text and its probe list."""
    instrumentor = Instrumentor(thresholds)
    text = instrumentor.instrument(source, filename)
    return text, instrumentor.operations


# ═══════════════════════════════════════════════════════════════════════════
# GENERATED RUNTIME MODULE
# ═══════════════════════════════════════════════════════════════════════════

def generate_runtime_module(thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS) -> str:
    """Rust source of the ``__ink_profiling`` module.

    The tracker mirrors :class:`inkwell.runtime.InkTracker`: one ``Mutex``
    around the probe map, bug list and baseline, checks run before the
    lock is taken, and ``dump_report`` writes the format read by
    :func:`inkwell.runtime.parse_ink_report`.
    """
    t = thresholds
    out = CodeEmitter()
    out.emit(CFG_ON)
    out.emit("#[allow(dead_code)]")
    with out.block(f"pub mod {MODULE_NAME}"):
        out.emit_lines([
            "use std::collections::BTreeMap;",
            "use std::string::String;",
            "use std::sync::{Mutex, MutexGuard};",
            "use std::vec::Vec;",
        ])
        out.emit_blank()
        for name, value in (
            ("STORAGE_READ_BASE", t.storage_read),
            ("STORAGE_WRITE_BASE", t.storage_write),
            ("MSG_SENDER_BASE", t.msg_sender),
            ("DEFAULT_BASE", t.default),
            ("TOLERANCE", t.tolerance),
            ("PER_BYTE", t.per_byte),
            ("SIZED_MIN_TOLERANCE", t.sized_min_tolerance),
            ("SIZED_TOLERANCE_DIVISOR", t.sized_tolerance_divisor),
        ):
            out.emit(f"const {name}: u64 = {value};")
        out.emit_blank()

        out.emit("#[derive(Clone, Debug)]")
        with out.block("pub struct ProbeData"):
            out.emit_lines([
                "pub probe_id: u32,",
                "pub ink_before: u64,",
                "pub ink_after: u64,",
                "pub count: u64,",
                "pub return_data_size: Option<usize>,",
                "pub operation_type: Option<String>,",
            ])
        out.emit_blank()
        out.emit("#[derive(Clone, Debug)]")
        with out.block("pub struct DryNibBug"):
            out.emit_lines([
                "pub probe_id: u32,",
                "pub operation: String,",
                "pub ink_charged: u64,",
                "pub actual_return_size: usize,",
                "pub expected_overhead: u64,",
                "pub overcharge_amount: u64,",
            ])
        out.emit_blank()
        with out.block("struct TrackerState"):
            out.emit_lines([
                "probes: BTreeMap<u32, ProbeData>,",
                "bugs: Vec<DryNibBug>,",
                "start_ink: u64,",
            ])
        out.emit_blank()
        out.emit_doc("Measurement context shared by every probe of one process.")
        with out.block("pub struct InkTracker"):
            out.emit("state: Mutex<Option<TrackerState>>,")
        out.emit_blank()
        out.emit("pub static TRACKER: InkTracker = InkTracker::new();")
        out.emit_blank()
        _emit_tracker_impl(out)
        out.emit_blank()
        _emit_checks(out)
        out.emit_blank()
        _emit_counter(out)
        out.emit_blank()
        _emit_probe_helpers(out)
    return out.get_code()


def _emit_tracker_impl(out: CodeEmitter) -> None:
    with out.block("impl InkTracker"):
        with out.block("pub const fn new() -> Self"):
            out.emit("InkTracker { state: Mutex::new(None) }")
        out.emit_blank()
        with out.block("fn lock(&self) -> MutexGuard<'_, Option<TrackerState>>"):
            with out.block("match self.state.lock()"):
                out.emit("Ok(guard) => guard,")
                out.emit("Err(poisoned) => poisoned.into_inner(),")
        out.emit_blank()
        out.emit_doc("Start a new session, discarding earlier measurements.")
        with out.block("pub fn init(&self)"):
            out.emit("let start_ink = read_ink_counter();")
            out.emit("*self.lock() = Some(TrackerState { probes: BTreeMap::new(), bugs: Vec::new(), start_ink });")
        out.emit_blank()
        with out.block("pub fn record_before(&self, _probe_id: u32) -> u64"):
            out.emit("read_ink_counter()")
        out.emit_blank()
        with out.block("pub fn record_after(&self, probe_id: u32, ink_before: u64, operation_type: Option<&str>)"):
            out.emit("let ink_after = read_ink_counter();")
            out.emit("self.record(probe_id, ink_before, ink_after, None, operation_type);")
        out.emit_blank()
        with out.block("pub fn record_after_with_size(&self, probe_id: u32, ink_before: u64, "
                       "return_size: usize, operation_type: Option<&str>)"):
            out.emit("let ink_after = read_ink_counter();")
            out.emit("self.record(probe_id, ink_before, ink_after, Some(return_size), operation_type);")
        out.emit_blank()
        with out.block("fn record(&self, probe_id: u32, ink_before: u64, ink_after: u64, "
                       "return_size: Option<usize>, operation_type: Option<&str>)"):
            out.emit("let consumed = ink_before.saturating_sub(ink_after);")
            with out.block("let bug = match (operation_type, return_size)", closer="};"):
                out.emit("(Some(op), Some(size)) => check_dry_nib_with_size(probe_id, op, consumed, size),")
                out.emit("(Some(op), None) if should_check(op) => check_dry_nib(probe_id, op, consumed),")
                out.emit("_ => None,")
            out.emit("let mut guard = self.lock();")
            with out.block("if let Some(state) = guard.as_mut()"):
                with out.block("let data = state.probes.entry(probe_id).or_insert_with(|| ProbeData",
                               closer="});"):
                    out.emit_lines([
                        "probe_id,",
                        "ink_before,",
                        "ink_after,",
                        "count: 0,",
                        "return_data_size: None,",
                        "operation_type: operation_type.map(String::from),",
                    ])
                out.emit("data.ink_before = ink_before;")
                out.emit("data.ink_after = ink_after;")
                out.emit("data.count += 1;")
                with out.block("if return_size.is_some()"):
                    out.emit("data.return_data_size = return_size;")
                with out.block("if let Some(bug) = bug"):
                    out.emit("state.bugs.push(bug);")
        out.emit_blank()
        with out.block("pub fn dump_report(&self) -> String"):
            out.emit("let now = read_ink_counter();")
            out.emit("let guard = self.lock();")
            with out.block("let state = match guard.as_ref()", closer="};"):
                out.emit("Some(state) => state,")
                out.emit('None => return String::from("{}"),')
            out.emit("let mut report = String::new();")
            out.emit('report.push_str(&format!("Total ink used: ~{} (start → current)\\n\\n", '
                     "state.start_ink.saturating_sub(now)));")
            out.emit('report.push_str("Probe measurements:\\n");')
            with out.block("for (id, data) in state.probes.iter()"):
                out.emit("report.push_str(&format!(")
                out.indent()
                out.emit('"Probe #{} ({}): {} ink consumed (before={}, after={})",')
                out.emit("id,")
                out.emit('data.operation_type.as_deref().unwrap_or("?"),')
                out.emit("data.ink_before.saturating_sub(data.ink_after),")
                out.emit("data.ink_before,")
                out.emit("data.ink_after,")
                out.dedent()
                out.emit("));")
                with out.block("if let Some(size) = data.return_data_size"):
                    out.emit('report.push_str(&format!(" [return size={} bytes]", size));')
                out.emit("report.push('\\n');")
            with out.block("if !state.bugs.is_empty()"):
                out.emit('report.push_str("\\n=== DRY NIB OVERCHARGE BUGS DETECTED ===\\n");')
                out.emit('report.push_str("These are cases where real ink used >> expected fair cost\\n");')
                out.emit('report.push_str("(likely buffer padding / allocation waste on small returns)\\n\\n");')
                with out.block("for bug in state.bugs.iter()"):
                    with out.block("let pct = if bug.expected_overhead > 0", closer="} else { 0.0 };"):
                        out.emit("bug.overcharge_amount as f64 / bug.expected_overhead as f64 * 100.0")
                    out.emit("report.push_str(&format!(")
                    out.indent()
                    out.emit('"\\u{1F41B} Probe {}: {}\\n   Charged:   {} ink\\n   Expected:  {} ink\\n'
                             '   Overcharge: {} ink ({:.1}%)\\n   Return size: {} bytes\\n\\n",')
                    out.emit("bug.probe_id, bug.operation, bug.ink_charged, bug.expected_overhead,")
                    out.emit("bug.overcharge_amount, pct, bug.actual_return_size,")
                    out.dedent()
                    out.emit("));")
            out.emit("report")


def _emit_checks(out: CodeEmitter) -> None:
    with out.block("fn should_check(operation: &str) -> bool"):
        out.emit('operation.contains("storage_read") || operation.contains("storage_write")')
        out.emit('    || operation.contains("msg_") || operation.contains("block_")')
    out.emit_blank()
    with out.block("fn check_dry_nib(probe_id: u32, operation: &str, ink_charged: u64) -> Option<DryNibBug>"):
        out.emit_lines([
            'let expected = if operation.contains("storage_read") { STORAGE_READ_BASE }',
            '    else if operation.contains("storage_write") { STORAGE_WRITE_BASE }',
            '    else if operation.contains("msg_sender") { MSG_SENDER_BASE }',
            "    else { DEFAULT_BASE };",
        ])
        with out.block("if ink_charged <= expected + TOLERANCE"):
            out.emit("return None;")
        out.emit("Some(DryNibBug {")
        out.indent()
        out.emit_lines([
            "probe_id,",
            "operation: String::from(operation),",
            "ink_charged,",
            "actual_return_size: 0,",
            "expected_overhead: expected,",
            "overcharge_amount: ink_charged - expected,",
        ])
        out.dedent()
        out.emit("})")
    out.emit_blank()
    with out.block("fn check_dry_nib_with_size(probe_id: u32, operation: &str, ink_charged: u64, "
                   "actual_size: usize) -> Option<DryNibBug>"):
        out.emit('let base = if operation.contains("storage_read") { STORAGE_READ_BASE } '
                 "else { STORAGE_WRITE_BASE };")
        out.emit("let expected = base + actual_size as u64 * PER_BYTE;")
        out.emit("let tolerance = SIZED_MIN_TOLERANCE.max(expected / SIZED_TOLERANCE_DIVISOR);")
        with out.block("if ink_charged <= expected + tolerance"):
            out.emit("return None;")
        out.emit("Some(DryNibBug {")
        out.indent()
        out.emit_lines([
            "probe_id,",
            "operation: String::from(operation),",
            "ink_charged,",
            "actual_return_size: actual_size,",
            "expected_overhead: expected,",
            "overcharge_amount: ink_charged - expected,",
        ])
        out.dedent()
        out.emit("})")


def _emit_counter(out: CodeEmitter) -> None:
    out.emit('#[cfg(target_arch = "wasm32")]')
    with out.block("fn read_ink_counter() -> u64"):
        out.emit("unsafe { stylus_sdk::hostio::ink_left() }")
    out.emit_blank()
    out.emit_comment("Host builds: a counter that only goes down, like ink_left().")
    out.emit('#[cfg(not(target_arch = "wasm32"))]')
    with out.block("fn read_ink_counter() -> u64"):
        out.emit("use std::time::{SystemTime, UNIX_EPOCH};")
        out.emit("let nanos = SystemTime::now().duration_since(UNIX_EPOCH).map(|d| d.as_nanos() as u64).unwrap_or(0);")
        out.emit("u64::MAX - nanos")


def _emit_probe_helpers(out: CodeEmitter) -> None:
    with out.block("pub fn init()"):
        out.emit("TRACKER.init()")
    out.emit_blank()
    with out.block("pub fn dump_report() -> String"):
        out.emit("TRACKER.dump_report()")
    out.emit_blank()
    out.emit("#[inline(always)]")
    with out.block("pub fn probe_before(id: u32) -> u64"):
        out.emit("TRACKER.record_before(id)")
    out.emit_blank()
    out.emit("#[inline(always)]")
    with out.block("pub fn probe_after(id: u32, before: u64, operation_type: Option<&str>)"):
        out.emit("TRACKER.record_after(id, before, operation_type)")
    out.emit_blank()
    out.emit("#[inline(always)]")
    with out.block("pub fn probe_after_with_size(id: u32, before: u64, size: usize, operation_type: Option<&str>)"):
        out.emit("TRACKER.record_after_with_size(id, before, size, operation_type)")
