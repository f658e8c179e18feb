"""
inkwell/entry_points.py
=======================

Entry-point discovery, shared by the analyzer and the instrumentor.

A method of an impl block is an entry point when its name is not on the
lifecycle blocklist and any of the following holds:

(i)   an ``#[external]`` / ``#[public]`` marker sits on the method or on
      its impl block;
(ii)  it looks externally callable: ``pub``, takes a ``self`` receiver and
      its name does not start with an underscore;
(iii) the file shows signs of a macro-generated contract (two or more
      selector-like constants, a dispatcher function, or override
      assertion markers) and the method takes a ``self`` receiver and
      does not start with an underscore.

The file-wide signals of (iii) are collected once, before any impl block
is inspected, so the outcome does not depend on item order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from inkwell import ast as A
from inkwell.printer import render

__all__ = [
    "ENTRY_MARKERS",
    "LIFECYCLE_NAMES",
    "DISPATCHER_NAMES",
    "EntryPoint",
    "ContractSignals",
    "DiscoveryResult",
    "scan_signals",
    "is_selector_constant",
    "is_entry_point",
    "discover_entry_points",
]

log = logging.getLogger(__name__)

ENTRY_MARKERS = frozenset({"external", "public"})

LIFECYCLE_NAMES = frozenset({
    "new", "constructor", "default", "load", "storage_load",
    "user_entrypoint", "entrypoint", "route", "dispatch",
    "mark_used", "deny_value", "pay_for_memory_grow",
})

DISPATCHER_NAMES = frozenset({"route", "dispatch", "user_entrypoint", "call_router"})

OVERRIDE_MARKERS = ("assert_overrides", "__stylus_assert_overrides")
SELECTOR_ATTRIBUTE = "selector"

_SELECTOR_HEX_RE = re.compile(r"^0x[0-9a-fA-F]{8}(?:u32)?$")
_SELECTOR_TOKEN_RE = re.compile(r"\bconst\s+\w*SELECTOR\w*")


@dataclass(frozen=True, slots=True)
class EntryPoint:
    fn: A.FnItem
    impl: A.ImplItem

    @property
    def name(self) -> str:
        return self.fn.name

    @property
    def impl_type(self) -> str:
        return self.impl.self_ty.text


@dataclass(frozen=True, slots=True)
class ContractSignals:
    """File-wide evidence of a macro-generated contract."""

    selector_constants: int = 0
    dispatchers: Tuple[str, ...] = ()
    override_markers: bool = False

    @property
    def macro_contract(self) -> bool:
        return self.selector_constants >= 2 or bool(self.dispatchers) or self.override_markers


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    entry_points: Tuple[EntryPoint, ...]
    signals: ContractSignals
    impl_count: int
    candidate_count: int


# ═══════════════════════════════════════════════════════════════════════════
# SIGNALS
# ═══════════════════════════════════════════════════════════════════════════

def _all_items(source: A.SourceFile) -> Iterator[A.Item]:
    """Every item, including the members of impl and trait blocks."""
    for item in source.walk_items():
        yield item
        if isinstance(item, (A.ImplItem, A.TraitItem)):
            yield from item.items


def _has_marker(attrs) -> bool:
    return any(attr.name in ENTRY_MARKERS for attr in attrs)


def is_selector_constant(item: A.ConstItem) -> bool:
    """``SELECTOR`` in the name, a ``[u8; 4]`` type or a 4-byte hex value."""
    if "SELECTOR" in item.name:
        return True
    if re.sub(r"\s+", "", item.ty.text) == "[u8;4]":
        return True
    if item.value is not None:
        value = render(item.value).replace("_", "")
        return bool(_SELECTOR_HEX_RE.match(value))
    return False


def scan_signals(source: A.SourceFile) -> ContractSignals:
    selectors = 0
    dispatchers: List[str] = []
    override = any(marker in source.text for marker in OVERRIDE_MARKERS)
    for item in _all_items(source):
        if isinstance(item, A.ConstItem) and not item.is_static and is_selector_constant(item):
            selectors += 1
        elif isinstance(item, A.MacroItem):
            selectors += len(_SELECTOR_TOKEN_RE.findall(item.tokens))
        elif isinstance(item, A.FnItem):
            if item.name in DISPATCHER_NAMES:
                dispatchers.append(item.name)
            if any(attr.name == SELECTOR_ATTRIBUTE for attr in item.attrs):
                override = True
    return ContractSignals(
        selector_constants=selectors,
        dispatchers=tuple(dispatchers),
        override_markers=override,
    )


# ═══════════════════════════════════════════════════════════════════════════
# PREDICATE
# ═══════════════════════════════════════════════════════════════════════════

def is_entry_point(fn: A.FnItem, impl: A.ImplItem, signals: ContractSignals) -> bool:
    if fn.name in LIFECYCLE_NAMES or fn.body is None:
        return False
    if _has_marker(impl.attrs) or _has_marker(fn.attrs):
        return True
    if fn.name.startswith("_") or not fn.has_self:
        return False
    return fn.is_pub or signals.macro_contract


def discover_entry_points(source: A.SourceFile) -> DiscoveryResult:
    """Entry points of *source* in source order."""
    signals = scan_signals(source)
    found: List[EntryPoint] = []
    impl_count = candidates = 0
    for impl in source.impls():
        impl_count += 1
        for fn in impl.methods():
            candidates += 1
            if is_entry_point(fn, impl, signals):
                found.append(EntryPoint(fn, impl))
                log.debug("entry point: %s::%s", impl.self_ty.text, fn.name)
            else:
                log.debug("skipped: %s::%s", impl.self_ty.text, fn.name)
    log.info("%d entry point(s) in %d impl block(s); %d selector-like constant(s)",
             len(found), impl_count, signals.selector_constants)
    return DiscoveryResult(tuple(found), signals, impl_count, candidates)
