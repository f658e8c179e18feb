"""
inkwell/dry_nib.py
==================

Static dry-nib detection.

A *dry nib* is a host operation charged for a padded buffer rather than
for the bytes it actually returns.  Three independent passes run over a
function's finished operation list; their results are concatenated
without deduplication, since one line can show more than one root cause:

1. per-operation overcharge   every storage read/write with a known entity
2. repeated-read waste        one record per entity read >= 3 times
3. nested-access waste        one record per read with >= 2 ``.get(`` calls

All constants come from :class:`inkwell.config.DryNibConfig`.  Pass 3
converts its gas figures to ink with ``ink_per_gas``.  With the default
ratio of 10,000 it charges 22,680,000 ink for one nested read, over ten
times what pass 1 reports for the same line; this calibration is still
open.  Lower ``ink_per_gas`` (1 reads the gas figures as ink) to bring
pass 3 into line with the others.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from inkwell.config import DEFAULT_CONFIG, DryNibConfig
from inkwell.cost_model import STORAGE_READ, STORAGE_WRITE
from inkwell.entity import UNKNOWN_ENTITY
from inkwell.models import DryNibBug, Operation

__all__ = [
    "estimate_buffer_allocation",
    "suggest_mitigation",
    "detect_dry_nib_bugs",
    "per_operation_overcharge",
    "repeated_read_waste",
    "nested_access_waste",
]

log = logging.getLogger(__name__)

_STORAGE_MITIGATION = (
    "Storage operations have buffer overhead. Cache repeated reads in local variables. "
    "For nested maps like self.balances.get(addr), the outer .get() call allocates a buffer "
    "even though it just returns a storage pointer. Consider restructuring to minimize map "
    "nesting depth."
)
_SENDER_MITIGATION = (
    "Cache msg::sender() result in a local variable if used multiple times. "
    "The 20-byte address is often charged for 32+ bytes of overhead."
)
_BLOCK_MITIGATION = (
    "Cache block properties in local variables. Even small values like block.number (u64) "
    "may be charged for full 32-byte word overhead."
)
_GENERIC_MITIGATION = "Minimize host calls by batching operations and caching results where possible."


def estimate_buffer_allocation(actual_size: int) -> int:
    """Buffer size the host is assumed to allocate for *actual_size* bytes.

    >>> [estimate_buffer_allocation(n) for n in (1, 8, 9, 32, 33, 64, 65, 200)]
    [32, 32, 64, 64, 128, 128, 128, 256]
    """
    if actual_size <= 8:
        return 32
    if actual_size <= 32:
        return 64
    if actual_size <= 64:
        return 128
    return (actual_size + 63) // 64 * 64


def suggest_mitigation(operation: str) -> str:
    if "storage_read" in operation or "storage_write" in operation:
        return _STORAGE_MITIGATION
    if "msg::sender" in operation:
        return _SENDER_MITIGATION
    if "block::" in operation:
        return _BLOCK_MITIGATION
    return _GENERIC_MITIGATION


def _is_storage(op: Operation) -> bool:
    return op.category in (STORAGE_READ, STORAGE_WRITE) and op.entity != UNKNOWN_ENTITY


# ═══════════════════════════════════════════════════════════════════════════
# PASSES
# ═══════════════════════════════════════════════════════════════════════════

def per_operation_overcharge(operations: Sequence[Operation],
                             cfg: DryNibConfig = DEFAULT_CONFIG.dry_nib) -> List[DryNibBug]:
    bugs: List[DryNibBug] = []
    for op in operations:
        if not _is_storage(op):
            continue
        base = cfg.read_base if op.category == STORAGE_READ else cfg.write_base
        size = cfg.return_size
        fair = base + size * cfg.per_byte
        buffer = estimate_buffer_allocation(size)
        words = (buffer + 31) // 32
        likely = base + words * cfg.per_word
        overcharge = max(likely - fair, 0)
        nested = op.code.count(".get(") >= cfg.nested_get_count
        if overcharge <= cfg.overcharge_threshold and not nested:
            continue
        bugs.append(DryNibBug(
            line=op.line,
            operation=op.operation,
            category=op.category,
            ink_charged_estimate=likely,
            actual_return_size=size,
            buffer_allocated=buffer,
            expected_fair_cost=fair,
            overcharge_estimate=overcharge,
            severity="high" if overcharge > cfg.high_severity_threshold else "medium",
            mitigation=suggest_mitigation(op.operation),
        ))
    return bugs


def _reads_by_entity(operations: Sequence[Operation]) -> Dict[str, List[int]]:
    reads: Dict[str, List[int]] = {}
    for op in operations:
        if op.category == STORAGE_READ and op.entity != UNKNOWN_ENTITY:
            reads.setdefault(op.entity, []).append(op.line)
    return reads


def repeated_read_waste(operations: Sequence[Operation],
                        cfg: DryNibConfig = DEFAULT_CONFIG.dry_nib) -> List[DryNibBug]:
    bugs: List[DryNibBug] = []
    for entity, lines in _reads_by_entity(operations).items():
        count = len(lines)
        if count < cfg.repeated_read_count:
            continue
        bugs.append(DryNibBug(
            line=lines[0],
            operation=f"repeated storage_read: self.{entity}",
            category=STORAGE_READ,
            ink_charged_estimate=count * cfg.read_waste,
            actual_return_size=cfg.return_size,
            buffer_allocated=cfg.repeated_buffer,
            expected_fair_cost=cfg.read_waste,
            overcharge_estimate=(count - 1) * cfg.read_waste,
            severity="high",
            mitigation=(
                f"Cache `self.{entity}` in a local variable. Repeated host calls are a major "
                "dry-nib source (each .get() incurs buffer allocation overhead)."
            ),
        ))
    return bugs


def nested_access_waste(operations: Sequence[Operation],
                        cfg: DryNibConfig = DEFAULT_CONFIG.dry_nib,
                        ink_per_gas: int = DEFAULT_CONFIG.ink_per_gas) -> List[DryNibBug]:
    # two host round trips plus a cold slot, against one trip plus a warm slot
    estimated = 2 * cfg.host_round_trip + cfg.cold_access_gas * ink_per_gas
    fair = cfg.host_round_trip + cfg.warm_access_gas * ink_per_gas
    bugs: List[DryNibBug] = []
    for op in operations:
        if op.category != STORAGE_READ or op.entity == UNKNOWN_ENTITY:
            continue
        if op.code.count(".get(") < cfg.nested_get_count:
            continue
        bugs.append(DryNibBug(
            line=op.line,
            operation=op.operation,
            category=STORAGE_READ,
            ink_charged_estimate=estimated,
            actual_return_size=cfg.return_size,
            buffer_allocated=cfg.nested_buffer,
            expected_fair_cost=fair,
            overcharge_estimate=max(estimated - fair, 0),
            severity="high",
            mitigation=(
                f"Nested access on storage field `{op.entity}` detected. In Arbitrum Stylus, "
                "this triggers multiple host I/O calls. Use "
                f"`self.{op.entity}.getter(key)` to cache the intermediate mapping and avoid "
                "redundant WASM-to-Host transitions."
            ),
        ))
    return bugs


def detect_dry_nib_bugs(operations: Sequence[Operation],
                        cfg: DryNibConfig = DEFAULT_CONFIG.dry_nib,
                        ink_per_gas: int = DEFAULT_CONFIG.ink_per_gas) -> List[DryNibBug]:
    """Run all three passes and concatenate their findings in pass order."""
    passes: Tuple[List[DryNibBug], ...] = (
        per_operation_overcharge(operations, cfg),
        repeated_read_waste(operations, cfg),
        nested_access_waste(operations, cfg, ink_per_gas),
    )
    bugs = [bug for found in passes for bug in found]
    if bugs:
        log.debug("dry-nib passes found %d/%d/%d record(s)", *(len(p) for p in passes))
    return bugs
