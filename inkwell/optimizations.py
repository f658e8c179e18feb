"""Caching and read/write-separation suggestions."""

from __future__ import annotations

from typing import Dict, List, Sequence

from inkwell.config import DEFAULT_CONFIG, OptimizationConfig
from inkwell.cost_model import STORAGE_READ, STORAGE_WRITE
from inkwell.entity import UNKNOWN_ENTITY
from inkwell.models import Operation, Optimization

__all__ = ["truncate_code", "redundant_reads_in_writes", "cacheable_reads", "detect_optimizations"]

_SEPARATE_READ_WRITE = (
    "// Separate read and write:\n"
    "// let cached = storage.get(key);\n"
    "// storage.set(key, cached + value);"
)


def truncate_code(code: str, width: int) -> str:
    """Cut *code* to *width* characters, ending in ``...`` when cut.

    >>> truncate_code("abcdef", 5)
    'ab...'
    """
    if len(code) <= width:
        return code
    return code[:max(width - 3, 0)] + "..."


def redundant_reads_in_writes(operations: Sequence[Operation],
                              cfg: OptimizationConfig = DEFAULT_CONFIG.optimizations) -> List[Optimization]:
    found = []
    for idx, op in enumerate(operations):
        if op.category != STORAGE_WRITE or op.ink <= cfg.redundant_read_threshold:
            continue
        found.append(Optimization(
            id=f"redundant_read_{idx}",
            line=op.line,
            severity="high",
            title="Redundant Storage Read in Write",
            description=(
                "This write operation contains an embedded storage read. Separate the read "
                f"into a local variable to save ~{cfg.redundant_read_savings / 1e6:.1f}M ink."
            ),
            current_code=truncate_code(op.code, cfg.current_code_width),
            suggested_code=_SEPARATE_READ_WRITE,
            estimated_savings_ink=cfg.redundant_read_savings,
            estimated_savings_percentage=cfg.redundant_read_savings_pct,
            confidence="high",
        ))
    return found


def cacheable_reads(operations: Sequence[Operation],
                    cfg: OptimizationConfig = DEFAULT_CONFIG.optimizations) -> List[Optimization]:
    reads: Dict[str, List[int]] = {}
    for op in operations:
        if op.category == STORAGE_READ and op.entity != UNKNOWN_ENTITY:
            reads.setdefault(op.entity, []).append(op.line)

    found = []
    for var, lines in reads.items():
        n = len(lines)
        if n < 2:
            continue
        savings = cfg.cached_read_savings * (n - 1)
        found.append(Optimization(
            id=f"cache_{var}",
            line=lines[0],
            severity="medium",
            title=f"Cache repeated storage read: self.{var}",
            description=(
                f"Field `{var}` is read {n}× → cache in local variable "
                f"→ save ~{savings / 1e6:.1f}M ink"
            ),
            current_code=f"// Reads at lines: [{', '.join(str(l) for l in lines)}]",
            suggested_code=f"let cached_{var} = self.{var}.get(...);\n// Use cached_{var} instead",
            estimated_savings_ink=savings,
            estimated_savings_percentage=(n - 1) / n * 100.0,
            confidence="high",
        ))
    return found


def detect_optimizations(operations: Sequence[Operation],
                         cfg: OptimizationConfig = DEFAULT_CONFIG.optimizations) -> List[Optimization]:
    return redundant_reads_in_writes(operations, cfg) + cacheable_reads(operations, cfg)
