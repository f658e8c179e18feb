"""
inkwell/function_analyzer.py
============================

Per-function aggregation.

:func:`analyze_function` classifies a function body and folds the
operations into a :class:`~inkwell.models.FunctionAnalysis` in two
phases: first the total, then each operation's share of it.  Category
statistics, hotspots, dry-nib bugs and optimizations are derived from
the finished operation list; none of them reorders it.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from inkwell import ast as A
from inkwell.classifier import ExpressionClassifier
from inkwell.config import DEFAULT_CONFIG, AnalysisConfig
from inkwell.dry_nib import detect_dry_nib_bugs
from inkwell.models import CategoryStats, FunctionAnalysis, Hotspot, Operation
from inkwell.optimizations import detect_optimizations

__all__ = ["analyze_function", "fill_percentages", "category_stats", "rank_hotspots"]

log = logging.getLogger(__name__)


def fill_percentages(operations: Sequence[Operation]) -> int:
    """Set every operation's share of the total; returns the total."""
    total = sum(op.ink for op in operations)
    for op in operations:
        op.percentage = op.ink / total * 100.0 if total > 0 else 0.0
    return total


def category_stats(operations: Sequence[Operation]) -> Dict[str, CategoryStats]:
    """Group by category, in first-seen order."""
    grouped: Dict[str, List[int]] = {}
    for op in operations:
        grouped.setdefault(op.category, []).append(op.ink)
    total = sum(op.ink for op in operations)
    stats = {}
    for category, inks in grouped.items():
        subtotal = sum(inks)
        count = len(inks)
        stats[category] = CategoryStats(
            count=count,
            total_ink=subtotal,
            percentage=subtotal / total * 100.0 if total > 0 else 0.0,
            avg_per_op=subtotal // count if count else 0,
        )
    return stats


def rank_hotspots(operations: Sequence[Operation], threshold: int) -> List[Hotspot]:
    """Operations above *threshold*, most expensive first, ranked 1..N.

    ``sorted`` is stable, so equal costs keep their encounter order.
    """
    hot = sorted((op for op in operations if op.ink > threshold), key=lambda op: op.ink, reverse=True)
    return [Hotspot(line=op.line, ink=op.ink, operation=op.operation, rank=rank)
            for rank, op in enumerate(hot, start=1)]


def analyze_function(fn: A.FnItem, impl_type: str = "",
                     config: AnalysisConfig = DEFAULT_CONFIG) -> FunctionAnalysis:
    classifier = ExpressionClassifier(config.cost_model)
    operations = classifier.classify_block(fn.body)
    total = fill_percentages(operations)

    analysis = FunctionAnalysis(
        name=fn.name,
        signature=fn.signature or f"fn {fn.name}(...)",
        line=fn.span.line,
        impl_type=impl_type,
        total_ink=total,
        gas_equivalent=total // config.ink_per_gas,
        operations=operations,
        categories=category_stats(operations),
        optimizations=detect_optimizations(operations, config.optimizations),
        hotspots=rank_hotspots(operations, config.hotspot_threshold),
        dry_nib_bugs=detect_dry_nib_bugs(operations, config.dry_nib, config.ink_per_gas),
    )
    log.info("%s::%s: %d operation(s), %d ink (~%d gas)",
             impl_type or "?", fn.name, len(operations), total, analysis.gas_equivalent)
    return analysis
