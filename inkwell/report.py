"""
inkwell/report.py
=================

Plain-text and JSON renderings of a :class:`~inkwell.models.ContractAnalysis`.

Formats
-------
compact    per function: header, dry-nib bugs, hotspots, optimizations
detailed   compact, then per function a category summary and the full
           operation list (operations at or above ``threshold`` marked ``*``)
json       ``ContractAnalysis.to_dict()`` pretty-printed

Every renderer returns a string; printing is left to the caller.
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional

from inkwell.models import ContractAnalysis, DryNibBug, FunctionAnalysis

__all__ = ["FORMATS", "render_compact", "render_detailed", "render_json", "render_report"]

RULE = "=" * 60
_PIPE = "  " + " " * 4 + "   |"


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[:width - 3] + "..."


def _overcharge_pct(bug: DryNibBug) -> float:
    if bug.expected_fair_cost <= 0:
        return 0.0
    return bug.overcharge_estimate / bug.expected_fair_cost * 100.0


# ═══════════════════════════════════════════════════════════════════════════
# SECTIONS
# ═══════════════════════════════════════════════════════════════════════════

def _dry_nib_section(bugs: List[DryNibBug]) -> List[str]:
    lines = [
        "",
        RULE,
        "  DRY NIB BUGS DETECTED - HOST CALL OVERHEAD ISSUES",
        RULE,
        "",
        "These operations are charged for more buffer space than data actually returned:",
        "",
    ]
    for idx, bug in enumerate(bugs, start=1):
        lines += [
            f"  Bug #{idx}: {bug.operation} at line {bug.line}",
            "     |",
            f"     | Operation: {bug.category}",
            f"     | Actual return size: {bug.actual_return_size} bytes",
            f"     | Buffer allocated: {bug.buffer_allocated} bytes",
            f"     | Wastage: charged for {max(bug.buffer_allocated - bug.actual_return_size, 0)} "
            "bytes of padding!",
            "     |",
            f"     | Ink charged (est): {bug.ink_charged_estimate} ink",
            f"     | Fair cost: {bug.expected_fair_cost} ink",
            f"     | Overcharge: {bug.overcharge_estimate} ink ({_overcharge_pct(bug):.1f}% overcharge)",
            "     |",
            f"     | Mitigation: {bug.mitigation}",
            "",
        ]
    lines.append(RULE)
    return lines


def _hotspot_section(func: FunctionAnalysis) -> List[str]:
    lines = ["", "HOTSPOTS (Operations > 1M ink)", ""]
    for spot in func.hotspots:
        pct = spot.ink / func.total_ink * 100.0 if func.total_ink else 0.0
        bar = "█" * int(pct / 2)
        lines.append(
            f"  Line {spot.line:3}  |  {_truncate(spot.operation, 30):30}  "
            f"{spot.ink / 1e6:.1f}M  {bar}  {pct:>3.0f}%"
        )
    return lines


def _optimization_section(func: FunctionAnalysis) -> List[str]:
    lines = ["", RULE, "", "OPTIMIZATION OPPORTUNITIES", ""]
    for opt in func.optimizations:
        lines += [
            f"  Line {opt.line} | {opt.title}",
            f"{_PIPE} {opt.description}",
            _PIPE,
            f"{_PIPE} Suggestion:",
        ]
        lines += [f"{_PIPE}   {line}" for line in opt.suggested_code.splitlines()]
        lines += [
            _PIPE,
            f"{_PIPE} Potential savings: ~{opt.estimated_savings_ink // 1000}K ink "
            f"({opt.estimated_savings_percentage:.0f}% reduction)",
            "",
        ]
    return lines


def _function_compact(func: FunctionAnalysis) -> List[str]:
    lines = [
        "",
        f"Function: {func.signature}",
        f"Total Ink: {func.total_ink} (≈ {func.gas_equivalent} gas)",
        "",
        RULE,
    ]
    if func.dry_nib_bugs:
        lines += _dry_nib_section(func.dry_nib_bugs)
    if func.hotspots:
        lines += _hotspot_section(func)
    if func.optimizations:
        lines += _optimization_section(func)
    lines.append(RULE)
    return lines


def _category_section(func: FunctionAnalysis) -> List[str]:
    lines = [
        "",
        f"CATEGORY SUMMARY ({func.name})",
        "",
        f"{'Category':15} | {'Operations':^10} | {'Total Ink':^12} | {'%':^5} | {'Avg/Op':^10}",
        "-" * 75,
    ]
    for category, stats in func.categories.items():
        lines.append(
            f"{category:15} | {stats.count:^10} | {stats.total_ink:>12} | "
            f"{stats.percentage:>4.0f}% | {stats.avg_per_op:>10}"
        )
    return lines


def _operation_section(func: FunctionAnalysis, threshold: int) -> List[str]:
    lines = ["", f"OPERATIONS ({func.name}, * = at or above {threshold} ink)", ""]
    for op in func.operations:
        mark = "*" if op.ink >= threshold else " "
        lines.append(
            f" {mark} Line {op.line:3}  {_truncate(op.operation, 36):36}  "
            f"{op.ink:>10}  {op.percentage:5.1f}%  {_truncate(op.code, 40)}"
        )
    return lines


# ═══════════════════════════════════════════════════════════════════════════
# RENDERERS
# ═══════════════════════════════════════════════════════════════════════════

def render_compact(analysis: ContractAnalysis, threshold: Optional[int] = None) -> str:
    lines = ["", "INKWELL STAIN REPORT", RULE]
    for func in analysis.functions:
        lines += _function_compact(func)
    return "\n".join(lines) + "\n"


def render_detailed(analysis: ContractAnalysis, threshold: Optional[int] = None) -> str:
    limit = 1_000_000 if threshold is None else threshold
    lines = [render_compact(analysis).rstrip("\n")]
    for func in analysis.functions:
        if func.categories:
            lines += _category_section(func)
        if func.operations:
            lines += _operation_section(func, limit)
    return "\n".join(lines) + "\n"


def render_json(analysis: ContractAnalysis, threshold: Optional[int] = None) -> str:
    return json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False) + "\n"


FORMATS: Dict[str, Callable[[ContractAnalysis, Optional[int]], str]] = {
    "compact": render_compact,
    "detailed": render_detailed,
    "json": render_json,
}


def render_report(analysis: ContractAnalysis, fmt: str = "compact",
                  threshold: Optional[int] = None) -> str:
    try:
        renderer = FORMATS[fmt]
    except KeyError:
        raise ValueError(f"unknown report format: {fmt!r}") from None
    return renderer(analysis, threshold)
