"""
inkwell/models.py
=================

Result records produced by the analyzer and the instrumentor.

Every record serialises with ``to_dict()`` into plain JSON types; the
field names are the stable report schema consumed by the JSON output and
by editor integrations.

    ContractAnalysis
    └── FunctionAnalysis*       one per entry point, in source order
        ├── Operation*          classifier output, in encounter order
        ├── CategoryStats{}     keyed by category, first-seen order
        ├── Hotspot*            ranked 1..N by ink
        ├── Optimization*
        └── DryNibBug*
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

__all__ = [
    "Operation",
    "CategoryStats",
    "Hotspot",
    "Optimization",
    "DryNibBug",
    "FunctionAnalysis",
    "ContractAnalysis",
    "InstrumentedOperation",
]


# ═══════════════════════════════════════════════════════════════════════════
# PER-OPERATION RECORDS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(slots=True)
class Operation:
    """One classified operation.

    ``percentage`` is 0.0 until the enclosing function's total is known;
    :func:`inkwell.function_analyzer.analyze_function` fills it in.
    """

    line: int
    code: str
    operation: str
    entity: str
    ink: int
    category: str
    severity: str
    column: int = 0
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class CategoryStats:
    count: int
    total_ink: int
    percentage: float
    avg_per_op: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Hotspot:
    line: int
    ink: int
    operation: str
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Optimization:
    """A suggested rewrite with its estimated saving."""

    id: str
    line: int
    severity: str
    title: str
    description: str
    current_code: str
    suggested_code: str
    estimated_savings_ink: int
    estimated_savings_percentage: float
    confidence: str = "high"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class DryNibBug:
    """A host operation suspected of being charged for more than it returns.

    Sizes are bytes, costs are ink.  ``overcharge_estimate`` is
    ``ink_charged_estimate - expected_fair_cost`` clamped at zero.
    """

    line: int
    operation: str
    category: str
    ink_charged_estimate: int
    actual_return_size: int
    buffer_allocated: int
    expected_fair_cost: int
    overcharge_estimate: int
    severity: str
    mitigation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════════════
# AGGREGATES
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(slots=True)
class FunctionAnalysis:
    name: str
    signature: str
    line: int
    impl_type: str
    total_ink: int
    gas_equivalent: int
    operations: List[Operation] = field(default_factory=list)
    categories: Dict[str, CategoryStats] = field(default_factory=dict)
    optimizations: List[Optimization] = field(default_factory=list)
    hotspots: List[Hotspot] = field(default_factory=list)
    dry_nib_bugs: List[DryNibBug] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "signature": self.signature,
            "line": self.line,
            "impl_type": self.impl_type,
            "total_ink": self.total_ink,
            "gas_equivalent": self.gas_equivalent,
            "operations": [op.to_dict() for op in self.operations],
            "categories": {k: v.to_dict() for k, v in self.categories.items()},
            "optimizations": [o.to_dict() for o in self.optimizations],
            "hotspots": [h.to_dict() for h in self.hotspots],
            "dry_nib_bugs": [b.to_dict() for b in self.dry_nib_bugs],
        }


@dataclass(slots=True)
class ContractAnalysis:
    """Analysis of one source file.

    ``functions`` is an ordered list; two impl blocks may legitimately
    define methods with the same bare name, so lookups by name go through
    :meth:`find` and return every match.
    """

    contract_name: str
    file: str
    functions: List[FunctionAnalysis] = field(default_factory=list)

    @property
    def total_ink(self) -> int:
        return sum(f.total_ink for f in self.functions)

    def find(self, name: str) -> List[FunctionAnalysis]:
        return [f for f in self.functions if f.name == name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract_name": self.contract_name,
            "file": self.file,
            "functions": [f.to_dict() for f in self.functions],
        }


@dataclass(frozen=True, slots=True)
class InstrumentedOperation:
    """One inserted probe."""

    probe_id: int
    operation_type: str
    line: int = 0
    function: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
