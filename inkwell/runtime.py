"""
inkwell/runtime.py
==================

Runtime side of dry-nib detection.

The instrumented contract carries a generated Rust tracker that measures
ink deltas around every probe and re-applies a coarse dry-nib heuristic to
the *measured* numbers.  This module is the Python model of that tracker:

* :class:`RuntimeThresholds` -- the constants the generated tracker is
  emitted with.  They are tuned for measured deltas and intentionally differ
  from the static estimates in :mod:`inkwell.dry_nib`.
* :func:`check_dry_nib` / :func:`check_dry_nib_with_size` -- the two pure
  checks.
* :class:`InkTracker` -- an explicit, lock-guarded tracker object with the
  same init / record / dump surface, usable for host-side replays and tests.
* :func:`parse_ink_report` -- turns a dumped report back into measurements
  and bugs, so ``inkwell report`` can re-check a report with different
  thresholds.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Dict, List, Optional

__all__ = [
    "RuntimeThresholds",
    "ProbeMeasurement",
    "RuntimeBug",
    "InkReport",
    "InkTracker",
    "check_dry_nib",
    "check_dry_nib_with_size",
    "should_check",
    "format_report",
    "parse_ink_report",
    "recheck_report",
]

log = logging.getLogger(__name__)

_U64_MAX = 2 ** 64 - 1


# ═══════════════════════════════════════════════════════════════════════════
# THRESHOLDS AND RECORDS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class RuntimeThresholds:
    """Expected ink per probe class, as measured at runtime."""

    storage_read: int = 650_000
    storage_write: int = 900_000
    msg_sender: int = 80_000
    default: int = 50_000
    tolerance: int = 200_000
    per_byte: int = 30
    sized_min_tolerance: int = 250_000
    sized_tolerance_divisor: int = 4

    def expected_base(self, operation: str) -> int:
        if "storage_read" in operation:
            return self.storage_read
        if "storage_write" in operation:
            return self.storage_write
        if "msg_sender" in operation:
            return self.msg_sender
        return self.default

    def validate(self) -> List[str]:
        warnings: List[str] = []
        for f in fields(self):
            if getattr(self, f.name) < 0:
                warnings.append(f"runtime.{f.name} must be non-negative")
        if self.sized_tolerance_divisor <= 0:
            warnings.append("runtime.sized_tolerance_divisor must be positive")
        return warnings

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RuntimeThresholds":
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in d.items() if k in known})


DEFAULT_THRESHOLDS = RuntimeThresholds()


@dataclass
class ProbeMeasurement:
    """Latest measurement of one probe."""

    probe_id: int
    ink_before: int
    ink_after: int
    count: int = 1
    return_data_size: Optional[int] = None
    operation_type: Optional[str] = None

    @property
    def consumed(self) -> int:
        # The ink counter counts down.
        return max(self.ink_before - self.ink_after, 0)


@dataclass(frozen=True, slots=True)
class RuntimeBug:
    """A probe whose measured cost exceeded its expected overhead."""

    probe_id: int
    operation: str
    ink_charged: int
    actual_return_size: int
    expected_overhead: int
    overcharge_amount: int

    @property
    def overcharge_pct(self) -> float:
        if self.expected_overhead <= 0:
            return 0.0
        return self.overcharge_amount / self.expected_overhead * 100.0


# ═══════════════════════════════════════════════════════════════════════════
# CHECKS
# ═══════════════════════════════════════════════════════════════════════════

def should_check(operation: Optional[str]) -> bool:
    """Whether an unsized probe is eligible for the basic check."""
    if not operation:
        return False
    return any(tag in operation for tag in ("storage_read", "storage_write", "msg_", "block_"))


def check_dry_nib(probe_id: int, operation: str, ink_charged: int,
                  thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS) -> Optional[RuntimeBug]:
    """Flag a measurement above its class base plus a flat tolerance."""
    expected = thresholds.expected_base(operation)
    if ink_charged <= expected + thresholds.tolerance:
        return None
    return RuntimeBug(
        probe_id=probe_id,
        operation=operation,
        ink_charged=ink_charged,
        actual_return_size=0,
        expected_overhead=expected,
        overcharge_amount=ink_charged - expected,
    )


def check_dry_nib_with_size(probe_id: int, operation: str, ink_charged: int, actual_size: int,
                            thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS) -> Optional[RuntimeBug]:
    """Flag a measurement above a size-aware fair cost.

    The fair cost is the read (or write) base plus ``per_byte`` ink for every
    returned byte; the tolerance scales with it but never drops below
    ``sized_min_tolerance``.
    """
    base = thresholds.storage_read if "storage_read" in operation else thresholds.storage_write
    expected = base + actual_size * thresholds.per_byte
    tolerance = max(thresholds.sized_min_tolerance, expected // thresholds.sized_tolerance_divisor)
    if ink_charged <= expected + tolerance:
        return None
    return RuntimeBug(
        probe_id=probe_id,
        operation=operation,
        ink_charged=ink_charged,
        actual_return_size=actual_size,
        expected_overhead=expected,
        overcharge_amount=ink_charged - expected,
    )


# ═══════════════════════════════════════════════════════════════════════════
# TRACKER
# ═══════════════════════════════════════════════════════════════════════════

def _default_counter() -> int:
    """Host stand-in for ``ink_left()``: a counter that only goes down."""
    return _U64_MAX - time.monotonic_ns()


@dataclass
class _TrackerState:
    start_ink: int
    probes: Dict[int, ProbeMeasurement] = field(default_factory=dict)
    bugs: List[RuntimeBug] = field(default_factory=list)


class InkTracker:
    """
    Thread-safe collector of probe measurements.

    One lock guards the single state record (probe map, bug list and
    baseline).  Counter reads and dry-nib checks happen outside the lock;
    only the state update is serialised.

    The tracker is explicitly (re)initialised with :meth:`init`; until then
    recordings are dropped and :meth:`dump_report` returns ``"{}"``.
    """

    def __init__(self, counter: Optional[Callable[[], int]] = None,
                 thresholds: Optional[RuntimeThresholds] = None) -> None:
        self._counter = counter or _default_counter
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self._lock = threading.Lock()
        self._state: Optional[_TrackerState] = None

    def init(self) -> None:
        """Start a new measurement session, discarding previous state."""
        start = self._counter()
        with self._lock:
            self._state = _TrackerState(start_ink=start)
        log.debug("ink tracker initialised at %d", start)

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._state is not None

    def record_before(self, probe_id: int) -> int:
        return self._counter()

    def record_after(self, probe_id: int, ink_before: int,
                     operation_type: Optional[str] = None) -> None:
        self.record_measurement(probe_id, ink_before, self._counter(), operation_type)

    def record_after_with_size(self, probe_id: int, ink_before: int, return_size: int,
                               operation_type: Optional[str] = None) -> None:
        self.record_measurement(probe_id, ink_before, self._counter(), operation_type,
                                return_size=return_size)

    def record_measurement(self, probe_id: int, ink_before: int, ink_after: int,
                           operation_type: Optional[str] = None,
                           return_size: Optional[int] = None) -> Optional[RuntimeBug]:
        """Record one before/after pair and run the matching dry-nib check.

        Returns the bug recorded for this measurement, if any.
        """
        consumed = max(ink_before - ink_after, 0)
        bug: Optional[RuntimeBug] = None
        if operation_type is not None:
            if return_size is not None:
                bug = check_dry_nib_with_size(probe_id, operation_type, consumed,
                                              return_size, self.thresholds)
            elif should_check(operation_type):
                bug = check_dry_nib(probe_id, operation_type, consumed, self.thresholds)

        with self._lock:
            state = self._state
            if state is None:
                return None
            data = state.probes.get(probe_id)
            if data is None:
                state.probes[probe_id] = ProbeMeasurement(
                    probe_id=probe_id,
                    ink_before=ink_before,
                    ink_after=ink_after,
                    return_data_size=return_size,
                    operation_type=operation_type,
                )
            else:
                data.ink_before = ink_before
                data.ink_after = ink_after
                data.count += 1
                if return_size is not None:
                    data.return_data_size = return_size
            if bug is not None:
                state.bugs.append(bug)
        return bug

    def measurements(self) -> List[ProbeMeasurement]:
        with self._lock:
            if self._state is None:
                return []
            return [self._state.probes[k] for k in sorted(self._state.probes)]

    def bugs(self) -> List[RuntimeBug]:
        with self._lock:
            return list(self._state.bugs) if self._state is not None else []

    def dump_report(self) -> str:
        """Human-readable report; the format is what :func:`parse_ink_report` reads."""
        now = self._counter()
        with self._lock:
            if self._state is None:
                return "{}"
            start = self._state.start_ink
            probes = [self._state.probes[k] for k in sorted(self._state.probes)]
            bugs = list(self._state.bugs)
        return format_report(max(start - now, 0), probes, bugs)


# ═══════════════════════════════════════════════════════════════════════════
# REPORT FORMAT
# ═══════════════════════════════════════════════════════════════════════════

_BUG_HEADER = "=== DRY NIB OVERCHARGE BUGS DETECTED ==="


def format_report(total: int, probes: List[ProbeMeasurement], bugs: List[RuntimeBug]) -> str:
    lines = [f"Total ink used: ~{total} (start → current)", "", "Probe measurements:"]
    for data in probes:
        line = (f"Probe #{data.probe_id} ({data.operation_type or '?'}): "
                f"{data.consumed} ink consumed "
                f"(before={data.ink_before}, after={data.ink_after})")
        if data.return_data_size is not None:
            line += f" [return size={data.return_data_size} bytes]"
        lines.append(line)
    if bugs:
        lines += [
            "",
            _BUG_HEADER,
            "These are cases where real ink used >> expected fair cost",
            "(likely buffer padding / allocation waste on small returns)",
            "",
        ]
        for bug in bugs:
            lines += [
                f"\U0001F41B Probe {bug.probe_id}: {bug.operation}",
                f"   Charged:   {bug.ink_charged} ink",
                f"   Expected:  {bug.expected_overhead} ink",
                f"   Overcharge: {bug.overcharge_amount} ink ({bug.overcharge_pct:.1f}%)",
                f"   Return size: {bug.actual_return_size} bytes",
                "",
            ]
    return "\n".join(lines) + "\n"


@dataclass
class InkReport:
    """A parsed runtime report."""

    total_ink: int = 0
    probes: List[ProbeMeasurement] = field(default_factory=list)
    bugs: List[RuntimeBug] = field(default_factory=list)


_TOTAL_RE = re.compile(r"^Total ink used: ~(\d+)")
_PROBE_RE = re.compile(
    r"^Probe #(\d+) \(([^)]*)\): (\d+) ink consumed \(before=(\d+), after=(\d+)\)"
    r"(?: \[return size=(\d+) bytes\])?"
)
_BUG_RE = re.compile(r"^\S*\s*Probe (\d+): (.+)$")
_BUG_FIELD_RE = re.compile(r"^\s+(Charged|Expected|Overcharge|Return size):\s+(\d+)")


def parse_ink_report(text: str) -> InkReport:
    """Parse the output of :meth:`InkTracker.dump_report` (or its Rust twin)."""
    report = InkReport()
    in_bugs = False
    current: Dict[str, Any] = {}

    def flush() -> None:
        if current:
            report.bugs.append(RuntimeBug(
                probe_id=current["probe_id"],
                operation=current["operation"],
                ink_charged=current.get("Charged", 0),
                actual_return_size=current.get("Return size", 0),
                expected_overhead=current.get("Expected", 0),
                overcharge_amount=current.get("Overcharge", 0),
            ))
            current.clear()

    for raw in text.splitlines():
        line = raw.rstrip()
        if not in_bugs:
            m = _TOTAL_RE.match(line)
            if m:
                report.total_ink = int(m.group(1))
                continue
            m = _PROBE_RE.match(line)
            if m:
                op = m.group(2)
                size = m.group(6)
                report.probes.append(ProbeMeasurement(
                    probe_id=int(m.group(1)),
                    ink_before=int(m.group(4)),
                    ink_after=int(m.group(5)),
                    return_data_size=int(size) if size is not None else None,
                    operation_type=None if op == "?" else op,
                ))
                continue
            if line.strip() == _BUG_HEADER:
                in_bugs = True
            continue
        m = _BUG_FIELD_RE.match(line)
        if m and current:
            current[m.group(1)] = int(m.group(2))
            continue
        m = _BUG_RE.match(line)
        if m:
            flush()
            current.update(probe_id=int(m.group(1)), operation=m.group(2))
    flush()
    log.debug("parsed runtime report: %d probe(s), %d bug(s)",
              len(report.probes), len(report.bugs))
    return report


def recheck_report(report: InkReport,
                   thresholds: RuntimeThresholds = DEFAULT_THRESHOLDS) -> List[RuntimeBug]:
    """Re-run the runtime checks over a parsed report's measurements."""
    bugs: List[RuntimeBug] = []
    for data in report.probes:
        op = data.operation_type
        if op is None:
            continue
        if data.return_data_size is not None:
            bug = check_dry_nib_with_size(data.probe_id, op, data.consumed,
                                          data.return_data_size, thresholds)
        elif should_check(op):
            bug = check_dry_nib(data.probe_id, op, data.consumed, thresholds)
        else:
            bug = None
        if bug is not None:
            bugs.append(bug)
    return bugs
