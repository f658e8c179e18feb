"""
inkwell/cost_model.py
=====================

Ink estimates per classified operation.

All numbers here are calibration guesses, not measured costs.  They live
in one immutable :class:`CostModel` so a JSON configuration file (see
:mod:`inkwell.config`) can replace any of them without touching the
classifier.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List

__all__ = ["CostModel", "DEFAULT_COST_MODEL"]


# Category names shared by the classifier, the detectors and the reports.
STORAGE_READ = "storage_read"
STORAGE_WRITE = "storage_write"
EVM_CONTEXT = "evm_context"
EVENT = "event"
EXTERNAL_CALL = "external_call"
CRYPTO = "crypto"
ASSIGNMENT = "assignment"
CONTROL_FLOW = "control_flow"


@dataclass(frozen=True, slots=True)
class CostModel:
    """Immutable table of ink estimates."""

    storage_read: int = 1_200_000
    nested_storage_read: int = 2_000_000
    storage_write: int = 1_500_000
    embedded_read_write: int = 2_400_000
    identity: int = 200_000
    value: int = 250_000
    block_info: int = 300_000
    evm_default: int = 350_000
    event: int = 350_000
    external_call: int = 2_500_000
    crypto: int = 500_000
    assignment: int = 80_000
    control_flow: int = 50_000
    default: int = 50_000

    def cost(self, operation: str, category: str) -> int:
        """Ink estimate for an operation name within its category."""
        if category == STORAGE_READ:
            if "nested" in operation:
                return self.nested_storage_read
            return self.storage_read
        if category == STORAGE_WRITE:
            if "embedded_read" in operation:
                return self.embedded_read_write
            return self.storage_write
        if category == EVM_CONTEXT:
            if "msg::sender" in operation or "tx::origin" in operation:
                return self.identity
            if "msg::value" in operation:
                return self.value
            if "block" in operation:
                return self.block_info
            return self.evm_default
        if category == EVENT:
            return self.event
        if category == EXTERNAL_CALL:
            return self.external_call
        if category == CRYPTO:
            return self.crypto
        if category == ASSIGNMENT:
            return self.assignment
        if category == CONTROL_FLOW:
            return self.control_flow
        return self.default

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if consistent)."""
        warnings: List[str] = []
        for f in fields(self):
            if getattr(self, f.name) < 0:
                warnings.append(f"{f.name} must be non-negative")
        flat = {
            "storage_read": self.storage_read,
            "storage_write": self.storage_write,
            "event": self.event,
            "crypto": self.crypto,
        }
        for name, cost in flat.items():
            if cost >= self.external_call:
                warnings.append(f"external_call should be the highest flat cost (not above {name})")
        if not self.identity < self.value < self.block_info < self.evm_default:
            warnings.append("host-context costs should rise identity < value < block_info < evm_default")
        if self.embedded_read_write < self.storage_write:
            warnings.append("embedded_read_write should not be below storage_write")
        return warnings

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CostModel":
        known = {f.name for f in fields(cls)}
        return cls(**{k: int(v) for k, v in d.items() if k in known})


DEFAULT_COST_MODEL = CostModel()
