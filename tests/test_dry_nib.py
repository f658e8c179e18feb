# tests/test_dry_nib.py
"""
Tests for the static dry-nib passes.
"""

import pytest

from inkwell.config import DryNibConfig
from inkwell.dry_nib import (
    detect_dry_nib_bugs,
    estimate_buffer_allocation,
    nested_access_waste,
    per_operation_overcharge,
    repeated_read_waste,
    suggest_mitigation,
)
from inkwell.models import Operation
from tests.conftest import TOKEN_RS, line_of


def _read(line, entity="balances", code="self.balances.get(a)", operation="storage_read (get())"):
    return Operation(line=line, code=code, operation=operation, entity=entity,
                     ink=1_200_000, category="storage_read", severity="high")


def _write(line, entity="balances"):
    return Operation(line=line, code="self.balances.insert(a, v)", operation="storage_write (write())",
                     entity=entity, ink=1_500_000, category="storage_write", severity="high")


NESTED = "self.allowances.get(a).get(b)"


class TestBufferModel:

    @pytest.mark.parametrize("size,expected", [
        (0, 32), (8, 32), (9, 64), (32, 64), (33, 128), (64, 128), (65, 128), (129, 192),
    ])
    def test_estimate_buffer_allocation(self, size, expected):
        assert estimate_buffer_allocation(size) == expected

    @pytest.mark.parametrize("operation,needle", [
        ("storage_read (get())", "Cache repeated reads"),
        ("storage_write (write())", "Cache repeated reads"),
        ("msg::sender()", "20-byte address"),
        ("block::number", "block properties"),
        ("event_emit", "batching"),
    ], ids=["read", "write", "sender", "block", "generic"])
    def test_suggest_mitigation(self, operation, needle):
        assert needle in suggest_mitigation(operation)


class TestPerOperation:

    def test_default_constants_do_not_flag_single_reads(self):
        assert per_operation_overcharge([_read(1), _write(2)]) == []

    def test_nested_read_always_flagged(self):
        bugs = per_operation_overcharge([_read(3, "allowances", NESTED, "storage_read (nested get())")])
        assert len(bugs) == 1
        bug = bugs[0]
        assert bug.line == 3
        assert bug.overcharge_estimate == 0
        assert bug.severity == "medium"
        assert bug.expected_fair_cost == 800_000 + 32 * 100
        assert bug.buffer_allocated == 64

    def test_overcharge_threshold(self):
        cfg = DryNibConfig(per_word=100_000)
        bug = per_operation_overcharge([_read(1)], cfg)[0]
        assert bug.ink_charged_estimate == 1_000_000
        assert bug.overcharge_estimate == 1_000_000 - 803_200
        assert bug.severity == "medium"

    def test_high_severity(self):
        cfg = DryNibConfig(per_word=1_000_000)
        assert per_operation_overcharge([_write(1)], cfg)[0].severity == "high"

    def test_unknown_entity_skipped(self):
        cfg = DryNibConfig(per_word=1_000_000)
        assert per_operation_overcharge([_read(1, entity="unknown")], cfg) == []


class TestRepeatedReads:

    def test_two_reads_are_fine(self):
        assert repeated_read_waste([_read(1), _read(2)]) == []

    def test_three_reads_one_record_at_first_line(self):
        bugs = repeated_read_waste([_read(4), _write(5), _read(6), _read(9)])
        assert len(bugs) == 1
        bug = bugs[0]
        assert bug.line == 4
        assert bug.operation == "repeated storage_read: self.balances"
        assert bug.ink_charged_estimate == 3 * 1_200_000
        assert bug.overcharge_estimate == 2 * 1_200_000
        assert "`self.balances`" in bug.mitigation

    def test_one_record_per_entity(self):
        ops = [_read(n, "a") for n in (1, 2, 3)] + [_read(n, "b") for n in (4, 5, 6)]
        assert [b.operation for b in repeated_read_waste(ops)] == [
            "repeated storage_read: self.a", "repeated storage_read: self.b",
        ]


class TestNestedAccess:

    def test_nested_read_costs(self):
        bugs = nested_access_waste([_read(7, "allowances", NESTED)])
        assert len(bugs) == 1
        bug = bugs[0]
        assert bug.ink_charged_estimate == 2 * 840_000 + 2_100 * 10_000
        assert bug.expected_fair_cost == 840_000 + 100 * 10_000
        assert bug.overcharge_estimate == bug.ink_charged_estimate - bug.expected_fair_cost
        assert "self.allowances.getter(key)" in bug.mitigation

    def test_ink_per_gas(self):
        bug = nested_access_waste([_read(7, "allowances", NESTED)], ink_per_gas=1)[0]
        assert bug.ink_charged_estimate == 1_682_100
        assert bug.expected_fair_cost == 840_100

    def test_single_get_ignored(self):
        assert nested_access_waste([_read(1)]) == []

    def test_default_ratio_outweighs_per_operation_estimate(self):
        op = _read(3, "allowances", NESTED, "storage_read (nested get())")
        single = per_operation_overcharge([op])[0]
        nested = nested_access_waste([op])[0]
        assert nested.ink_charged_estimate == 22_680_000
        assert nested.ink_charged_estimate > 10 * single.ink_charged_estimate
        rescaled = nested_access_waste([op], ink_per_gas=1)[0]
        assert rescaled.ink_charged_estimate < 3 * single.ink_charged_estimate


class TestDetect:

    def test_passes_concatenate_in_order(self):
        nested = _read(2, "allowances", NESTED, "storage_read (nested get())")
        ops = [nested, _read(3), _read(4), _read(5)]
        bugs = detect_dry_nib_bugs(ops)
        assert [(b.line, b.operation) for b in bugs] == [
            (2, "storage_read (nested get())"),
            (3, "repeated storage_read: self.balances"),
            (2, "storage_read (nested get())"),
        ]

    def test_token_transfer_from(self, token_analysis):
        func = token_analysis.find("transfer_from")[0]
        nested_line = line_of(TOKEN_RS, "self.allowances.get(from).get(spender)")
        first_balance_read = line_of(TOKEN_RS, "let from_balance", nth=2)
        assert [b.line for b in func.dry_nib_bugs] == [nested_line, first_balance_read, nested_line]

    def test_repeated_reads_in_body(self, analyze_body):
        func = analyze_body("""
            let x = self.balances.get(a);
            let y = self.balances.get(b);
            let z = self.balances.get(a);
        """)
        repeated = [b for b in func.dry_nib_bugs if b.operation.startswith("repeated")]
        assert len(repeated) == 1
        assert repeated[0].line == 4
