# tests/test_function_analyzer.py
"""
Tests for per-function aggregation: totals, percentages, categories, hotspots.
"""

import pytest

from inkwell.config import AnalysisConfig
from inkwell.cost_model import CostModel
from inkwell.function_analyzer import category_stats, fill_percentages, rank_hotspots
from inkwell.models import Operation
from tests.conftest import TOKEN_RS, line_of


def _op(ink, category="storage_read", line=1, operation="op"):
    return Operation(line=line, code="", operation=operation, entity="unknown",
                     ink=ink, category=category, severity="low")


@pytest.fixture(scope="module")
def transfer(token_analysis):
    return token_analysis.find("transfer")[0]


class TestHelpers:

    def test_fill_percentages(self):
        ops = [_op(100), _op(300)]
        assert fill_percentages(ops) == 400
        assert [op.percentage for op in ops] == [25.0, 75.0]

    def test_fill_percentages_zero_total(self):
        ops = [_op(0), _op(0)]
        assert fill_percentages(ops) == 0
        assert all(op.percentage == 0.0 for op in ops)

    def test_category_stats_first_seen_order(self):
        ops = [_op(10, "event"), _op(5, "storage_read"), _op(6, "event")]
        stats = category_stats(ops)
        assert list(stats) == ["event", "storage_read"]
        assert stats["event"].count == 2
        assert stats["event"].total_ink == 16
        assert stats["event"].avg_per_op == 8
        assert stats["storage_read"].percentage == pytest.approx(5 / 21 * 100)

    def test_category_stats_empty(self):
        assert category_stats([]) == {}

    def test_rank_hotspots_strictly_above_threshold(self):
        ops = [_op(100, line=1), _op(50, line=2), _op(101, line=3)]
        spots = rank_hotspots(ops, 100)
        assert [(s.line, s.rank) for s in spots] == [(3, 1)]

    def test_rank_hotspots_ties_keep_encounter_order(self):
        ops = [_op(5, line=1), _op(9, line=2), _op(5, line=3)]
        spots = rank_hotspots(ops, 0)
        assert [s.line for s in spots] == [2, 1, 3]
        assert [s.rank for s in spots] == [1, 2, 3]


class TestTokenTransfer:

    def test_metadata(self, transfer):
        assert transfer.signature == "pub fn transfer(&mut self, to: Address, value: U256) -> bool"
        assert transfer.impl_type == "Token"
        assert transfer.line == line_of(TOKEN_RS, "pub fn transfer(")

    def test_total_and_gas(self, transfer):
        assert transfer.total_ink == 15_600_000
        assert transfer.gas_equivalent == 1_560

    def test_total_is_sum_of_operations(self, transfer):
        assert transfer.total_ink == sum(op.ink for op in transfer.operations)

    def test_percentages_sum_to_100(self, transfer):
        assert sum(op.percentage for op in transfer.operations) == pytest.approx(100.0)

    def test_category_order(self, transfer):
        assert list(transfer.categories) == [
            "evm_context", "storage_read", "control_flow", "storage_write", "event",
        ]
        assert sum(c.count for c in transfer.categories.values()) == len(transfer.operations)

    def test_hotspots_ranked(self, transfer):
        ranks = [h.rank for h in transfer.hotspots]
        assert ranks == list(range(1, len(ranks) + 1))
        inks = [h.ink for h in transfer.hotspots]
        assert inks == sorted(inks, reverse=True)
        assert all(ink > 1_000_000 for ink in inks)
        assert transfer.hotspots[0].line == line_of(TOKEN_RS, "self.balances.insert(from")

    def test_no_dry_nib_on_plain_reads(self, transfer):
        assert transfer.dry_nib_bugs == []

    def test_cache_suggestion(self, transfer):
        assert [o.id for o in transfer.optimizations] == ["cache_balances"]
        opt = transfer.optimizations[0]
        first = line_of(TOKEN_RS, "let from_balance")
        second = line_of(TOKEN_RS, "let to_balance")
        assert opt.current_code == f"// Reads at lines: [{first}, {second}]"
        assert opt.estimated_savings_ink == 1_200_000


class TestBodies:

    def test_empty_body(self, analyze_body):
        func = analyze_body("")
        assert func.total_ink == 0
        assert func.operations == []
        assert func.categories == {}
        assert func.hotspots == []

    def test_operations_in_encounter_order(self, analyze_body):
        func = analyze_body("""
            let who = msg::sender();
            evm::log(Ping { who });
        """)
        assert [op.operation for op in func.operations] == ["msg::sender()", "event_emit"]
        assert [op.line for op in func.operations] == [4, 5]

    def test_config_drives_costs(self, analyze_body):
        config = AnalysisConfig(cost_model=CostModel(event=1_000), ink_per_gas=100)
        func = analyze_body("evm::log(Ping { a });", config=config)
        assert func.total_ink == 1_000
        assert func.gas_equivalent == 10

    def test_hotspot_threshold_from_config(self, analyze_body):
        config = AnalysisConfig(hotspot_threshold=0)
        func = analyze_body("let who = msg::sender();", config=config)
        assert len(func.hotspots) == 1
