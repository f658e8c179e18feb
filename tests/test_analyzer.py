# tests/test_analyzer.py
"""
Tests for the contract-level driver.
"""

import json

import pytest

from inkwell.analyzer import analyze_contract, extract_contract_name
from inkwell.errors import NoEntryPointsError, ParseError, UnknownFunctionError
from tests.conftest import COUNTER_RS, PRIVATE_ONLY_RS, TOKEN_RS


class TestContractName:

    @pytest.mark.parametrize("source,expected", [
        (TOKEN_RS, "Token"),
        (COUNTER_RS, "Counter"),
        ("pub struct Wrapper(u8);\npub struct Real<T> where T: Copy { x: T }", "Real"),
        ("pub struct Marker;\npub struct Vault<T> { x: T }", "Vault"),
        ("struct Hidden { x: u8 }", "Unknown"),
    ], ids=["token", "counter", "skips-tuple-struct", "skips-unit-struct-drops-generics", "private"])
    def test_extract_contract_name(self, source, expected):
        assert extract_contract_name(source) == expected


class TestAnalyzeContract:

    def test_all_entry_points_in_source_order(self, token_analysis):
        assert token_analysis.contract_name == "Token"
        assert token_analysis.file == "token.rs"
        assert [f.name for f in token_analysis.functions] == [
            "balance_of", "transfer", "approve", "transfer_from",
        ]

    def test_contract_total(self, token_analysis):
        assert token_analysis.total_ink == sum(f.total_ink for f in token_analysis.functions)

    def test_target_function(self):
        analysis = analyze_contract(TOKEN_RS, target_function="approve")
        assert [f.name for f in analysis.functions] == ["approve"]

    def test_unknown_function(self):
        with pytest.raises(UnknownFunctionError) as info:
            analyze_contract(TOKEN_RS, target_function="mint", file_label="token.rs")
        err = info.value
        assert err.name == "mint"
        assert err.available == ["balance_of", "transfer", "approve", "transfer_from"]
        assert "entry points: balance_of, transfer, approve, transfer_from" in err.to_gcc_format()

    def test_lifecycle_name_is_unknown(self):
        with pytest.raises(UnknownFunctionError):
            analyze_contract(TOKEN_RS, target_function="new")

    def test_no_entry_points(self):
        with pytest.raises(NoEntryPointsError) as info:
            analyze_contract(PRIVATE_ONLY_RS, file_label="vault.rs")
        err = info.value
        assert err.impl_count == 1
        assert err.candidate_count == 2
        assert err.selector_constant_count == 0
        text = err.to_gcc_format()
        assert text.startswith("vault.rs: error: no entry points found")
        assert "possible cause:" in text
        assert "#[public]" in err.hint

    def test_no_entry_points_with_selector_hint(self):
        source = "const A_SELECTOR: u32 = 1;\nimpl X { fn _a(&self) {} }\n"
        with pytest.raises(NoEntryPointsError) as info:
            analyze_contract(source)
        assert info.value.selector_constant_count == 1
        assert "cargo expand" in info.value.hint

    def test_parse_error_propagates(self):
        with pytest.raises(ParseError):
            analyze_contract("impl X { fn broken( }\n")

    def test_duplicate_names_are_kept(self):
        source = (
            "#[public]\nimpl A { pub fn get(&self) -> U256 { self.x.get() } }\n"
            "#[public]\nimpl B { pub fn get(&self) -> U256 { self.y.get() } }\n"
        )
        analysis = analyze_contract(source)
        found = analysis.find("get")
        assert [f.impl_type for f in found] == ["A", "B"]
        assert len(analyze_contract(source, target_function="get").functions) == 2

    def test_to_dict_is_json(self, token_analysis):
        data = json.loads(json.dumps(token_analysis.to_dict()))
        assert data["contract_name"] == "Token"
        func = data["functions"][1]
        assert set(func) == {
            "name", "signature", "line", "impl_type", "total_ink", "gas_equivalent",
            "operations", "categories", "optimizations", "hotspots", "dry_nib_bugs",
        }
        assert set(func["operations"][0]) == {
            "line", "code", "operation", "entity", "ink", "category", "severity",
            "column", "percentage",
        }

    def test_counter(self):
        analysis = analyze_contract(COUNTER_RS)
        bump = analysis.functions[0]
        assert bump.name == "bump"
        assert [op.operation for op in bump.operations][0] == "storage_read (get())"
        assert bump.operations[0].entity == "number"
