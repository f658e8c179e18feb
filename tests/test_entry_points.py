# tests/test_entry_points.py
"""
Tests for entry-point discovery.
"""

import textwrap

import pytest

from inkwell import ast as A
from inkwell.entry_points import (
    LIFECYCLE_NAMES,
    discover_entry_points,
    is_selector_constant,
    scan_signals,
)
from inkwell.parser import parse_source
from tests.conftest import PRIVATE_ONLY_RS, TOKEN_RS


def _names(source: str):
    result = discover_entry_points(parse_source(textwrap.dedent(source)))
    return [ep.name for ep in result.entry_points]


class TestMarkers:

    def test_token_contract(self, token_tree):
        result = discover_entry_points(token_tree)
        assert [ep.name for ep in result.entry_points] == [
            "balance_of", "transfer", "approve", "transfer_from",
        ]
        assert {ep.impl_type for ep in result.entry_points} == {"Token"}
        assert result.impl_count == 2
        assert result.candidate_count == 6

    @pytest.mark.parametrize("name", sorted(LIFECYCLE_NAMES))
    def test_lifecycle_names_excluded(self, name):
        assert _names(f"#[public]\nimpl X {{ pub fn {name}(&mut self) {{}} }}\n") == []

    def test_marker_on_method(self):
        assert _names("""
            impl X {
                #[external]
                fn ping() {}
                fn pong(&self) {}
            }
        """) == ["ping"]

    def test_marker_with_path(self):
        assert _names("#[stylus_sdk::prelude::public]\nimpl X { fn a(&self) {} }\n") == ["a"]

    def test_marker_admits_private_helpers(self):
        assert _names("#[public]\nimpl X { fn _internal(&self) {} }\n") == ["_internal"]

    def test_bodyless_fn_skipped(self):
        assert _names("#[public]\nimpl X { fn a(&self); }\n") == []


class TestPublicMethods:

    def test_pub_with_self(self):
        assert _names("""
            impl X {
                pub fn get_it(&self) -> u8 { 1 }
                fn hidden(&self) {}
                pub fn make() -> Self { X }
                pub fn _secret(&self) {}
            }
        """) == ["get_it"]

    def test_private_only(self):
        result = discover_entry_points(parse_source(PRIVATE_ONLY_RS))
        assert result.entry_points == ()
        assert result.impl_count == 1
        assert result.candidate_count == 2

    def test_nested_module_impl(self):
        assert _names("mod inner { impl X { pub fn a(&self) {} } }\n") == ["a"]


class TestMacroContracts:

    def test_selector_constants(self):
        assert _names("""
            const A_SELECTOR: u32 = 0x12345678;
            const B_SELECTOR: u32 = 0x87654321;
            impl X {
                fn act(&mut self) {}
                fn _skip(&self) {}
                fn free() {}
            }
        """) == ["act"]

    def test_single_selector_is_not_enough(self):
        assert _names("""
            const A_SELECTOR: u32 = 0x12345678;
            impl X { fn act(&mut self) {} }
        """) == []

    def test_signals_collected_before_impls(self):
        assert _names("""
            impl X { fn act(&mut self) {} }
            const A: [u8; 4] = [0, 0, 0, 1];
            const B: u32 = 0xa9059cbb;
        """) == ["act"]

    def test_dispatcher(self):
        assert _names("""
            fn route(input: &[u8]) {}
            impl X { fn act(&self) {} }
        """) == ["act"]

    def test_override_marker(self):
        assert _names("""
            impl X { fn act(&self) {} }
            fn __stylus_assert_overrides() {}
        """) == ["act"]

    def test_selector_attribute(self):
        assert _names("""
            impl X {
                #[selector(name = "balanceOf")]
                fn balance(&self) {}
                fn other(&self) {}
            }
        """) == ["balance", "other"]

    def test_selectors_inside_macro(self):
        source = textwrap.dedent("""
            contract! {
                const TRANSFER_SELECTOR: u32 = 1;
                const APPROVE_SELECTOR: u32 = 2;
            }
        """)
        signals = scan_signals(parse_source(source))
        assert signals.selector_constants == 2
        assert signals.macro_contract


class TestSelectorConstants:

    def _const(self, text):
        item = parse_source(text).items[0]
        assert isinstance(item, A.ConstItem)
        return item

    @pytest.mark.parametrize("text,expected", [
        ("const TRANSFER_SELECTOR: u32 = 7;", True),
        ("const T: [u8; 4] = [1, 2, 3, 4];", True),
        ("const T: u32 = 0xa905_9cbb;", True),
        ("const T: u32 = 0xa9059cbbu32;", True),
        ("const MAX: u64 = 100;", False),
        ("const T: u64 = 0xa9059cbb00;", False),
    ], ids=["name", "array-type", "hex-underscore", "hex-suffix", "plain", "long-hex"])
    def test_is_selector_constant(self, text, expected):
        assert is_selector_constant(self._const(text)) is expected

    def test_statics_are_not_counted(self):
        source = "static A_SELECTOR: u32 = 1;\nstatic B_SELECTOR: u32 = 2;\n"
        assert scan_signals(parse_source(source)).selector_constants == 0

    def test_token_has_no_signals(self):
        signals = scan_signals(parse_source(TOKEN_RS))
        assert signals.selector_constants == 0
        assert not signals.macro_contract
