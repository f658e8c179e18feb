# tests/test_instrumentor.py
"""
Tests for probe insertion and the generated ``__ink_profiling`` module.
"""

import textwrap

import pytest

from inkwell.errors import ParseError
from inkwell.instrumentor import (
    CFG_OFF,
    CFG_ON,
    MODULE_NAME,
    Edit,
    Instrumentor,
    apply_edits,
    generate_runtime_module,
    instrument_source,
)
from inkwell.runtime import RuntimeThresholds
from tests.conftest import COUNTER_RS, PRIVATE_ONLY_RS, TOKEN_RS, body_of, line_of

_MODULE_START = f"\n\n{CFG_ON}\n#[allow(dead_code)]\npub mod {MODULE_NAME} {{"


def strip_profiling(text: str) -> str:
    """What the compiler sees with the profiling feature off."""
    source = text.split(_MODULE_START, 1)[0] + "\n"
    kept = []
    lines = iter(source.splitlines(keepends=True))
    for line in lines:
        if line.strip() == CFG_ON:
            next(lines)
            continue
        if line.strip() == CFG_OFF:
            continue
        kept.append(line)
    return "".join(kept)


@pytest.fixture(scope="module")
def counter_result():
    return instrument_source(COUNTER_RS, "counter.rs")


@pytest.fixture(scope="module")
def token_result():
    return instrument_source(TOKEN_RS, "token.rs")


class TestEdits:

    def test_apply_in_any_order(self):
        text = "aaa bbb ccc"
        edits = [Edit(0, 3, "A"), Edit(8, 11, "C")]
        assert apply_edits(text, edits) == "A bbb C"
        assert apply_edits(text, list(reversed(edits))) == "A bbb C"

    def test_overlap_rejected(self):
        with pytest.raises(ValueError):
            apply_edits("abcdef", [Edit(0, 4, "x"), Edit(2, 5, "y")])

    def test_no_edits(self):
        assert apply_edits("abc", []) == "abc"


class TestCounter:

    def test_probe_ids(self, counter_result):
        _, ops = counter_result
        assert [(op.probe_id, op.operation_type) for op in ops] == [
            (0, "storage_read"), (1, "storage_write"),
        ]
        assert [op.function for op in ops] == ["bump", "bump"]
        assert ops[0].line == line_of(COUNTER_RS, "let n =")

    def test_read_is_captured(self, counter_result):
        text, _ = counter_result
        expected = textwrap.indent(textwrap.dedent(f'''\
            {CFG_ON}
            let __ink_before_0 = {MODULE_NAME}::probe_before(0);
            {CFG_ON}
            let __ink_result_0 = self.number.get();
            {CFG_ON}
            {MODULE_NAME}::probe_after_with_size(0, __ink_before_0, ::core::mem::size_of_val(&__ink_result_0), Some("storage_read"));
            {CFG_ON}
            let n = __ink_result_0;
            {CFG_OFF}
            let n = self.number.get();
        '''), " " * 8)
        assert expected in text

    def test_write_is_bracketed(self, counter_result):
        text, _ = counter_result
        expected = textwrap.indent(textwrap.dedent(f'''\
            {CFG_ON}
            let __ink_before_1 = {MODULE_NAME}::probe_before(1);
            self.number.set(n + U256::from(1));
            {CFG_ON}
            {MODULE_NAME}::probe_after(1, __ink_before_1, Some("storage_write"));
        '''), " " * 8)
        assert expected in text

    def test_feature_off_is_original(self, counter_result):
        text, _ = counter_result
        assert strip_profiling(text) == COUNTER_RS

    def test_runtime_module_appended(self, counter_result):
        text, _ = counter_result
        assert text.count(f"pub mod {MODULE_NAME} {{") == 1
        assert _MODULE_START in text


class TestToken:

    def test_ids_are_contiguous(self, token_result):
        _, ops = token_result
        assert [op.probe_id for op in ops] == list(range(len(ops)))

    def test_probes_per_function(self, token_result):
        _, ops = token_result
        counts = {}
        for op in ops:
            counts[op.function] = counts.get(op.function, 0) + 1
        assert counts == {"transfer": 6, "approve": 2, "transfer_from": 6}

    def test_transfer_probe_kinds(self, token_result):
        _, ops = token_result
        kinds = [op.operation_type for op in ops if op.function == "transfer"]
        assert kinds == [
            "msg_sender", "storage_read", "storage_write",
            "storage_read", "storage_write", "event_emit",
        ]

    def test_non_entry_points_untouched(self, token_result):
        text, _ = token_result
        assert "self.total_supply.set(U256::ZERO);\n" in text
        assert "    fn _credit(&mut self, to: Address, value: U256) {\n" \
               "        self.balances.insert(to, value);\n" in text

    def test_feature_off_is_original(self, token_result):
        text, _ = token_result
        assert strip_profiling(text) == TOKEN_RS

    def test_rerun_resets_ids(self):
        instrumentor = Instrumentor()
        instrumentor.instrument(COUNTER_RS)
        first = instrumentor.operations
        instrumentor.instrument(COUNTER_RS)
        assert instrumentor.operations == first


class TestTraversal:

    def _instrument(self, statements):
        return instrument_source(body_of(statements))

    def test_nested_blocks(self):
        text, ops = self._instrument("""
            if v > U256::ZERO {
                self.a.insert(a, v);
            } else {
                for i in 0..3 {
                    evm::log(Ping { i });
                }
            }
        """)
        assert [op.operation_type for op in ops] == ["storage_write", "event_emit"]
        assert "\n" + " " * 12 + "let __ink_before_0 = " in text
        assert "\n" + " " * 16 + "let __ink_before_1 = " in text

    def test_probed_statement_is_not_descended(self):
        _, ops = self._instrument("let x = if c { self.a.get(k) } else { self.b.get(k) };")
        assert len(ops) == 1

    def test_match_arm_block(self):
        source = (
            "#[public]\nimpl C {\n    pub fn f(&mut self) {\n"
            "        match k {\n            _ => { msg::sender(); }\n        }\n    }\n}\n"
        )
        _, ops = instrument_source(source)
        assert [op.operation_type for op in ops] == ["msg_sender"]

    def test_plain_statements_not_probed(self):
        _, ops = self._instrument("""
            let x = a;
            require!(v > U256::ZERO, "zero");
            self.helper(x);
        """)
        assert ops == []

    def test_tail_expression_not_probed(self):
        _, ops = instrument_source("#[public]\nimpl C { pub fn f(&self) -> U256 { self.a.get(k) } }\n")
        assert ops == []

    def test_let_else_rebind(self):
        text, _ = self._instrument("let Some(x) = self.a.get(k) else { return; };")
        assert "let Some(x) = __ink_result_0 else { return; };" in text

    def test_typed_let_keeps_annotation(self):
        text, _ = self._instrument("let x: U256 = self.a.get(k);")
        assert "let __ink_result_0: U256 = self.a.get(k);" in text
        assert "let x: U256 = __ink_result_0;" in text

    def test_module_path_in_inline_module(self):
        source = "mod inner {\n    #[public]\n    impl C {\n        pub fn f(&self) { let x = self.a.get(k); }\n    }\n}\n"
        text, _ = instrument_source(source)
        assert f"super::{MODULE_NAME}::probe_before(0)" in text

    def test_no_entry_points_only_appends_module(self):
        text, ops = instrument_source(PRIVATE_ONLY_RS)
        assert ops == []
        assert text.startswith(PRIVATE_ONLY_RS)

    def test_parse_error(self):
        with pytest.raises(ParseError):
            instrument_source("impl X { fn f( }")


class TestRuntimeModule:

    def test_thresholds_are_baked_in(self):
        code = generate_runtime_module(RuntimeThresholds(storage_read=1, tolerance=2))
        assert "const STORAGE_READ_BASE: u64 = 1;" in code
        assert "const TOLERANCE: u64 = 2;" in code
        assert "const STORAGE_WRITE_BASE: u64 = 900000;" in code

    def test_structure(self):
        code = generate_runtime_module()
        assert code.startswith(f"{CFG_ON}\n#[allow(dead_code)]\npub mod {MODULE_NAME} {{\n")
        assert code.rstrip().endswith("}")
        assert code.count("{") == code.count("}")
        for helper in ("pub fn init()", "pub fn dump_report() -> String",
                       "pub fn probe_before(id: u32) -> u64",
                       "pub fn probe_after(id: u32, before: u64, operation_type: Option<&str>)",
                       "pub fn probe_after_with_size(id: u32, before: u64, size: usize, "
                       "operation_type: Option<&str>)"):
            assert helper in code

    def test_report_format_matches_parser(self):
        code = generate_runtime_module()
        assert "Total ink used: ~{} (start → current)" in code
        assert "Probe #{} ({}): {} ink consumed (before={}, after={})" in code
        assert "=== DRY NIB OVERCHARGE BUGS DETECTED ===" in code

    def test_counter_per_target(self):
        code = generate_runtime_module()
        assert "stylus_sdk::hostio::ink_left()" in code
        assert code.count("fn read_ink_counter() -> u64") == 2
