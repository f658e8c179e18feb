# tests/test_printer.py
"""
Tests for canonical rendering of AST nodes.
"""

import pytest

from inkwell import ast as A
from inkwell.parser import parse_source
from inkwell.printer import Printer, render


def _stmt(text: str):
    return parse_source("fn f(&mut self) {\n" + text + "\n}\n").items[0].body.stmts[0]


class TestRender:

    @pytest.mark.parametrize("source,expected", [
        ("self . balances\n    .get( to );", "self.balances.get(to)"),
        ("msg::sender ( );", "msg::sender()"),
        ("a+b*c;", "a + b * c"),
        ("x = y;", "x = y"),
        ("self.total += v;", "self.total += v"),
        ("self.owners[ i ];", "self.owners[i]"),
        ("f(a,b,);", "f(a, b)"),
        ("-x;", "-x"),
        ("&mut x;", "&mut x"),
        ("x as u64;", "x as u64"),
        ("x?;", "x?"),
        ("(a, b);", "(a, b)"),
        ("[0u8; 32];", "[0u8; 32]"),
        ("0..n;", "0..n"),
        ("return;", "return"),
        ("Point { x: 1, y };", "Point { x: 1, y }"),
    ], ids=[
        "method-chain", "call", "binary", "assign", "compound", "index", "args",
        "neg", "ref-mut", "cast", "try", "tuple", "repeat", "range", "return", "struct",
    ])
    def test_expression(self, source, expected):
        assert render(_stmt(source).expr) == expected

    def test_let_statement(self):
        assert render(_stmt("let x: U256 = self.a.get(k);")) == "let x: U256 = self.a.get(k);"

    def test_block_like(self):
        stmt = _stmt("if a { b(); } else { c(); }")
        assert render(stmt.expr) == "if a { b(); } else { c(); }"

    def test_match(self):
        stmt = _stmt("match k { 0 => a, _ => b }")
        assert render(stmt.expr) == "match k { 0 => a, _ => b }"

    def test_empty_block(self):
        assert render(A.Block(stmts=())) == "{}"

    def test_none_renders_empty(self):
        assert render(None) == ""

    def test_unknown_node(self):
        with pytest.raises(TypeError):
            Printer().render(object())
