# tests/conftest.py
"""
Shared contract sources and fixtures.
"""

import textwrap

import pytest

from inkwell.analyzer import analyze_contract
from inkwell.parser import parse_source


TOKEN_RS = textwrap.dedent('''\
    #![cfg_attr(not(feature = "export-abi"), no_main)]
    extern crate alloc;

    use stylus_sdk::{alloy_primitives::{Address, U256}, evm, msg, prelude::*};

    sol_storage! {
        #[entrypoint]
        pub struct Token {
            mapping(address => uint256) balances;
            mapping(address => mapping(address => uint256)) allowances;
            uint256 total_supply;
        }
    }

    sol! {
        event Transfer(address indexed from, address indexed to, uint256 value);
    }

    #[public]
    impl Token {
        pub fn balance_of(&self, owner: Address) -> U256 {
            self.balances.get(owner)
        }

        pub fn transfer(&mut self, to: Address, value: U256) -> bool {
            let from = msg::sender();
            let from_balance = self.balances.get(from);
            require!(from_balance >= value, "insufficient balance");
            self.balances.insert(from, from_balance - value);
            let to_balance = self.balances.get(to);
            self.balances.insert(to, to_balance + value);
            evm::log(Transfer { from, to, value });
            true
        }

        pub fn approve(&mut self, spender: Address, value: U256) -> bool {
            let owner = msg::sender();
            self.allowances.setter(owner).insert(spender, value);
            true
        }

        pub fn transfer_from(&mut self, from: Address, to: Address, value: U256) -> bool {
            let spender = msg::sender();
            let allowed = self.allowances.get(from).get(spender);
            require!(allowed >= value, "allowance exceeded");
            let from_balance = self.balances.get(from);
            self.balances.insert(from, from_balance - value);
            self.balances.insert(to, self.balances.get(to) + value);
            evm::log(Transfer { from, to, value });
            true
        }

        pub fn new(&mut self) {
            self.total_supply.set(U256::ZERO);
        }
    }

    impl Token {
        fn _credit(&mut self, to: Address, value: U256) {
            self.balances.insert(to, value);
        }
    }
''')


COUNTER_RS = textwrap.dedent('''\
    sol_storage! {
        #[entrypoint]
        pub struct Counter {
            uint256 number;
        }
    }

    #[public]
    impl Counter {
        pub fn bump(&mut self) {
            let n = self.number.get();
            self.number.set(n + U256::from(1));
        }
    }
''')


PRIVATE_ONLY_RS = textwrap.dedent('''\
    pub struct Vault {
        owner: Address,
    }

    impl Vault {
        fn _sweep(&mut self) {
            self.owner = Address::ZERO;
        }

        fn helper(x: u64) -> u64 {
            x + 1
        }
    }
''')


def line_of(source: str, needle: str, nth: int = 1) -> int:
    """1-based line of the *nth* line containing *needle*."""
    seen = 0
    for number, line in enumerate(source.splitlines(), start=1):
        if needle in line:
            seen += 1
            if seen == nth:
                return number
    raise AssertionError(f"{needle!r} not found")


def body_of(statements: str) -> str:
    """Wrap statements in a single public entry point."""
    body = textwrap.indent(textwrap.dedent(statements).strip("\n"), " " * 8)
    return (
        "#[public]\n"
        "impl C {\n"
        "    pub fn f(&mut self, a: Address, b: Address, v: U256) {\n"
        f"{body}\n"
        "    }\n"
        "}\n"
    )


@pytest.fixture(scope="module")
def token_tree():
    return parse_source(TOKEN_RS, "token.rs")


@pytest.fixture(scope="module")
def token_analysis():
    return analyze_contract(TOKEN_RS, file_label="token.rs")


@pytest.fixture
def analyze_body():
    """Analyze statements placed in a one-function contract; returns the FunctionAnalysis."""
    def run(statements: str, **kwargs):
        analysis = analyze_contract(body_of(statements), **kwargs)
        assert len(analysis.functions) == 1
        return analysis.functions[0]
    return run
