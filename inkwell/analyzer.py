"""
inkwell/analyzer.py
===================

Contract analysis driver.

    source text ──parse_source──▶ SourceFile
                ──discover_entry_points──▶ EntryPoint*
                ──analyze_function──▶ FunctionAnalysis*
                ──▶ ContractAnalysis

The driver never returns a partial result: parse failures raise
:class:`~inkwell.errors.ParseError`, a file without entry points raises
:class:`~inkwell.errors.NoEntryPointsError` and an unmatched target
filter raises :class:`~inkwell.errors.UnknownFunctionError`.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from inkwell.config import DEFAULT_CONFIG, AnalysisConfig
from inkwell.entry_points import discover_entry_points
from inkwell.errors import NoEntryPointsError, UnknownFunctionError
from inkwell.function_analyzer import analyze_function
from inkwell.models import ContractAnalysis
from inkwell.parser import parse_source

__all__ = ["analyze_contract", "extract_contract_name"]

log = logging.getLogger(__name__)

_CONTRACT_NAME_RE = re.compile(r"\bpub\s+struct\s+([A-Za-z_]\w*)[^{;]*\{")


def extract_contract_name(source: str) -> str:
    """Name of the first ``pub struct`` with a braced body, else ``"Unknown"``.

    Unit and tuple structs are skipped and generic parameters are not part
    of the name, so ``pub struct Vault<T> { .. }`` yields ``Vault``.

    >>> extract_contract_name("pub struct Token { x: u8 }")
    'Token'
    >>> extract_contract_name("fn main() {}")
    'Unknown'
    """
    match = _CONTRACT_NAME_RE.search(source)
    return match.group(1) if match else "Unknown"


def analyze_contract(source: str, target_function: Optional[str] = None,
                     file_label: str = "src/lib.rs",
                     config: AnalysisConfig = DEFAULT_CONFIG) -> ContractAnalysis:
    """Analyze every entry point of *source*.

    Parameters
    ----------
    source:
        Complete contract source text.
    target_function:
        If given, only entry points with this bare name are analyzed.
    file_label:
        Path shown in reports; never opened.
    config:
        Cost model and detector constants.
    """
    tree = parse_source(source, file_label)
    discovery = discover_entry_points(tree)
    if not discovery.entry_points:
        raise NoEntryPointsError(
            file_label,
            selector_constant_count=discovery.signals.selector_constants,
            impl_count=discovery.impl_count,
            candidate_count=discovery.candidate_count,
        )

    selected = discovery.entry_points
    if target_function is not None:
        selected = tuple(ep for ep in selected if ep.name == target_function)
        if not selected:
            raise UnknownFunctionError(
                target_function, [ep.name for ep in discovery.entry_points], file_label,
            )

    analysis = ContractAnalysis(contract_name=extract_contract_name(source), file=file_label)
    for ep in selected:
        analysis.functions.append(analyze_function(ep.fn, ep.impl_type, config))
    log.info("analyzed %d function(s) of %s", len(analysis.functions), analysis.contract_name)
    return analysis
