"""inkwell: static ink-cost estimation for Stylus contracts.

This package reads the Rust source of an Arbitrum Stylus contract,
estimates the ink every entry point is expected to burn, and can rewrite
the source with runtime probes that measure the real figures.

Submodules
----------
parser, grammar, ast, printer
    ``parsimonious`` front-end producing a frozen syntax tree and its
    canonical single-line rendering.

classifier, cost_model, entity
    Expression classification into costed operations.

function_analyzer, dry_nib, optimizations
    Per-function totals, hotspots, dry-nib findings and rewrite
    suggestions.

entry_points, analyzer
    Entry-point discovery and the contract-level driver.

instrumentor, codegen, runtime
    Probe insertion, the generated ``__ink_profiling`` module and its
    Python twin used to re-check dumped runtime reports.

report, main
    Report renderers and the ``inkwell`` command line.

models, config, errors
    Result records, tunable constants and the error hierarchy.

Usage
-----
Command-line::

    inkwell dip src/lib.rs -o detailed
    inkwell instrument src/lib.rs -o src/lib_profiled.rs

Python API::

    from inkwell.analyzer import analyze_contract
    analysis = analyze_contract(open("src/lib.rs").read())
    print(analysis.total_ink)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
