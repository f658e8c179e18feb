# tests/test_cli.py
"""
End-to-end tests of the ``inkwell`` command line.
"""

import json
import logging

import pytest

from inkwell import __version__
from inkwell.main import EXIT_ANALYSIS, EXIT_INFRA, EXIT_OK, build_parser, main
from inkwell.runtime import InkTracker
from tests.conftest import COUNTER_RS, PRIVATE_ONLY_RS, TOKEN_RS


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("inkwell")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "token.rs"
    path.write_text(TOKEN_RS, encoding="utf-8")
    return path


class TestParser:

    @pytest.mark.parametrize("alias", ["dip", "d", "analyze"])
    def test_dip_aliases(self, alias):
        args = build_parser().parse_args([alias, "x.rs"])
        assert args.file == "x.rs"
        assert args.output == "compact"
        assert args.threshold is None

    def test_bad_format_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["dip", "x.rs", "-o", "html"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == EXIT_OK
        assert "<command>" in capsys.readouterr().out


class TestDip:

    def test_compact(self, token_file, capsys):
        assert main(["dip", str(token_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "INKWELL STAIN REPORT" in out
        assert out.count("Function: ") == 4

    def test_json_single_function(self, token_file, capsys):
        assert main(["d", str(token_file), "-f", "transfer", "-o", "json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["file"] == str(token_file)
        assert [f["name"] for f in data["functions"]] == ["transfer"]
        assert data["functions"][0]["total_ink"] == 15_600_000

    def test_detailed_threshold(self, token_file, capsys):
        assert main(["dip", str(token_file), "-o", "detailed", "--threshold", "100"]) == EXIT_OK
        assert "* = at or above 100 ink" in capsys.readouterr().out

    def test_unknown_function(self, token_file, capsys):
        assert main(["dip", str(token_file), "-f", "mint"]) == EXIT_ANALYSIS
        err = capsys.readouterr().err
        assert "function `mint` is not an entry point" in err
        assert "[INK-2001]" in err

    def test_no_entry_points(self, tmp_path, capsys):
        path = tmp_path / "vault.rs"
        path.write_text(PRIVATE_ONLY_RS, encoding="utf-8")
        assert main(["dip", str(path)]) == EXIT_ANALYSIS
        assert "no entry points found" in capsys.readouterr().err

    def test_parse_error(self, tmp_path, capsys):
        path = tmp_path / "bad.rs"
        path.write_text("impl X { fn f( }\n", encoding="utf-8")
        assert main(["dip", str(path)]) == EXIT_ANALYSIS
        assert capsys.readouterr().err.startswith(f"{path}:1:")

    def test_missing_file(self, tmp_path, capsys):
        path = tmp_path / "absent.rs"
        assert main(["dip", str(path)]) == EXIT_INFRA
        assert f"{path}: error: cannot read file" in capsys.readouterr().err

    def test_bad_config(self, token_file, tmp_path, capsys):
        config = tmp_path / "ink.json"
        config.write_text('{"cost_model": {"storage_red": 1}}', encoding="utf-8")
        assert main(["dip", str(token_file), "--config", str(config)]) == EXIT_INFRA
        assert "unknown key(s) in `cost_model`: storage_red" in capsys.readouterr().err

    def test_config_changes_costs(self, token_file, tmp_path, capsys):
        config = tmp_path / "ink.json"
        config.write_text('{"cost_model": {"event": 0}}', encoding="utf-8")
        assert main(["dip", str(token_file), "-f", "transfer", "-o", "json",
                     "--config", str(config)]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["functions"][0]["total_ink"] == 15_600_000 - 350_000


class TestInstrument:

    def test_to_stdout(self, tmp_path, capsys):
        path = tmp_path / "counter.rs"
        path.write_text(COUNTER_RS, encoding="utf-8")
        assert main(["instrument", str(path)]) == EXIT_OK
        captured = capsys.readouterr()
        assert "pub mod __ink_profiling" in captured.out
        assert captured.err.startswith("Inserted 2 probe(s)\n")

    def test_to_file(self, token_file, tmp_path, capsys):
        out_path = tmp_path / "token_profiled.rs"
        assert main(["i", str(token_file), "-o", str(out_path)]) == EXIT_OK
        listing = capsys.readouterr().out
        assert listing.startswith("Inserted 14 probe(s)\n")
        assert "  #0   msg_sender     line " in listing
        assert "__ink_profiling::probe_before(0)" in out_path.read_text(encoding="utf-8")

    def test_runtime_config(self, token_file, tmp_path, capsys):
        config = tmp_path / "ink.json"
        config.write_text('{"runtime": {"tolerance": 7}}', encoding="utf-8")
        assert main(["instrument", str(token_file), "--config", str(config)]) == EXIT_OK
        assert "const TOLERANCE: u64 = 7;" in capsys.readouterr().out

    def test_parse_error(self, tmp_path, capsys):
        path = tmp_path / "bad.rs"
        path.write_text("fn (", encoding="utf-8")
        assert main(["instrument", str(path)]) == EXIT_ANALYSIS


class TestReport:

    @pytest.fixture
    def report_file(self, tmp_path):
        tracker = InkTracker(counter=lambda: 0)
        tracker.init()
        tracker.record_measurement(0, 1_000_000, 0, "storage_read", return_size=32)
        tracker.record_measurement(1, 1_000_000, 900_000, "msg_sender")
        path = tmp_path / "ink-report.txt"
        path.write_text(tracker.dump_report(), encoding="utf-8")
        return path

    def test_recheck(self, report_file, capsys):
        assert main(["report", str(report_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Probe #0 (storage_read): 1000000 ink consumed" in out
        assert "\U0001F41B Probe 0: storage_read" in out
        assert "Probe 1:" not in out

    def test_recheck_with_config(self, report_file, tmp_path, capsys):
        config = tmp_path / "ink.json"
        config.write_text('{"runtime": {"storage_read": 2000000}}', encoding="utf-8")
        assert main(["report", str(report_file), "--config", str(config)]) == EXIT_OK
        assert "DRY NIB" not in capsys.readouterr().out

    def test_missing_report(self, tmp_path, capsys):
        assert main(["report", str(tmp_path / "none.txt")]) == EXIT_INFRA


class TestUnreadableInput:

    @pytest.fixture
    def latin1_file(self, tmp_path):
        path = tmp_path / "latin1.rs"
        path.write_bytes(b"// caf\xe9\npub struct S {}\n\xff\xfe\n")
        return path

    @pytest.mark.parametrize("command", ["dip", "instrument", "report"])
    def test_not_utf8(self, command, latin1_file, capsys):
        assert main([command, str(latin1_file)]) == EXIT_INFRA
        err = capsys.readouterr().err
        assert f"{latin1_file}: error: cannot read file: not valid UTF-8" in err

    def test_config_not_utf8(self, token_file, tmp_path, capsys):
        config = tmp_path / "ink.json"
        config.write_bytes(b"{\xff}")
        assert main(["dip", str(token_file), "--config", str(config)]) == EXIT_INFRA
        assert "configuration is not valid UTF-8" in capsys.readouterr().err
