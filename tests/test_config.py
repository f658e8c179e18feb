# tests/test_config.py
"""
Tests for configuration defaults and JSON loading.
"""

import json
import logging

import pytest

from inkwell.config import (
    DEFAULT_CONFIG,
    AnalysisConfig,
    DryNibConfig,
    OptimizationConfig,
    config_from_dict,
    load_config,
)
from inkwell.cost_model import CostModel
from inkwell.errors import ConfigError
from inkwell.runtime import RuntimeThresholds


class TestDefaults:

    def test_top_level(self):
        assert DEFAULT_CONFIG.hotspot_threshold == 1_000_000
        assert DEFAULT_CONFIG.ink_per_gas == 10_000
        assert DEFAULT_CONFIG.validate() == []

    def test_cost_model(self):
        model = DEFAULT_CONFIG.cost_model
        assert model.storage_read == 1_200_000
        assert model.storage_write == 1_500_000
        assert model.embedded_read_write == 2_400_000
        assert model.identity == 200_000
        assert model.event == 350_000
        assert model.control_flow == 50_000
        assert model.validate() == []

    def test_to_dict_sections(self):
        data = DEFAULT_CONFIG.to_dict()
        assert set(data) == {
            "cost_model", "dry_nib", "optimizations", "runtime",
            "hotspot_threshold", "ink_per_gas",
        }
        assert data["runtime"]["storage_read"] == 650_000
        assert data["dry_nib"]["per_word"] == 1_000


class TestCostModel:

    @pytest.mark.parametrize("operation,category,expected", [
        ("storage_read (get())", "storage_read", 1_200_000),
        ("storage_read (nested get())", "storage_read", 2_000_000),
        ("storage_write (embedded_read)", "storage_write", 2_400_000),
        ("msg::sender()", "evm_context", 200_000),
        ("msg::value()", "evm_context", 250_000),
        ("block::timestamp()", "evm_context", 300_000),
        ("unknown", "nothing", 50_000),
    ], ids=["read", "nested", "embedded", "sender", "value", "block", "default"])
    def test_cost(self, operation, category, expected):
        assert CostModel().cost(operation, category) == expected

    def test_ordering_warnings(self):
        warnings = CostModel(storage_write=3_000_000, identity=400_000).validate()
        assert any("external_call" in w for w in warnings)
        assert any("identity < value" in w for w in warnings)


class TestFromDict:

    def test_empty_is_default(self):
        assert config_from_dict({}) == AnalysisConfig()

    def test_overrides(self):
        config = config_from_dict({
            "cost_model": {"storage_read": 1_000_000},
            "dry_nib": {"per_word": 50},
            "optimizations": {"redundant_read_savings_pct": 40},
            "runtime": {"tolerance": 1},
            "hotspot_threshold": 5,
        })
        assert config.cost_model.storage_read == 1_000_000
        assert config.cost_model.storage_write == 1_500_000
        assert config.dry_nib == DryNibConfig(per_word=50)
        assert config.optimizations == OptimizationConfig(redundant_read_savings_pct=40.0)
        assert isinstance(config.optimizations.redundant_read_savings_pct, float)
        assert config.runtime == RuntimeThresholds(tolerance=1)
        assert config.hotspot_threshold == 5

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError) as info:
            config_from_dict({"costs": {}})
        text = info.value.to_gcc_format()
        assert "unknown configuration key(s): costs" in text
        assert "known keys:" in text

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="unknown key"):
            config_from_dict({"dry_nib": {"per_wrod": 1}})

    @pytest.mark.parametrize("data", [
        {"cost_model": {"storage_read": True}},
        {"cost_model": {"storage_read": "1"}},
        {"runtime": []},
        {"ink_per_gas": 1.5},
        [],
    ], ids=["bool", "string", "section-type", "float-scalar", "not-object"])
    def test_bad_types(self, data):
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_negative_value(self):
        with pytest.raises(ConfigError, match="invalid configuration"):
            config_from_dict({"cost_model": {"event": -1}})

    def test_zero_ink_per_gas(self):
        with pytest.raises(ConfigError, match="ink_per_gas must be positive"):
            config_from_dict({"ink_per_gas": 0})

    def test_soft_warnings_are_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="inkwell.config"):
            config = config_from_dict({"cost_model": {"crypto": 9_000_000}}, "ink.json")
        assert config.cost_model.crypto == 9_000_000
        assert "ink.json: external_call should be the highest flat cost" in caplog.text


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "ink.json"
        path.write_text(json.dumps({"ink_per_gas": 1_000}), encoding="utf-8")
        assert load_config(str(path)).ink_per_gas == 1_000

    def test_bad_json_position(self, tmp_path):
        path = tmp_path / "ink.json"
        path.write_text('{\n  "ink_per_gas": ,\n}\n', encoding="utf-8")
        with pytest.raises(ConfigError) as info:
            load_config(str(path))
        span = info.value.span
        assert span.file == str(path)
        assert span.line == 2
        assert "not valid JSON" in info.value.message

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read configuration"):
            load_config(str(tmp_path / "absent.json"))

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "ink.json"
        path.write_bytes(b'{"ink_per_gas": 1}\xff\xfe')
        with pytest.raises(ConfigError, match="not valid UTF-8"):
            load_config(str(path))
