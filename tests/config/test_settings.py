"""Tests for YAML-driven engine settings (sales_config)."""

from decimal import Decimal

import pytest
import yaml

from sales_config import DEFAULT_SETTINGS_PATH, get_active_settings
from sales_config.loader import compute_checksum, load_settings, parse_settings
from sales_config.schema import EngineSettings


def _write(tmp_path, data: dict):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    """The packaged defaults.yaml matches the schema defaults."""

    def test_packaged_file_loads(self):
        settings = load_settings(DEFAULT_SETTINGS_PATH)
        assert settings == EngineSettings.with_defaults()

    def test_constants(self):
        settings = EngineSettings.with_defaults()
        assert settings.monthly_discount_rate == Decimal("0.005")
        assert settings.days_per_month == 30
        assert settings.money_tolerance == Decimal("0.01")
        assert settings.commission_tolerance == Decimal("0.05")
        assert settings.proposal_validity_days == 2

    def test_decimals_are_exact(self):
        settings = load_settings(DEFAULT_SETTINGS_PATH)
        assert isinstance(settings.monthly_discount_rate, Decimal)
        assert str(settings.commission_tolerance) == "0.05"


class TestParsing:

    def test_override_file(self, tmp_path):
        path = _write(tmp_path, {
            "present_value": {"monthly_discount_rate": "0.01"},
            "proposal": {"validity_days": 5},
        })
        settings = load_settings(path)
        assert settings.monthly_discount_rate == Decimal("0.01")
        assert settings.proposal_validity_days == 5
        # Unspecified keys keep their defaults
        assert settings.money_tolerance == Decimal("0.01")

    def test_float_rejected(self):
        with pytest.raises(ValueError, match="quoted"):
            parse_settings({"tolerances": {"money": 0.01}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown setting: tolerances.rounding"):
            parse_settings({"tolerances": {"rounding": "0.01"}})

    def test_display_places_is_not_a_setting(self):
        with pytest.raises(ValueError, match="Unknown setting: proposal.display_places"):
            parse_settings({"proposal": {"display_places": 3}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_settings({"proposal": 2})

    def test_non_integer_rejected(self):
        with pytest.raises(ValueError, match="integer"):
            parse_settings({"proposal": {"validity_days": "two"}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")


class TestValidation:

    @pytest.mark.parametrize("changes", [
        {"monthly_discount_rate": Decimal("-0.001")},
        {"monthly_discount_rate": Decimal("1")},
        {"days_per_month": 0},
        {"money_tolerance": Decimal("0")},
        {"proposal_validity_days": -1},
    ])
    def test_invalid_values(self, changes):
        with pytest.raises(ValueError):
            EngineSettings(**changes)

    def test_from_dict_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown engine settings: bogus"):
            EngineSettings.from_dict({"bogus": 1})


class TestChecksumAndTrace:

    def test_checksum_deterministic(self):
        assert compute_checksum(EngineSettings()) == compute_checksum(EngineSettings())

    def test_checksum_changes_with_values(self):
        other = EngineSettings(monthly_discount_rate=Decimal("0.006"))
        assert compute_checksum(EngineSettings()) != compute_checksum(other)

    def test_active_settings_emit_trace(self, captured_logs):
        settings = get_active_settings()
        traces = [r for r in captured_logs() if r["message"] == "SALES_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == compute_checksum(settings)
        assert traces[0]["source"] == str(DEFAULT_SETTINGS_PATH)
