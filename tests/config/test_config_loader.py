"""
Tests for configuration loading and validation.

Covers:
- The shipped default set parses into engine tables and plans
- FINANCE_CONFIG_TRACE on load and deterministic checksums
- Plan lookup by role and metric
- Validation collects every error; warnings do not block loading
"""

import copy
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

import fincalc_config
from fincalc_config import compute_checksum, get_active_config, validate_configuration
from fincalc_config.loader import load_yaml_file, parse_decimal
from fincalc_engines.incentive import DEFAULT_TIERS
from fincalc_engines.withholding_tax import PtkpCode, TaxBracketCalculator
from fincalc_kernel.domain.values import Money
from fincalc_kernel.exceptions import ConfigValidationError

DEFAULT_ROOT = Path(fincalc_config.__file__).parent / "sets" / "default" / "root.yaml"


@pytest.fixture
def default_doc():
    return load_yaml_file(DEFAULT_ROOT)


def write_set(base: Path, name: str, doc: dict) -> Path:
    set_dir = base / name
    set_dir.mkdir(parents=True)
    (set_dir / "root.yaml").write_text(yaml.safe_dump(doc))
    return base


class TestDefaultSet:
    """The configuration shipped with the package."""

    def test_identity(self, engine_config):
        assert engine_config.config_id == "ID-FINCALC-2025-v1"
        assert engine_config.version == 1
        assert len(engine_config.checksum) == 64

    def test_scope(self, engine_config):
        assert engine_config.scope.currency == "IDR"
        assert engine_config.scope.covers(date(2025, 6, 1))
        assert not engine_config.scope.covers(date(2021, 12, 31))

    def test_tax_table_matches_reference(self, engine_config):
        table = engine_config.withholding_tax
        assert table.ptkp[PtkpCode.K3] == Decimal("72000000")
        assert len(table.brackets) == 5
        assert table.brackets[0].rate == Decimal("0.05")
        estimate = TaxBracketCalculator(table).estimate(basic_salary=10_000_000, has_npwp=True)
        assert estimate.monthly_tax == Money.of(325_000)

    def test_posting_accounts(self, engine_config):
        accounts = engine_config.posting_accounts
        assert accounts.cash == "1-1100"
        assert accounts.depreciation_expense != accounts.accumulated_depreciation

    def test_policies(self, engine_config):
        assert engine_config.depreciation.declining_balance_factor == Decimal("2")
        assert not engine_config.depreciation.switch_to_straight_line
        assert engine_config.reconciliation.manual_tolerance_ratio == Decimal("0.10")

    def test_trace_logged(self, captured_logs):
        get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "FINANCE_CONFIG_TRACE"]
        assert traces[0]["config_set_id"] == "ID-FINCALC-2025-v1"
        assert traces[0]["incentive_plan_count"] == 4


class TestPlanLookup:
    """Plans are selected by role and metric."""

    def test_sales(self, engine_config):
        plan = engine_config.plan_for("SALES", "REVENUE")
        assert plan.code == "SALES_REVENUE"
        assert plan.tiers == DEFAULT_TIERS

    def test_sales_manager_shares_tiers(self, engine_config):
        plan = engine_config.plan_for("SALES_MANAGER", "REVENUE")
        assert plan.code == "SALES_MANAGER_REVENUE"
        assert plan.tiers == DEFAULT_TIERS

    def test_any_role_plan(self, engine_config):
        assert engine_config.plan_for("CEO", "COST_SAVINGS").code == "COST_SAVINGS"

    def test_no_plan(self, engine_config):
        assert engine_config.plan_for("HR_ADMIN", "REVENUE") is None


class TestChecksum:
    """Configuration identity."""

    def test_deterministic(self, default_doc):
        assert compute_checksum(default_doc) == compute_checksum(copy.deepcopy(default_doc))

    def test_changes_with_content(self, default_doc):
        changed = copy.deepcopy(default_doc)
        changed["version"] = 2
        assert compute_checksum(changed) != compute_checksum(default_doc)

    def test_yaml_float_stays_exact(self):
        assert parse_decimal(0.05) == Decimal("0.05")


class TestSetLoading:
    """get_active_config against other set directories."""

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_dir=tmp_path, set_name="nope")

    def test_custom_set(self, tmp_path, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["config_id"] = "TEST-SET"
        doc["withholding_tax"]["no_npwp_surcharge"] = "1.50"
        config = get_active_config(config_dir=write_set(tmp_path, "custom", doc), set_name="custom")
        assert config.config_id == "TEST-SET"
        assert config.withholding_tax.no_npwp_surcharge == Decimal("1.50")

    def test_invalid_set_raises_with_every_error(self, tmp_path, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["scope"]["currency"] = "XXX"
        doc["posting_accounts"]["cash"] = doc["posting_accounts"]["accounts_receivable"]
        with pytest.raises(ConfigValidationError) as exc_info:
            get_active_config(config_dir=write_set(tmp_path, "bad", doc), set_name="bad")
        assert exc_info.value.config_id == "ID-FINCALC-2025-v1"
        assert len(exc_info.value.errors) == 2


class TestValidation:
    """validate_configuration collects problems without raising."""

    def test_default_is_valid(self, default_doc):
        result = validate_configuration(default_doc)
        assert result.is_valid
        assert result.warnings == []

    def test_missing_sections(self):
        result = validate_configuration({"config_id": "X"})
        assert not result.is_valid
        assert any("posting_accounts" in e for e in result.errors)
        assert any("withholding_tax" in e for e in result.errors)

    def test_bracket_order(self, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["withholding_tax"]["brackets"][1]["up_to"] = 10
        result = validate_configuration(doc)
        assert any("ascending" in e for e in result.errors)

    def test_tier_gap(self, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["incentive_plans"][2]["tiers"][1]["min_pct"] = 105
        result = validate_configuration(doc)
        assert any(e.startswith("incentive_plans[2]") for e in result.errors)

    def test_duplicate_plan_code(self, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["incentive_plans"][1]["code"] = "SALES_REVENUE"
        result = validate_configuration(doc)
        assert any("Duplicate" in e for e in result.errors)

    def test_unknown_role(self, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["incentive_plans"][0]["applies_to_role"] = "JANITOR"
        result = validate_configuration(doc)
        assert not result.is_valid

    def test_repeated_target_is_warning(self, default_doc):
        doc = copy.deepcopy(default_doc)
        extra = copy.deepcopy(doc["incentive_plans"][0])
        extra["code"] = "SALES_REVENUE_ALT"
        doc["incentive_plans"].append(extra)
        result = validate_configuration(doc)
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_negative_tolerance(self, default_doc):
        doc = copy.deepcopy(default_doc)
        doc["reconciliation"]["manual_tolerance_ratio"] = "-0.1"
        result = validate_configuration(doc)
        assert any(e.startswith("reconciliation") for e in result.errors)
