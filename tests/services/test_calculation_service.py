"""Tests for CalculationService (tax estimate and incentive simulation)."""

from decimal import Decimal

import pytest

from fincalc_kernel.exceptions import (
    InvalidIncentivePlanError,
    InvalidIncentiveRequestError,
    InvalidTargetError,
)
from fincalc_services.calculation_service import CalculationService


@pytest.fixture
def service(engine_config):
    return CalculationService(engine_config)


class TestEstimateTax:

    def test_reference_request(self, service):
        response = service.estimate_tax({
            "basic_salary": 10_000_000,
            "allowances": [],
            "ptkp_code": "TK/0",
            "has_npwp": True,
        })
        assert response == {
            "monthly_tax": Decimal("325000"),
            "annual_taxable_base": Decimal("66000000"),
        }

    def test_defaults(self, service):
        response = service.estimate_tax({"basic_salary": "10000000"})
        assert response["monthly_tax"] == Decimal("390000")

    def test_zero_salary(self, service):
        assert service.estimate_tax({"basic_salary": 0})["monthly_tax"] == 0


class TestSimulateIncentive:

    def request(self, **overrides):
        request = {
            "role": "SALES",
            "metric": "REVENUE",
            "achieved_value": 120_000_000,
            "target_value": 100_000_000,
        }
        request.update(overrides)
        return request

    def test_reference_request(self, service):
        response = service.simulate_incentive(self.request())
        assert response["achievement_pct"] == Decimal("120.00")
        assert response["tier"] == "Outstanding Performance"
        assert response["incentive_amount"] == Decimal("18000000")
        assert response["calculation_details"] == {
            "formula": "achieved_value x tier rate",
            "breakdown": "120000000 x 15%",
        }

    def test_zero_base_salary_means_absent(self, service):
        response = service.simulate_incentive(self.request(base_salary=0))
        assert response["incentive_amount"] == Decimal("18000000")

    def test_base_salary_basis(self, service):
        response = service.simulate_incentive(self.request(base_salary=10_000_000))
        assert response["incentive_amount"] == Decimal("1500000")
        assert response["calculation_details"]["formula"] == "base_salary x tier rate"

    def test_pct_rounded_to_two_places(self, service):
        response = service.simulate_incentive(self.request(achieved_value=2, target_value=3))
        assert response["achievement_pct"] == Decimal("66.67")
        assert response["tier"] == "Below Target"

    def test_project_manager_plan(self, service):
        response = service.simulate_incentive({
            "role": "PROJECT_MANAGER",
            "metric": "PROJECTS_COMPLETED",
            "achieved_value": 11,
            "target_value": 10,
            "base_salary": 20_000_000,
        })
        assert response["tier"] == "Excellent Performance"
        assert response["incentive_amount"] == Decimal("1000000")

    def test_no_plan(self, service):
        with pytest.raises(InvalidIncentivePlanError):
            service.simulate_incentive(self.request(role="HR_ADMIN"))

    @pytest.mark.parametrize("field, value", [
        ("role", "INTERN"),
        ("role", None),
        ("metric", "HEADCOUNT"),
        ("metric", None),
    ])
    def test_unknown_role_or_metric(self, service, field, value):
        with pytest.raises(InvalidIncentiveRequestError) as exc_info:
            service.simulate_incentive(self.request(**{field: value}))
        assert exc_info.value.field == field
        assert exc_info.value.code == "INVALID_INCENTIVE_REQUEST"

    def test_zero_target(self, service):
        with pytest.raises(InvalidTargetError):
            service.simulate_incentive(self.request(target_value=0))
