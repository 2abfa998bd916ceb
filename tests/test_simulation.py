"""Payroll decomposition, forward sweep and the reverse solver."""
import logging
import math
from dataclasses import replace

import pytest

from errors import ConfigurationError, ValidationError
from simulation import (
    FLEX_PERCENTAGES,
    decompose,
    evaluate,
    get_proposals,
    missed_target,
    proposals_for_annual_cost,
    solve_for_annual_cost,
)
from taxes import WithholdingEngine


def test_flex_percentages():
    assert FLEX_PERCENTAGES == (0, 5, 10, 15, 20, 25, 30)


# ---------- Decomposition ----------
@pytest.mark.parametrize("pct", [0.0, 0.15, 0.3])
def test_decompose_rebuilds_annual_cost(payroll, pct):
    split = decompose(replace(payroll, iht_percentage=25), 30_000, pct)
    assert split.months == 14
    assert split.annual_cost_to_company == pytest.approx(30_000)
    assert split.monthly_base_salary + split.monthly_iht == pytest.approx(split.monthly_gross)
    assert split.monthly_iht == pytest.approx(split.monthly_gross * 25 / 125)


def test_decompose_without_benefits(payroll):
    split = decompose(payroll, 30_000, 0.0)
    annual_meal = 9.60 * 22 * 11
    assert split.annual_meal_allowance == pytest.approx(annual_meal)
    assert split.monthly_meal_allowance == pytest.approx(9.60 * 22)
    assert split.monthly_benefits == 0
    assert split.monthly_gross == pytest.approx((30_000 - annual_meal) / 1.2375 / 14)


def test_decompose_duodecimos_pays_over_twelve_months(payroll):
    fourteen = decompose(payroll, 30_000, 0.1)
    twelve = decompose(replace(payroll, has_duodecimos=True), 30_000, 0.1)
    assert twelve.months == 12
    assert twelve.monthly_gross == pytest.approx(fourteen.monthly_gross * 14 / 12)
    assert twelve.monthly_benefits == pytest.approx(fourteen.monthly_benefits)


def test_meal_allowance_eats_whole_budget(engine, payroll):
    p = evaluate(engine, payroll, 1_000, 0.2)
    assert p.monthly_base_salary == 0
    assert p.irs == 0
    assert p.social_security_max == 0
    assert p.total_net_max == pytest.approx(9.60 * 22)
    assert p.total_net_min == pytest.approx(9.60 * 22)


# ---------- Dual scenario ----------
def test_evaluate_dual_scenario_with_stub(stub_engine, payroll):
    p = evaluate(stub_engine, payroll, 30_000, 0.2)
    split = decompose(payroll, 30_000, 0.2)
    gross, benefits, meal = split.monthly_gross, split.monthly_benefits, split.monthly_meal_allowance
    assert p.flex_benefits_percentage == 20
    assert p.irs == pytest.approx(gross * 0.1)
    assert p.social_security_max == pytest.approx(gross * 0.11)
    assert p.social_security_min == pytest.approx(gross * 0.11)
    assert p.total_net_max == pytest.approx(gross * 0.79 + meal + benefits)
    assert p.total_net_min == pytest.approx((gross + benefits) - (gross + benefits) * 0.1 - gross * 0.11 + meal)
    assert stub_engine.calls == 3


def test_forward_sweep(engine, payroll):
    proposals = proposals_for_annual_cost(engine, payroll, 30_000)
    assert [p.flex_benefits_percentage for p in proposals] == list(FLEX_PERCENTAGES)
    assert all(p.annual_cost == 30_000 for p in proposals)
    assert proposals[0].total_net_max == pytest.approx(proposals[0].total_net_min, abs=0.01)
    for p in proposals:
        assert p.total_net_max >= p.total_net_min - 0.01
    assert proposals[-1].monthly_benefits > proposals[1].monthly_benefits > 0


# ---------- Reverse solver ----------
def test_get_proposals_shape(engine, payroll):
    proposals = get_proposals(engine, payroll)
    assert len(proposals) == 7
    assert [p.flex_benefits_percentage for p in proposals] == [0, 5, 10, 15, 20, 25, 30]


def test_solver_converges_with_stub(stub_engine, payroll):
    for p in get_proposals(stub_engine, payroll):
        assert abs(p.total_net_max - 1500) < 1


def test_solver_uses_fixed_budget_of_engine_calls(stub_engine, payroll):
    get_proposals(stub_engine, payroll)
    assert stub_engine.calls == 7 * 50 * 3


def test_solver_converges_with_real_tables(engine, payroll):
    request = replace(payroll, iht_percentage=25, meal_allowance_daily=10.22, target_net_salary=2000.0)
    for p in get_proposals(engine, request):
        assert abs(p.total_net_max - 2000) < 1
        assert 0 < p.annual_cost < 1_000_000


def test_solver_with_dependents_and_duodecimos(engine, payroll):
    request = replace(payroll, dependents=2, has_duodecimos=True, target_net_salary=1200.0)
    proposals = get_proposals(engine, request)
    assert all(abs(p.total_net_max - 1200) < 1 for p in proposals)
    # tax-free benefits make the same net cheaper for the employer
    assert proposals[-1].annual_cost < proposals[0].annual_cost


def test_solver_matches_forward_sweep(engine, payroll):
    solved = solve_for_annual_cost(engine, payroll, 0.1)
    forward = proposals_for_annual_cost(engine, payroll, solved.annual_cost)[2]
    assert forward.total_net_max == pytest.approx(solved.total_net_max)


def test_iteration_count_is_the_stopping_rule(stub_engine, payroll):
    p = solve_for_annual_cost(stub_engine, payroll, 0.0, iterations=1)
    assert p.annual_cost == 500_000


# ---------- Errors ----------
@pytest.mark.parametrize("target", [None, 0, -10, math.nan])
def test_invalid_target(stub_engine, payroll, target):
    with pytest.raises(ValidationError):
        get_proposals(stub_engine, replace(payroll, target_net_salary=target))


@pytest.mark.parametrize("field, value", [("tsu", math.inf), ("iht_percentage", -1), ("meal_allowance_daily", None)])
def test_invalid_payroll_values(stub_engine, payroll, field, value):
    with pytest.raises(ValidationError):
        get_proposals(stub_engine, replace(payroll, **{field: value}))


def test_invalid_annual_cost(engine, payroll):
    with pytest.raises(ValidationError):
        proposals_for_annual_cost(engine, payroll, 0)


def test_engine_errors_propagate(engine, payroll):
    with pytest.raises(ValidationError):
        get_proposals(engine, replace(payroll, location="madeira"))
    with pytest.raises(ConfigurationError):
        get_proposals(WithholdingEngine(), payroll)


@pytest.mark.parametrize(
    "field, value",
    [("location", "madeira"), ("dependents", -3), ("dependents", 1.5), ("marital_status", "divorced")],
)
def test_household_checked_when_budget_is_all_meal_allowance(engine, payroll, field, value):
    # 1 000 is below the annual meal allowance, so the engine is never reached
    with pytest.raises(ValidationError):
        proposals_for_annual_cost(engine, replace(payroll, **{field: value}), 1_000)


def test_household_checked_before_solving_small_targets(stub_engine, payroll):
    with pytest.raises(ValidationError):
        get_proposals(stub_engine, replace(payroll, location="madeira", target_net_salary=50.0))
    assert stub_engine.calls == 0


# ---------- Unreachable targets ----------
def test_missed_target_empty_when_solver_converges(stub_engine, payroll):
    assert missed_target(get_proposals(stub_engine, payroll), 1500.0) == []


def test_target_above_search_range_is_reported(stub_engine, payroll, caplog):
    request = replace(payroll, target_net_salary=1e7)
    with caplog.at_level(logging.WARNING, logger="simulation"):
        proposals = get_proposals(stub_engine, request)
    assert missed_target(proposals, request.target_net_salary) == list(FLEX_PERCENTAGES)
    assert all(p.annual_cost == pytest.approx(1_000_000, abs=1) for p in proposals)
    assert "not reached" in caplog.text
