import logging
import math
import numbers
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import DEFAULTS
from errors import ValidationError
from tax_models import CalculationInput
from taxes import WithholdingEngine, validate_household

logger = logging.getLogger(__name__)

FLEX_PERCENTAGES = tuple(range(0, DEFAULTS["max_flex_benefits_pct"] + 1, DEFAULTS["flex_benefits_step"]))

# net salary the solver may miss by before a proposal counts as unreachable
TARGET_TOLERANCE = 1.0


@dataclass(frozen=True)
class ReverseCalculationInput:
    location: str
    marital_status: str
    dependents: int
    has_duodecimos: bool           # True = 12 payments, False = 14
    meal_allowance_daily: float
    meal_allowance_days: int
    meal_allowance_months: int
    iht_percentage: float          # percent, e.g. 25
    tsu: float                     # percent, e.g. 23.75
    ss_rate: float                 # fraction, e.g. 0.11
    target_net_salary: Optional[float] = None   # monthly; only the reverse solve needs it
    has_disability: bool = False


@dataclass(frozen=True)
class CalculationProposal:
    flex_benefits_percentage: int
    annual_cost: float
    monthly_base_salary: float
    monthly_iht: float
    monthly_benefits: float
    monthly_meal_allowance: float
    irs: float
    social_security_max: float
    social_security_min: float
    total_net_max: float
    total_net_min: float


@dataclass(frozen=True)
class PayrollSplit:
    months: int
    tsu_factor: float
    monthly_gross: float
    monthly_iht: float
    monthly_base_salary: float
    monthly_benefits: float
    monthly_meal_allowance: float
    annual_meal_allowance: float

    @property
    def annual_cost_to_company(self) -> float:
        """Rebuild the employer cost from the monthly split."""
        return (self.monthly_gross * self.months * self.tsu_factor
                + self.monthly_benefits * 12
                + self.annual_meal_allowance)


def _check_number(name: str, value, positive: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number")
    if positive and value <= 0:
        raise ValidationError(f"{name} must be > 0")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")


def _validate(payroll: ReverseCalculationInput) -> None:
    for name in ("meal_allowance_daily", "meal_allowance_days", "meal_allowance_months",
                 "iht_percentage", "tsu", "ss_rate"):
        _check_number(name, getattr(payroll, name))
    validate_household(payroll.location, payroll.marital_status, payroll.dependents)


def decompose(payroll: ReverseCalculationInput, annual_cost: float, pct: float) -> PayrollSplit:
    """
    Split an annual employer cost into monthly salary pieces for a benefits share pct (0..1).
    The meal allowance comes off the top; what is left carries TSU on the salary part only.
    """
    months = 12 if payroll.has_duodecimos else 14
    tsu_factor = 1 + payroll.tsu / 100.0
    annual_meal = payroll.meal_allowance_daily * payroll.meal_allowance_days * payroll.meal_allowance_months
    monthly_meal = payroll.meal_allowance_daily * payroll.meal_allowance_days

    budget = max(0.0, annual_cost - annual_meal)
    factor = (1 - pct) * tsu_factor + pct
    distributable = budget / factor

    monthly_benefits = distributable * pct / 12.0
    monthly_gross = distributable * (1 - pct) / months
    iht = monthly_gross * payroll.iht_percentage / (100.0 + payroll.iht_percentage)

    return PayrollSplit(
        months=months,
        tsu_factor=tsu_factor,
        monthly_gross=monthly_gross,
        monthly_iht=iht,
        monthly_base_salary=monthly_gross - iht,
        monthly_benefits=monthly_benefits,
        monthly_meal_allowance=monthly_meal,
        annual_meal_allowance=annual_meal,
    )


def _withhold(engine: WithholdingEngine, payroll: ReverseCalculationInput,
              gross: float, ss_rate: float) -> Tuple[float, float, float]:
    """(irs, social security, net) for one monthly gross; nothing is due on a zero salary."""
    if gross <= 0:
        return 0.0, 0.0, 0.0
    res = engine.calculate(CalculationInput(
        gross_salary=gross,
        marital_status=payroll.marital_status,
        location=payroll.location,
        dependents=payroll.dependents,
        has_disability=payroll.has_disability,
        social_security_rate=ss_rate,
    ))
    return res.irs_withheld, res.social_security, res.net_salary


def evaluate(engine: WithholdingEngine, payroll: ReverseCalculationInput,
             annual_cost: float, pct: float) -> CalculationProposal:
    split = decompose(payroll, annual_cost, pct)
    gross = split.monthly_gross
    benefits = split.monthly_benefits
    meal = split.monthly_meal_allowance

    # Max: benefits exempt from IRS and SS
    irs_max, ss_max, net_max = _withhold(engine, payroll, gross, payroll.ss_rate)
    total_net_max = net_max + meal + benefits

    # Min: benefits taxed for IRS, SS still only on salary
    irs_min, _, _ = _withhold(engine, payroll, gross + benefits, 0.0)
    _, ss_min, _ = _withhold(engine, payroll, gross, payroll.ss_rate)
    total_net_min = (gross + benefits) - irs_min - ss_min + meal

    return CalculationProposal(
        flex_benefits_percentage=int(round(pct * 100)),
        annual_cost=annual_cost,
        monthly_base_salary=split.monthly_base_salary,
        monthly_iht=split.monthly_iht,
        monthly_benefits=benefits,
        monthly_meal_allowance=meal,
        irs=irs_max,
        social_security_max=ss_max,
        social_security_min=ss_min,
        total_net_max=total_net_max,
        total_net_min=total_net_min,
    )


def solve_for_annual_cost(engine: WithholdingEngine, request: ReverseCalculationInput, pct: float,
                          iterations: int = DEFAULTS["solver_iterations"],
                          upper: float = DEFAULTS["solver_upper_annual_cost"]) -> CalculationProposal:
    """
    Bisection on the annual cost so that total_net_max hits the target.
    The iteration count is the stopping rule; we return the last evaluation.
    """
    lo, hi = 0.0, float(upper)
    best = None
    for _ in range(iterations):
        mid = (lo + hi) / 2.0
        best = evaluate(engine, request, mid, pct)
        if best.total_net_max < request.target_net_salary:
            lo = mid
        else:
            hi = mid
    residual = best.total_net_max - request.target_net_salary
    if abs(residual) >= TARGET_TOLERANCE:
        logger.warning(
            "flex=%d%%: target %.2f not reached in [0, %.0f], closest net %.2f",
            best.flex_benefits_percentage, request.target_net_salary, upper, best.total_net_max,
        )
    else:
        logger.debug(
            "flex=%d%% annual_cost=%.2f residual=%.4f",
            best.flex_benefits_percentage, best.annual_cost, residual,
        )
    return best


def missed_target(proposals: List[CalculationProposal], target: float,
                  tolerance: float = TARGET_TOLERANCE) -> List[int]:
    """Benefit percentages whose proposal lands further than tolerance from the target net."""
    return [p.flex_benefits_percentage for p in proposals if abs(p.total_net_max - target) >= tolerance]


def get_proposals(engine: WithholdingEngine, request: ReverseCalculationInput) -> List[CalculationProposal]:
    """One proposal per benefits percentage 0..30, ascending, each hitting the target net."""
    _check_number("target_net_salary", request.target_net_salary, positive=True)
    _validate(request)
    return [solve_for_annual_cost(engine, request, p / 100.0) for p in FLEX_PERCENTAGES]


def proposals_for_annual_cost(engine: WithholdingEngine, payroll: ReverseCalculationInput,
                              annual_cost: float) -> List[CalculationProposal]:
    """Same sweep for a fixed employer budget; target_net_salary is not used."""
    _check_number("annual_cost", annual_cost, positive=True)
    _validate(payroll)
    return [evaluate(engine, payroll, annual_cost, p / 100.0) for p in FLEX_PERCENTAGES]
