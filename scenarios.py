from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from simulation import (
    CalculationProposal,
    ReverseCalculationInput,
    get_proposals,
    proposals_for_annual_cost,
)
from tax_models import CalculationInput
from taxes import WithholdingEngine, round2


@dataclass(frozen=True)
class SimulationRow:
    flex_benefits_percentage: int
    salary_base: float
    iht: float
    duodecimo_sf: float            # holiday subsidy paid in twelfths
    duodecimo_sn: float            # Christmas subsidy paid in twelfths
    irs: float
    net_salary: float              # salary only, before meal allowance and benefits
    monthly_benefits: float
    monthly_meal_allowance: float
    total_max: float
    total_min: float
    salary_base_and_iht: float
    income: float                  # base + IHT + benefits
    annual_cost: float


def to_row(p: CalculationProposal, has_duodecimos: bool) -> SimulationRow:
    base = round2(p.monthly_base_salary)
    iht = round2(p.monthly_iht)
    benefits = round2(p.monthly_benefits)
    duodecimo = round2(base / 12) if has_duodecimos else 0.0
    return SimulationRow(
        flex_benefits_percentage=p.flex_benefits_percentage,
        salary_base=base,
        iht=iht,
        duodecimo_sf=duodecimo,
        duodecimo_sn=duodecimo,
        irs=round2(p.irs),
        net_salary=round2(base + iht - p.irs - p.social_security_max),
        monthly_benefits=benefits,
        monthly_meal_allowance=round2(p.monthly_meal_allowance),
        total_max=round2(p.total_net_max),
        total_min=round2(p.total_net_min),
        salary_base_and_iht=round2(base + iht),
        income=round2(base + iht + benefits),
        annual_cost=round2(p.annual_cost),
    )


def to_rows(proposals: Sequence[CalculationProposal], has_duodecimos: bool) -> List[SimulationRow]:
    return [to_row(p, has_duodecimos) for p in proposals]


def rows_to_df(rows: Sequence[SimulationRow]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in rows])


def clone_request(request: ReverseCalculationInput, **overrides) -> ReverseCalculationInput:
    return replace(request, **overrides)


def compare(engine: WithholdingEngine, request: ReverseCalculationInput,
            variants: List[Tuple[str, dict]], annual_cost: float = None) -> Dict[str, List[CalculationProposal]]:
    """
    variants: list of (name, overrides-dict)
    returns: dict name -> proposals, solved for the target net or swept at annual_cost
    """
    res = {}
    for name, edits in variants:
        req_v = clone_request(request, **edits)
        if annual_cost is None:
            res[name] = get_proposals(engine, req_v)
        else:
            res[name] = proposals_for_annual_cost(engine, req_v, annual_cost)
    return res


def net_curve(engine: WithholdingEngine, template: CalculationInput,
              low: float, high: float, points: int = 200) -> pd.DataFrame:
    """Monthly net salary sampled over a gross-salary grid, for charting."""
    rows = []
    for gross in np.linspace(low, high, points):
        r = engine.calculate(replace(template, gross_salary=float(gross)))
        rows.append({
            "gross": float(gross),
            "irs": r.irs_withheld,
            "social_security": r.social_security,
            "net": r.net_salary,
            "table": r.table_id,
        })
    return pd.DataFrame(rows)
