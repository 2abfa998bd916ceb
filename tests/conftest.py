import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import DATASET_PATH, DEFAULTS  # noqa: E402
from simulation import ReverseCalculationInput  # noqa: E402
from tax_models import Band, CalculationResult, FixedDeduction, load_dataset  # noqa: E402
from taxes import WithholdingEngine  # noqa: E402


@pytest.fixture(scope="session")
def dataset():
    return load_dataset(DATASET_PATH)


@pytest.fixture(scope="session")
def engine(dataset):
    return WithholdingEngine(dataset)


@pytest.fixture
def payroll():
    return ReverseCalculationInput(
        location="continente",
        marital_status="single",
        dependents=0,
        has_duodecimos=False,
        meal_allowance_daily=9.60,
        meal_allowance_days=22,
        meal_allowance_months=11,
        iht_percentage=0,
        tsu=DEFAULTS["tsu"],
        ss_rate=0.11,
        target_net_salary=1500.0,
    )


class StubEngine:
    """Net is 79% of gross, IRS 10%; counts calls."""

    def __init__(self):
        self.calls = 0

    def calculate(self, inp):
        self.calls += 1
        gross = inp.gross_salary
        return CalculationResult(
            table_id="I",
            band=Band(rate=0.1, deduction=FixedDeduction(0.0), over=0.0),
            rate=0.1,
            deduction=0.0,
            additional_per_dependent=0.0,
            irs_withheld=gross * 0.1,
            social_security=gross * inp.social_security_rate,
            net_salary=gross * 0.79,
        )


@pytest.fixture
def stub_engine():
    return StubEngine()
