import logging
import os
from pathlib import Path
from typing import Optional

APP_NAME = "Simulador Salarial: custo empresa vs. líquido"

BASE_DIR = Path(__file__).resolve().parent
DATASET_PATH = BASE_DIR / "data" / "irs_2026_continente.json"
CSS_PATH = BASE_DIR / "assets" / "styles.css"

LOG_LEVEL_ENV = "SALARY_SIM_LOG_LEVEL"

# Default assumptions (Portugal, continente, 2026)
DEFAULTS = {
    "location": "continente",
    "marital_status": "single",
    "dependents": 0,
    "has_disability": False,

    # What we solve for
    "calculate_by": "annual_cost",     # or "target_net_salary"
    "annual_cost": 30_000,
    "target_net_salary": 2_000,

    # Payment schedule
    "has_duodecimos": False,           # True = 12 payments (subsidies in twelfths), False = 14

    # Meal allowance (subsídio de refeição, card)
    "include_meal_allowance": True,
    "meal_allowance_daily": 10.22,
    "meal_allowance_days": 22,
    "meal_allowance_months": 11,

    # Payroll rates (percent, as shown to the user)
    "tsu": 23.75,                      # employer social-security surcharge
    "ss_rate_pct": 11.0,               # employee social security, regime geral
    "iht_percentage": 25,              # isenção de horário de trabalho

    # Flexible benefits sweep
    "max_flex_benefits_pct": 30,
    "flex_benefits_step": 5,

    # Reverse solver
    "solver_iterations": 50,
    "solver_upper_annual_cost": 1_000_000,
}


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging once; level from the argument or SALARY_SIM_LOG_LEVEL."""
    name = (level or os.environ.get(LOG_LEVEL_ENV, "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
