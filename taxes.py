"""
IRS withholding (retenção na fonte) for monthly employment income, Portugal continente.

We model: the withholding tables I..VII, one band per gross salary, a deduction
("parcela a abater") that is either a fixed amount or a linear formula in R, and an
extra deduction per dependent. Social security is a flat rate on gross.

This is the monthly withholding only, not the yearly IRS settlement.
"""

import logging
import math
import numbers
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from errors import (
    BandNotFoundError,
    ConfigurationError,
    TableNotFoundError,
    UnsupportedFormulaError,
    ValidationError,
)
from tax_models import (
    LOCATIONS,
    MARITAL_STATUSES,
    Band,
    CalculationInput,
    CalculationResult,
    Deduction,
    RateDataset,
)

logger = logging.getLogger(__name__)

# a * b * (c - R), whitespace already stripped
_NUM = r"(\d+\.?\d*|\.\d+)"
_FORMULA = re.compile(rf"^{_NUM}\*{_NUM}\*\({_NUM}-R\)$", re.IGNORECASE)


def round2(value: float) -> float:
    """Round half-up to cents (1.005 -> 1.01), on the shortest repr of the float."""
    return float(Decimal(repr(float(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def pick_table_id(marital_status: str, dependents: int, has_disability: bool) -> str:
    if has_disability:
        if marital_status == "married_one_holder":
            return "VII"
        if marital_status == "married_two_holders":
            return "VI" if dependents >= 1 else "IV"
        return "V" if dependents >= 1 else "IV"
    if marital_status == "married_one_holder":
        return "III"
    # single and married_two_holders share I/II
    return "II" if dependents >= 1 else "I"


def pick_band(bands: Sequence[Band], gross_salary: float) -> Band:
    """
    First bounded band (ascending by up_to) whose limit is >= gross salary.
    Above every limit we fall back to the open band carrying "over".
    """
    ordered = sorted(bands, key=lambda b: math.inf if b.up_to is None else b.up_to)
    for b in ordered:
        if b.up_to is not None and gross_salary <= b.up_to:
            return b
    for b in ordered:
        if b.over is not None:
            return b
    raise BandNotFoundError(f"No band matches {gross_salary} and the table has no 'over' band")


def resolve_deduction(deduction: Deduction, gross_salary: float) -> float:
    if deduction.kind == "fixed":
        return deduction.amount
    if deduction.kind == "formula":
        m = _FORMULA.match(re.sub(r"\s+", "", deduction.expression))
        if not m:
            raise UnsupportedFormulaError(f"Unsupported deduction formula: {deduction.expression!r}")
        a, b, c = (float(g) for g in m.groups())
        return a * b * (c - gross_salary)
    raise UnsupportedFormulaError(f"Unknown deduction kind: {deduction.kind!r}")


def validate_household(location: str, marital_status: str, dependents: int) -> None:
    if isinstance(dependents, bool) or not isinstance(dependents, numbers.Integral) or dependents < 0:
        raise ValidationError("dependents must be an integer >= 0")
    if location not in LOCATIONS:
        raise ValidationError(f"Location {location!r} not supported by this dataset (continente only)")
    if marital_status not in MARITAL_STATUSES:
        raise ValidationError(f"Unknown marital status {marital_status!r}")


def _validate(inp: CalculationInput) -> None:
    gross = inp.gross_salary
    if isinstance(gross, bool) or not isinstance(gross, numbers.Real) or not math.isfinite(gross) or gross <= 0:
        raise ValidationError("gross_salary must be a positive finite number")
    validate_household(inp.location, inp.marital_status, inp.dependents)
    ss = inp.social_security_rate
    if isinstance(ss, bool) or not isinstance(ss, numbers.Real) or not math.isfinite(ss) or ss < 0:
        raise ValidationError("social_security_rate must be a finite number >= 0")


def calculate(inp: CalculationInput, dataset: Optional[RateDataset]) -> CalculationResult:
    if dataset is None:
        raise ConfigurationError("IRS dataset not set; load it once at startup before calculating")
    _validate(inp)

    table_id = pick_table_id(inp.marital_status, inp.dependents, inp.has_disability)
    table = dataset.table(table_id)
    if table is None:
        raise TableNotFoundError(f"Table {table_id!r} not found in dataset")

    gross = inp.gross_salary
    band = pick_band(table.bands, gross)
    deduction = resolve_deduction(band.deduction, gross)
    per_dependent = band.additional_per_dependent

    raw = gross * band.rate - deduction - per_dependent * inp.dependents
    irs_withheld = max(0.0, round2(raw))
    social_security = round2(gross * inp.social_security_rate)
    net_salary = round2(gross - irs_withheld - social_security)

    logger.debug("gross=%.2f table=%s band<=%s rate=%s irs=%.2f", gross, table_id, band.up_to, band.rate, irs_withheld)
    return CalculationResult(
        table_id=table_id,
        band=band,
        rate=band.rate,
        deduction=round2(deduction),
        additional_per_dependent=round2(per_dependent),
        irs_withheld=irs_withheld,
        social_security=social_security,
        net_salary=net_salary,
    )


@dataclass(frozen=True)
class WithholdingEngine:
    """Holds the rate dataset captured once; swap datasets with with_dataset()."""
    dataset: Optional[RateDataset] = None

    def with_dataset(self, dataset: RateDataset) -> "WithholdingEngine":
        return WithholdingEngine(dataset)

    def calculate(self, inp: CalculationInput) -> CalculationResult:
        return calculate(inp, self.dataset)
