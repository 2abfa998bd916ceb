import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd
from dateutil.parser import isoparse

from errors import ValidationError

logger = logging.getLogger(__name__)

LOCATIONS = ("continente",)
MARITAL_STATUSES = ("single", "married_one_holder", "married_two_holders")
TABLE_IDS = ("I", "II", "III", "IV", "V", "VI", "VII")


# ---------- Deductions (two-case variant) ----------
@dataclass(frozen=True)
class FixedDeduction:
    amount: float
    kind: str = field(default="fixed", init=False)


@dataclass(frozen=True)
class FormulaDeduction:
    expression: str   # "a * b * (c - R)", R = gross salary
    kind: str = field(default="formula", init=False)


Deduction = Union[FixedDeduction, FormulaDeduction]


# ---------- Data structures ----------
@dataclass(frozen=True)
class Band:
    rate: float                      # e.g. 0.212
    deduction: Deduction             # parcela a abater
    up_to: Optional[float] = None    # inclusive upper bound
    over: Optional[float] = None     # exclusive lower bound of the open band
    additional_per_dependent: float = 0.0
    effective_rate_at_limit: Optional[float] = None
    notes: str = ""

    @property
    def is_open(self) -> bool:
        return self.up_to is None


@dataclass(frozen=True)
class RateTable:
    id: str
    name: str
    audience: str
    has_disability: bool
    assumes_dependents: str          # "0", "0+" or "1+"
    bands: Tuple[Band, ...]


@dataclass(frozen=True)
class DatasetMeta:
    country: str
    region: str
    valid_from: date
    valid_to: date
    period: str
    unit: str


@dataclass(frozen=True)
class RateDataset:
    meta: DatasetMeta
    tables: Tuple[RateTable, ...]

    def table(self, table_id: str) -> Optional[RateTable]:
        for t in self.tables:
            if t.id == table_id:
                return t
        return None

    def is_valid_on(self, day: date) -> bool:
        return self.meta.valid_from <= day <= self.meta.valid_to


@dataclass(frozen=True)
class CalculationInput:
    gross_salary: float              # R, monthly
    marital_status: str
    location: str
    dependents: int
    has_disability: bool = False
    social_security_rate: float = 0.11


@dataclass(frozen=True)
class CalculationResult:
    table_id: str
    band: Band
    rate: float
    deduction: float
    additional_per_dependent: float
    irs_withheld: float
    social_security: float
    net_salary: float


# ---------- Loading ----------
def _deduction_from_json(raw, where: str) -> Deduction:
    if isinstance(raw, bool):
        raise ValidationError(f"{where}: deduction must be a number or a formula object")
    if isinstance(raw, (int, float)):
        return FixedDeduction(float(raw))
    if isinstance(raw, dict) and raw.get("type") == "formula":
        expression = raw.get("expression")
        if not isinstance(expression, str):
            raise ValidationError(f"{where}: formula deduction needs an expression string")
        return FormulaDeduction(expression)
    raise ValidationError(f"{where}: deduction must be a number or a formula object")


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


def _band_from_json(raw: dict, where: str) -> Band:
    if not isinstance(raw, dict):
        raise ValidationError(f"{where}: band must be an object")
    try:
        rate = float(raw["rate"])
        deduction = raw["deduction"]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"{where}: band needs numeric 'rate' and 'deduction'") from exc
    try:
        up_to = _optional_float(raw.get("upTo"))
        over = _optional_float(raw.get("over"))
        per_dependent = float(raw.get("additionalPerDependent") or 0.0)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{where}: 'upTo', 'over' and 'additionalPerDependent' must be numeric") from exc
    return Band(
        rate=rate,
        deduction=_deduction_from_json(deduction, where),
        up_to=up_to,
        over=over,
        additional_per_dependent=per_dependent,
        effective_rate_at_limit=raw.get("effectiveRateAtLimit"),
        notes=raw.get("notes", ""),
    )


def _check_bands(table_id: str, bands: List[Band]) -> None:
    open_bands = [b for b in bands if b.is_open]
    if len(open_bands) != 1 or open_bands[0].over is None:
        raise ValidationError(
            f"Table {table_id}: expected exactly one open band carrying 'over', found {len(open_bands)}"
        )
    limits = sorted(b.up_to for b in bands if not b.is_open)
    for lower, upper in zip(limits, limits[1:]):
        if not upper > lower:
            raise ValidationError(f"Table {table_id}: 'upTo' limits must be strictly increasing")
    if any(not math.isfinite(x) for x in limits):
        raise ValidationError(f"Table {table_id}: 'upTo' limits must be finite")


def dataset_from_dict(doc: dict) -> RateDataset:
    """Build an immutable RateDataset from the parsed JSON document."""
    try:
        m = doc["meta"]
        raw_tables = doc["tables"]
        meta = DatasetMeta(
            country=m["country"],
            region=m["region"],
            valid_from=isoparse(m["validFrom"]).date(),
            valid_to=isoparse(m["validTo"]).date(),
            period=m["period"],
            unit=m["unit"],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed dataset metadata: {exc}") from exc

    if not isinstance(raw_tables, list):
        raise ValidationError("Malformed dataset: 'tables' must be a list")

    tables = []
    for pos, raw in enumerate(raw_tables):
        if not isinstance(raw, dict):
            raise ValidationError(f"Malformed dataset: table record {pos} must be an object")
        table_id = raw.get("id")
        raw_bands = raw.get("bands", [])
        if not isinstance(raw_bands, list):
            raise ValidationError(f"Table {table_id}: 'bands' must be a list")
        bands = [_band_from_json(b, f"Table {table_id} band {i}") for i, b in enumerate(raw_bands)]
        _check_bands(table_id, bands)
        tables.append(RateTable(
            id=table_id,
            name=raw.get("name", ""),
            audience=raw.get("audience", ""),
            has_disability=bool(raw.get("hasDisability", False)),
            assumes_dependents=str(raw.get("assumesDependents", "0+")),
            bands=tuple(bands),
        ))
    return RateDataset(meta=meta, tables=tuple(tables))


def load_dataset(path) -> RateDataset:
    with open(Path(path), "r", encoding="utf-8") as f:
        dataset = dataset_from_dict(json.load(f))
    logger.info(
        "Loaded %d withholding tables for %s/%s (%s to %s)",
        len(dataset.tables), dataset.meta.country, dataset.meta.region,
        dataset.meta.valid_from, dataset.meta.valid_to,
    )
    return dataset


# ---------- Streamlit helpers ----------
def table_to_df(table: RateTable) -> pd.DataFrame:
    data = []
    for b in sorted(table.bands, key=lambda x: math.inf if x.up_to is None else x.up_to):
        if b.deduction.kind == "formula":
            deduction = b.deduction.expression
        else:
            deduction = f"{b.deduction.amount:.2f}"
        data.append({
            "limit": f"≤ {b.up_to:,.2f}" if b.up_to is not None else f"> {b.over:,.2f}",
            "rate_percent": b.rate * 100,
            "deduction": deduction,
            "per_dependent": b.additional_per_dependent,
        })
    return pd.DataFrame(data)
