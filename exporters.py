# exporters.py
import json
from dataclasses import asdict, is_dataclass
from datetime import date
from typing import Sequence

import numpy as np

from scenarios import SimulationRow, rows_to_df


def export_proposals(rows: Sequence[SimulationRow]) -> tuple[str, bytes]:
    df = rows_to_df(rows)
    return "propostas.csv", df.to_csv(index=False).encode()


def _json_default(o):
    # Dataclasses, dates & numpy scalars, as the app builds them
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    if isinstance(o, date):
        return o.isoformat()
    if isinstance(o, np.ndarray):
        return o.tolist()
    if isinstance(o, (np.floating, np.integer, np.bool_)):
        return o.item()
    # Let json raise for anything else unexpected
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def export_inputs(inputs) -> tuple[str, bytes]:
    """
    Export the inputs used for a simulation to JSON.
    Accepts a plain dict or the ReverseCalculationInput dataclass.
    """
    payload = asdict(inputs) if is_dataclass(inputs) else inputs
    blob = json.dumps(payload, indent=2, ensure_ascii=False, default=_json_default)
    return "simulacao.json", blob.encode()
