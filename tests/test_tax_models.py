from copy import deepcopy
from datetime import date

import pytest

from errors import ValidationError
from tax_models import TABLE_IDS, dataset_from_dict, table_to_df

DOC = {
    "meta": {
        "country": "PT",
        "region": "continente",
        "validFrom": "2026-01-01",
        "validTo": "2026-12-31",
        "period": "monthly",
        "unit": "EUR",
    },
    "tables": [
        {
            "id": "I",
            "name": "Tabela I",
            "audience": "test",
            "hasDisability": False,
            "assumesDependents": "0",
            "bands": [
                {"upTo": 920, "rate": 0, "deduction": 0},
                {"upTo": 1042, "rate": 0.125,
                 "deduction": {"type": "formula", "expression": "0.125 * 2.60 * (1273.85 - R)"}},
                {"over": 1042, "rate": 0.3, "deduction": 100, "additionalPerDependent": 20},
            ],
        }
    ],
}


def test_bundled_dataset(dataset):
    assert dataset.meta.country == "PT"
    assert dataset.meta.region == "continente"
    assert dataset.meta.valid_from == date(2026, 1, 1)
    assert tuple(t.id for t in dataset.tables) == TABLE_IDS
    assert dataset.is_valid_on(date(2026, 6, 30))
    assert not dataset.is_valid_on(date(2027, 1, 1))


def test_bundled_tables_have_one_open_band(dataset):
    for table in dataset.tables:
        open_bands = [b for b in table.bands if b.up_to is None]
        assert len(open_bands) == 1
        assert open_bands[0].over is not None
        limits = [b.up_to for b in table.bands if b.up_to is not None]
        assert limits == sorted(set(limits))


def test_dataset_from_dict_builds_deduction_variants():
    ds = dataset_from_dict(DOC)
    bands = ds.table("I").bands
    assert bands[0].deduction.kind == "fixed"
    assert bands[1].deduction.kind == "formula"
    assert bands[1].deduction.expression.startswith("0.125")
    assert bands[2].over == 1042.0
    assert bands[2].additional_per_dependent == 20.0
    assert ds.table("II") is None


def test_two_open_bands_rejected():
    doc = deepcopy(DOC)
    doc["tables"][0]["bands"][0] = {"over": 0, "rate": 0, "deduction": 0}
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


def test_repeated_limits_rejected():
    doc = deepcopy(DOC)
    doc["tables"][0]["bands"][1]["upTo"] = 920
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


@pytest.mark.parametrize("deduction", ["158.18", {"type": "table"}, None, True])
def test_bad_deduction_rejected(deduction):
    doc = deepcopy(DOC)
    doc["tables"][0]["bands"][0]["deduction"] = deduction
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


@pytest.mark.parametrize(
    "field, value",
    [("upTo", "abc"), ("upTo", [920]), ("additionalPerDependent", "x")],
)
def test_non_numeric_band_limits_rejected(field, value):
    doc = deepcopy(DOC)
    doc["tables"][0]["bands"][0][field] = value
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


def test_non_numeric_over_rejected():
    doc = deepcopy(DOC)
    doc["tables"][0]["bands"][2]["over"] = "lots"
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


@pytest.mark.parametrize("tables", [["I"], "I", [{"id": "I", "bands": "none"}], [{"id": "I", "bands": [42]}]])
def test_malformed_table_records_rejected(tables):
    doc = deepcopy(DOC)
    doc["tables"] = tables
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


def test_bad_meta_rejected():
    doc = deepcopy(DOC)
    del doc["meta"]["validFrom"]
    with pytest.raises(ValidationError):
        dataset_from_dict(doc)


def test_table_to_df(dataset):
    df = table_to_df(dataset.table("II"))
    assert list(df.columns) == ["limit", "rate_percent", "deduction", "per_dependent"]
    assert len(df) == len(dataset.table("II").bands)
    assert df.iloc[0]["limit"] == "≤ 920.00"
    assert df.iloc[-1]["limit"].startswith(">")
    assert df.iloc[4]["deduction"] == "158.18"
