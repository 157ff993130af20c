# population_insights_root/tests/test_normalization_and_loading.py
# IDENTIFIER NORMALIZATION & RECORD LOADER TESTS

import json
from fractions import Fraction

import numpy as np
import pandas as pd
import pytest

from config import settings
from data_processing import (DataPipeline, load_insight_records, load_patient_records,
                             load_records_from_json, normalize_label, normalize_zip,
                             percentage_of, resolve_field, round_half_up)

# Fixtures are sourced from conftest.py

# --- ZIP Normalization ---
@pytest.mark.parametrize("raw, expected", [
    ("3034", "03034"),
    ("03034", "03034"),
    ("02101-1234", "02101"),
    (" 0 2101 ", "02101"),
    ("123456789", "12345"),
    (1960, "01960"),
    (3034.0, "03034"),
    ("N/A", None),
    ("", None),
    (None, None),
    (np.nan, None),
    ("ABC-123", None),
    (12.5, None),
])
def test_normalize_zip(raw, expected):
    assert normalize_zip(raw) == expected

def test_normalize_zip_is_idempotent():
    samples = ["3034", "02101-1234", "zip 1960", "123456789", "-", "0", "99999-", "  7  "]
    for raw in samples:
        once = normalize_zip(raw)
        assert normalize_zip(once) == once

def test_normalize_label_trims_and_collapses_without_case_change():
    assert normalize_label("  Major   Depressive\tDisorder ") == "Major Depressive Disorder"
    assert normalize_label("depression") != normalize_label("Depression")
    assert normalize_label("   ") is None

def test_resolve_field_uses_first_present_alias():
    record = {"zip": "02101", "zipCode": "", "patient_zip_code": "01960"}
    assert resolve_field(record, "zip_code") == "02101"
    assert resolve_field({"zipCode": "3034", "zip": "02101"}, "zip_code") == "3034"
    assert resolve_field({}, "zip_code") is None

def test_round_half_up_and_percentage():
    assert round_half_up(12.5) == 13
    assert round_half_up(0.49) == 0
    assert round_half_up(Fraction(29, 2)) == 15
    assert round_half_up(np.float64(2.5)) == 3
    assert percentage_of(2, 3) == 67
    assert percentage_of(1, 8) == 13
    assert percentage_of(5, 0) == 0

# --- DataPipeline ---
def test_data_pipeline_fluent_chaining():
    raw = pd.DataFrame({
        'zipCode': ['3034', None], 'zip': [None, '02101-9'],
        'gender': ['  Female ', 'N/A'],
    })
    processed_df = (DataPipeline(raw)
        .resolve_aliases(['zip_code', 'gender'])
        .normalize_zip_column('zip_code')
        .normalize_label_columns(['gender'])
        .fill_missing_labels(['gender'], 'Unknown')
        .to_df()
    )
    assert list(processed_df.columns) == ['zip_code', 'gender']
    assert processed_df['zip_code'].tolist() == ['03034', '02101']
    assert processed_df['gender'].tolist() == ['Female', 'Unknown']

def test_data_pipeline_rejects_non_dataframe():
    with pytest.raises(TypeError):
        DataPipeline([{"a": 1}])

# --- Loaders ---
def test_load_patient_records_resolves_aliases_and_sentinels(patients_df):
    assert patients_df['patient_id'].tolist() == ['P1', 'P2', 'P3', 'P4', 'P5', 'P6']
    zips = patients_df['zip_code']
    assert zips.drop(index=3).tolist() == ['03034', '03034', '02101', '01960', '02101']
    assert pd.isna(zips.loc[3])
    assert patients_df.loc[4, 'gender'] == settings.UNKNOWN_LABEL
    assert patients_df.loc[3, 'ethnicity'] == settings.UNKNOWN_LABEL
    assert patients_df.loc[5, 'age_range'] == '36-50'

def test_load_patient_records_normalizes_hrsn_flags(patients_df):
    for indicator in settings.HRSN_FIELDS:
        assert indicator in patients_df.columns
    assert patients_df['food_insecurity'].tolist() == ['No', 'No', 'No', 'Yes', 'Yes', 'No']
    assert patients_df['has_a_car'].tolist()[:2] == ['Yes', 'No']
    assert pd.isna(patients_df.loc[2, 'has_a_car'])
    assert patients_df['veteran_status'].isna().all()

def test_load_patient_records_accepts_alternate_truthy_spellings():
    df = load_patient_records([
        {"patient_id": "A", "housing_instability": "y"},
        {"patient_id": "B", "housing_insecurity": False},
        {"patient_id": "C", "housing_insecurity": "maybe"},
    ])
    assert df['housing_insecurity'].tolist()[:2] == ['Yes', 'No']
    assert pd.isna(df.loc[2, 'housing_insecurity'])

def test_load_patient_records_drops_rows_without_identifier():
    df = load_patient_records([{"zip_code": "3034"}, {"patient_id": "X", "zip_code": "3034"}])
    assert df['patient_id'].tolist() == ['X']

def test_load_patient_records_empty_input():
    df = load_patient_records([])
    assert df.empty
    assert 'zip_code' in df.columns

def test_load_insight_records_defaults_count(insights_df):
    assert len(insights_df) == 8
    assert insights_df['count'].tolist() == [2, 1, 1, 1, 1, 1, 1, 1]
    assert insights_df.loc[5, 'diagnosis'] == 'Depression'
    assert insights_df['hrsn_category'].dropna().tolist() == ['housing_insecurity', 'food_insecurity']

def test_load_records_from_json(tmp_path, raw_insights):
    path = tmp_path / "insights.json"
    path.write_text(json.dumps(raw_insights), encoding='utf-8')
    df = load_records_from_json('insights', filepath_override=path)
    assert len(df) == len(raw_insights)

def test_load_records_from_json_missing_file_degrades(tmp_path):
    df = load_records_from_json('patients', filepath_override=tmp_path / "absent.json")
    assert df.empty

def test_load_records_from_json_unknown_key():
    assert load_records_from_json('encounters').empty
