# population_insights_root/tests/conftest.py
# PYTEST FIXTURES - RAW RECORDS & CANONICAL FRAMES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pandas as pd
import pytest

from data_processing import FilterConfiguration, load_insight_records, load_patient_records

# --- Raw Record Fixtures ---
# Six patients with mixed alias spellings and ZIP shapes:
#   P1 03034, P2 03034 (ZIP+4), P3 02101, P4 malformed ZIP, P5 01960 (numeric), P6 02101.

RAW_PATIENTS = [
    {"patient_id": "P1", "zip_code": "3034", "age_range": "18-25", "gender": "Female", "race": "White",
     "ethnicity": "Not Hispanic or Latino", "housing_insecurity": "No", "food_insecurity": "No", "has_a_car": "Yes"},
    {"patientId": "P2", "zipCode": "03034-1234", "age_range": "18-25", "gender": "Male", "race": "White",
     "ethnicity": "Hispanic or Latino", "housing_insecurity": "No", "food_insecurity": "No", "has_a_car": "No"},
    {"patient_id": "P3", "zip": "02101", "age_range": "26-35", "gender": "Female", "race": "Black",
     "ethnicity": "Not Hispanic or Latino", "housing_insecurity": "No", "food_insecurity": "No"},
    {"patient_id": "P4", "zip_code": "N/A", "age_range": "26-35", "gender": "Male", "race": "Asian",
     "housing_insecurity": "No", "food_insecurity": "Yes"},
    {"patient_id": "P5", "zip_code": 1960, "age_range": "36-50", "race": "White",
     "housing_insecurity": "No", "food_insecurity": "Yes", "has_a_car": "Yes"},
    {"patient_id": "P6", "zip_code": "02101", "age_range": "  36-50 ", "gender": "Female", "race": "Black",
     "ethnicity": "Hispanic or Latino", "housing_insecurity": "No", "food_insecurity": "No"},
]

RAW_INSIGHTS = [
    {"patient_id": "P1", "symptom_segment": "Depressed mood", "diagnosis": "Depression",
     "diagnostic_category": "Mental Health", "symptom_id": "SYM-101", "count": 2},
    {"patient_id": "P2", "symptom_segment": "Wheezing", "diagnosis": "Asthma",
     "diagnostic_category": "Respiratory", "symptom_id": "SYM-202"},
    {"patient_id": "P3", "symptom_segment": "Anhedonia", "diagnosis": "Depression",
     "diagnostic_category": "Mental Health", "symptom_id": "SYM-102"},
    {"patient_id": "P3", "hrsn_category": "housing_insecurity"},
    {"patient_id": "P4", "symptom_segment": "Elevated blood pressure", "diagnosis": "Hypertension",
     "diagnostic_category": "Cardiovascular", "symptom_id": "SYM-301"},
    {"patient_id": "P5", "symptom_segment": "Depressed mood", "diagnosis": " Depression ",
     "diagnostic_category": "Mental Health", "symptom_id": "SYM-101"},
    {"patient_id": "P5", "symptom_segment": "Excessive worry", "diagnosis": "Anxiety",
     "diagnostic_category": "Mental Health", "symptom_id": "SYM-110"},
    {"patient_id": "P5", "hrsn_category": "food_insecurity"},
]


@pytest.fixture(scope="session")
def raw_patients() -> list:
    return [dict(r) for r in RAW_PATIENTS]

@pytest.fixture(scope="session")
def raw_insights() -> list:
    return [dict(r) for r in RAW_INSIGHTS]


# --- Canonical Frame Fixtures ---

@pytest.fixture(scope="session")
def patients_df(raw_patients) -> pd.DataFrame:
    """Canonical patient frame built through the loader pipeline."""
    return load_patient_records(raw_patients)

@pytest.fixture(scope="session")
def insights_df(raw_insights) -> pd.DataFrame:
    """Canonical insight frame built through the loader pipeline."""
    return load_insight_records(raw_insights)

@pytest.fixture(scope="session")
def depression_config() -> FilterConfiguration:
    return FilterConfiguration.from_selections(diagnoses=["Depression"])

@pytest.fixture
def housing_population_df() -> pd.DataFrame:
    """One hundred patients, none affected by housing insecurity."""
    records = [
        {"patient_id": f"H{i:03d}", "zip_code": ("3034", "02101", "01960")[i % 3], "housing_insecurity": "No"}
        for i in range(100)
    ]
    return load_patient_records(records)
