# population_insights_root/tests/test_geography.py
# GEOGRAPHIC ESTIMATOR TESTS

from fractions import Fraction

import pandas as pd
import pytest

from config import settings
from data_processing import (affected_rate, affected_rate_from_reconciled, assign_intensity_level,
                             build_geographic_bins, estimate_affected, predominant_attribute,
                             get_cached_geographic_bins, summarize_geography)
from data_processing.geography import zip_affected_percentage

# Fixtures are sourced from conftest.py

# --- Estimates ---
@pytest.mark.parametrize("total, rate, expected", [
    (10, 0.25, 3),
    (2, 1 / 6, 1),
    (1, 0.5, 1),
    (0, 0.5, 0),
    (3, 0.0, 0),
    (50, Fraction(29, 100), 15),
    (10, Fraction(1, 4), 3),
])
def test_estimate_affected(total, rate, expected):
    assert estimate_affected(total, rate) == expected

def test_affected_rate_bounds():
    assert affected_rate(3, 6) == 0.5
    assert affected_rate(0, 0) == 0.0
    assert affected_rate(10, 5) == 1.0
    assert affected_rate_from_reconciled(None, 6) == 0.0

def test_estimate_rounds_exact_half_up():
    # 50 * 0.29 is 14.499999999999998 in binary floating point.
    rate = affected_rate(29, 100)
    assert rate == Fraction(29, 100)
    assert estimate_affected(50, rate) == 15

def test_bins_round_exact_half_up_through_affected_rate():
    frame = pd.DataFrame({'patient_id': [f"P{i}" for i in range(50)], 'zip_code': ['02101'] * 50})
    bins = build_geographic_bins(frame, rate=affected_rate(29, 100))
    assert [(b.zip_code, b.estimated_affected, b.floor_applied) for b in bins] == [('02101', 15, False)]

# --- Intensity Buckets ---
@pytest.mark.parametrize("value, max_value, levels, expected", [
    (0, 10, 5, 0),
    (10, 10, 5, 4),
    (1, 10, 5, 1),
    (5, 10, 5, 2),
    (6, 10, 5, 2),
    (3, 0, 5, 0),
    (10, 10, 3, 2),
])
def test_assign_intensity_level(value, max_value, levels, expected):
    assert assign_intensity_level(value, max_value, levels) == expected

def test_intensity_uses_configured_levels():
    assert assign_intensity_level(7, 7) == settings.GEOGRAPHY.intensity_levels - 1

# --- Predominant Attribute ---
def test_predominant_attribute_prefers_age_range():
    frame = pd.DataFrame({'age_range': ['18-25', '18-25', '26-35'], 'race': ['White', 'White', 'White']})
    assert predominant_attribute(frame) == '18-25'

def test_predominant_attribute_falls_back_past_unknown():
    frame = pd.DataFrame({
        'age_range': ['Unknown', 'Unknown', 'Unknown'],
        'race': ['Black', 'Black', 'White'],
    })
    assert predominant_attribute(frame) == 'Black'

def test_predominant_attribute_mixed():
    frame = pd.DataFrame({
        'age_range': ['18-25', '26-35', '36-50'],
        'race': ['White', 'Black', 'Asian'],
        'ethnicity': ['Hispanic or Latino', 'Not Hispanic or Latino', 'Unknown'],
    })
    assert predominant_attribute(frame) == settings.GEOGRAPHY.mixed_label
    assert predominant_attribute(frame.iloc[0:0]) == settings.GEOGRAPHY.mixed_label

# --- Bins ---
def test_bins_apply_floor_for_sparse_regions(patients_df):
    bins = build_geographic_bins(patients_df, rate=1 / 6)
    assert [b.zip_code for b in bins] == ['03034', '02101', '01960']
    assert [b.total_patients for b in bins] == [2, 2, 1]
    assert [b.estimated_affected for b in bins] == [1, 1, 1]
    assert all(b.floor_applied for b in bins)
    assert bins[0].predominant_attribute == '18-25'

def test_bins_without_floor_when_rounding_reaches_one(patients_df):
    bins = build_geographic_bins(patients_df, rate=0.5)
    assert [b.estimated_affected for b in bins] == [1, 1, 1]
    assert not any(b.floor_applied for b in bins)

def test_bins_exclude_patients_without_zip(patients_df):
    bins = build_geographic_bins(patients_df, rate=0.5)
    assert sum(b.total_patients for b in bins) == patients_df['zip_code'].notna().sum()

def test_zero_rate_emits_no_clamped_entries(housing_population_df):
    bins = build_geographic_bins(housing_population_df, rate=0.0)
    assert len(bins) == 3
    assert all(b.estimated_affected == 0 for b in bins)
    assert all(b.intensity_level == 0 for b in bins)
    assert not any(b.floor_applied for b in bins)

def test_bins_without_rate_follow_totals(patients_df):
    bins = build_geographic_bins(patients_df)
    assert [(b.zip_code, b.intensity_level) for b in bins] == [('03034', 4), ('02101', 4), ('01960', 2)]
    assert all(b.estimated_affected == 0 for b in bins)

def test_bins_for_empty_population():
    assert build_geographic_bins(pd.DataFrame(columns=['patient_id', 'zip_code']), rate=0.5) == []

def test_bins_are_deterministic(patients_df):
    assert build_geographic_bins(patients_df, rate=0.3) == build_geographic_bins(patients_df, rate=0.3)

# --- Summary ---
def test_summarize_geography(patients_df):
    bins = build_geographic_bins(patients_df, rate=0.5)
    summary = summarize_geography(bins, affected_count=3, total_patients=6, top_n=2)
    assert summary.affected_percentage == 50.0
    assert summary.unique_zip_count == 3
    assert summary.estimated_affected_zip_count == 2
    assert [r.zip_code for r in summary.top_regions] == ['03034', '02101']
    assert [r.rank for r in summary.top_regions] == [1, 2]
    assert summary.top_regions[0].percent_of_all_patients == 16.7
    assert summary.top_regions[0].percent_of_top_regions == 50.0
    assert summary.top_regions_share_of_affected == 66.7

def test_summarize_geography_with_no_patients():
    summary = summarize_geography([], affected_count=0, total_patients=0)
    assert summary.affected_percentage == 0.0
    assert summary.top_regions == []

def test_zip_affected_percentage(patients_df):
    bins = build_geographic_bins(patients_df, rate=0.5)
    assert zip_affected_percentage(bins[0]) == 50

def test_cached_bins_match_direct(patients_df):
    assert get_cached_geographic_bins(patients_df, 0.5) == build_geographic_bins(patients_df, rate=0.5)
