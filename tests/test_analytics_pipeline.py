# population_insights_root/tests/test_analytics_pipeline.py
# POPULATION SEARCH ORCHESTRATION & SESSION TESTS

from unittest.mock import patch

import pandas as pd
import pytest

from analytics import PopulationInsightPipeline, PopulationReport, SearchSession, run_population_search
from analytics.orchestrator import INSIGHT_BREAKDOWN_FIELDS, PATIENT_BREAKDOWN_FIELDS
from config import settings
from data_processing import FilterConfiguration, FilterConfigurationError, Provenance

# Fixtures are sourced from conftest.py

# --- Orchestrator ---
def test_run_population_search_full_report(patients_df, insights_df):
    report, errors = run_population_search(patients_df, insights_df)
    assert isinstance(report, PopulationReport)
    assert errors == []
    assert report.total_patients == len(patients_df)
    assert set(report.patient_breakdowns) == set(PATIENT_BREAKDOWN_FIELDS)
    assert set(report.insight_breakdowns) == set(INSIGHT_BREAKDOWN_FIELDS)
    assert set(report.hrsn_breakdowns) == set(settings.HRSN_FIELDS)
    assert set(report.geographic_bins) == set(settings.HRSN_FIELDS)
    assert report.hrsn_ranking[0].id == "food_insecurity"

def test_geography_follows_reconciled_rate(patients_df, insights_df):
    report, _ = run_population_search(patients_df, insights_df)
    food_bins = report.geographic_bins["food_insecurity"]
    # Reconciled food insecurity: 3 of 6 patients, so a rate of one half.
    assert [b.estimated_affected for b in food_bins] == [1, 1, 1]
    summary = report.geographic_summaries["food_insecurity"]
    assert summary.affected_count == 3
    assert summary.affected_percentage == 50.0

def test_filtered_report_uses_filtered_denominators(patients_df, insights_df, depression_config):
    report, errors = run_population_search(patients_df, insights_df, depression_config)
    assert errors == []
    assert report.population.patient_ids == ['P1', 'P3', 'P5']
    diagnoses = report.insight_breakdowns['diagnosis']
    assert [(r.id, r.count, r.percentage) for r in diagnoses] == [("Depression", 3, 75), ("Anxiety", 1, 25)]

def test_run_is_deterministic(patients_df, insights_df, depression_config):
    first, _ = run_population_search(patients_df, insights_df, depression_config)
    second, _ = run_population_search(patients_df, insights_df, depression_config)
    assert first.patient_breakdowns == second.patient_breakdowns
    assert first.insight_breakdowns == second.insight_breakdowns
    assert first.hrsn_breakdowns == second.hrsn_breakdowns
    assert first.hrsn_ranking == second.hrsn_ranking
    assert first.geographic_bins == second.geographic_bins

def test_housing_scenario_report(housing_population_df):
    report, errors = run_population_search(housing_population_df, None)
    assert errors == []
    housing = report.hrsn_breakdowns["housing_insecurity"]
    assert [(r.id, r.count, r.percentage) for r in housing] == [("Yes", 0, 0), ("No", 100, 100)]
    assert report.reconciled_hrsn[0].provenance is Provenance.NO_DATA
    assert not any(b.floor_applied for b in report.geographic_bins["housing_insecurity"])
    assert all(b.estimated_affected == 0 for b in report.geographic_bins["housing_insecurity"])

def test_empty_population_report():
    empty = pd.DataFrame(columns=['patient_id', 'zip_code'])
    report, errors = run_population_search(empty, None)
    assert errors == []
    assert report.total_patients == 0
    assert report.patient_breakdowns['zip_code'] == []
    assert all(r.percentage == 0 for r in report.hrsn_ranking)

def test_failing_step_is_recorded_and_isolated(patients_df, insights_df):
    with patch('analytics.orchestrator.aggregate_insight_field', side_effect=RuntimeError("boom")):
        report, errors = PopulationInsightPipeline(patients_df, insights_df, FilterConfiguration.unconstrained()).run()
    assert len(errors) == len(INSIGHT_BREAKDOWN_FIELDS)
    assert all(v == [] for v in report.insight_breakdowns.values())
    assert report.patient_breakdowns['gender']

def test_invalid_configuration_propagates(patients_df, insights_df):
    with pytest.raises(FilterConfigurationError):
        run_population_search(patients_df, insights_df, {"diagnoses": ["Depression"]})

def test_non_dataframe_input_is_rejected():
    with pytest.raises(TypeError):
        run_population_search([{"patient_id": "P1"}], None)

# --- Search Session ---
@pytest.fixture
def session(patients_df, insights_df) -> SearchSession:
    return SearchSession(patients_df, insights_df)

def test_session_search_publishes(session, depression_config):
    report = session.search(depression_config)
    assert session.latest_report is report
    assert session.latest_configuration == depression_config
    assert session.generation == 1

def test_stale_results_are_discarded(session, depression_config):
    stale_token = session.begin_search(depression_config)
    current_token = session.begin_search(FilterConfiguration.unconstrained())
    stale_report, _ = session.compute(depression_config)
    assert session.publish(stale_token, stale_report) is False
    assert session.latest_report is None
    current_report, errors = session.compute(FilterConfiguration.unconstrained())
    assert session.publish(current_token, current_report, errors) is True
    assert session.latest_report.total_patients == 6

def test_replacing_snapshot_invalidates_outstanding_search(session, patients_df, depression_config):
    token = session.begin_search(depression_config)
    report, _ = session.compute(depression_config)
    session.replace_snapshot(patients_df.iloc[:2])
    assert session.publish(token, report) is False
    assert session.latest_report is None
    assert len(session.patients) == 2
    assert session.insights.empty

def test_session_snapshot_is_isolated_from_caller(patients_df, insights_df):
    source = patients_df.copy()
    session = SearchSession(source, insights_df)
    source.loc[0, 'gender'] = 'Changed'
    assert session.patients.loc[0, 'gender'] == 'Female'

def test_session_accessors_do_not_expose_the_snapshot(patients_df, insights_df, depression_config):
    session = SearchSession(patients_df, insights_df)
    before = session.search(depression_config)
    exposed_patients = session.patients
    exposed_patients.loc[:, 'zip_code'] = '99999'
    exposed_insights = session.insights
    exposed_insights.loc[:, 'diagnosis'] = 'Depression'
    assert session.patients.equals(patients_df)
    assert session.insights.equals(insights_df)
    after = session.search(depression_config)
    assert after.population.patient_ids == before.population.patient_ids
    assert after.patient_breakdowns == before.patient_breakdowns
    assert after.insight_breakdowns == before.insight_breakdowns
