# population_insights_root/app.py
# APPLICATION ENTRY POINT - POPULATION SEARCH DASHBOARD

import logging
import sys
from pathlib import Path

try:
    _project_root = Path(__file__).resolve().parent
    if str(_project_root) not in sys.path:
        sys.path.insert(0, str(_project_root))

    import pandas as pd
    import streamlit as st
    from analytics import SearchSession
    from config import settings
    from data_processing import (CRITERIA_GROUP_ORDER, FilterConfiguration, load_records_from_json,
                                 results_to_frame)
    from visualization import (plot_category_breakdown, plot_yes_no_comparison, plot_zip_intensity,
                               set_plotly_theme)

except ImportError as e:
    print("FATAL ERROR in app.py: A core module failed to import.", file=sys.stderr)
    print("Run the app from the project root: `streamlit run app.py`", file=sys.stderr)
    print(f"\nPython Path: {sys.path}\nOriginal ImportError: {e}", file=sys.stderr)
    sys.exit(1)

# --- Global Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT,
    datefmt=settings.LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)
logger = logging.getLogger(__name__)

st.set_page_config(page_title=f"{settings.APP_NAME}", page_icon="🗺️", layout="wide", initial_sidebar_state="expanded")
set_plotly_theme()

GROUP_LABELS = {
    'symptom_segments': "Symptom Segments", 'diagnoses': "Diagnoses",
    'diagnostic_categories': "Diagnostic Categories", 'symptom_ids': "Symptom IDs",
    'hrsn_problems': "HRSN Problems",
}
GROUP_SOURCE_FIELDS = {
    'symptom_segments': 'symptom_segment', 'diagnoses': 'diagnosis',
    'diagnostic_categories': 'diagnostic_category', 'symptom_ids': 'symptom_id',
}


@st.cache_resource
def get_session() -> SearchSession:
    patients_df = load_records_from_json('patients')
    insights_df = load_records_from_json('insights')
    return SearchSession(patients_df, insights_df)


def _group_options(insights_df: pd.DataFrame, group: str) -> list:
    if group == 'hrsn_problems':
        return settings.HRSN_FIELDS
    field = GROUP_SOURCE_FIELDS[group]
    if field not in insights_df.columns:
        return []
    return sorted(insights_df[field].dropna().unique().tolist())


session = get_session()
insights_snapshot = session.insights

with st.sidebar:
    st.header(settings.APP_NAME)
    st.caption(f"v{settings.APP_VERSION}")
    st.divider()
    selections, operators = {}, []
    for idx, group in enumerate(CRITERIA_GROUP_ORDER):
        if idx > 0:
            operators.append(st.radio(f"Link to {GROUP_LABELS[group]}", ["AND", "OR"], horizontal=True, key=f"op_{group}"))
        selections[group] = st.multiselect(GROUP_LABELS[group], _group_options(insights_snapshot, group), key=f"sel_{group}")
    run_search = st.button("Run Search", type="primary", use_container_width=True)

if run_search or session.latest_report is None:
    config = FilterConfiguration.from_selections(operators=operators, **selections)
    session.search(config)

report = session.latest_report
st.title(settings.APP_NAME)
if session.latest_errors:
    st.warning("Some breakdowns could not be computed: " + "; ".join(session.latest_errors))
if report is None or report.total_patients == 0:
    st.info("No data available for the selected criteria.")
    st.stop()

cols = st.columns(3)
cols[0].metric("Matching Patients", f"{report.total_patients:,}")
cols[1].metric("Insight Records", f"{len(report.population.insights):,}")
cols[2].metric("ZIP Codes", f"{len(report.patient_breakdowns.get('zip_code', [])):,}")
st.caption(f"Filter: {report.population.configuration.describe()}")

tab_demo, tab_insight, tab_hrsn = st.tabs(["Demographics", "Clinical Insights", "HRSN & Geography"])
with tab_demo:
    for field, results in report.patient_breakdowns.items():
        st.plotly_chart(plot_category_breakdown(results, field.replace('_', ' ').title()), use_container_width=True)
with tab_insight:
    for field, results in report.insight_breakdowns.items():
        st.plotly_chart(plot_category_breakdown(results, field.replace('_', ' ').title(), show_percentage=True), use_container_width=True)
with tab_hrsn:
    st.dataframe(results_to_frame(report.hrsn_ranking), use_container_width=True, hide_index=True)
    indicator = st.selectbox("HRSN indicator", settings.HRSN_FIELDS, format_func=lambda k: settings.HRSN_INDICATORS[k].display_name)
    left, right = st.columns(2)
    with left:
        st.plotly_chart(plot_yes_no_comparison(report.hrsn_breakdowns.get(indicator, []), settings.HRSN_INDICATORS[indicator].display_name), use_container_width=True)
    with right:
        st.plotly_chart(plot_zip_intensity(report.geographic_bins.get(indicator, []), "Estimated Affected by ZIP", top_n=settings.AGGREGATION.high_cardinality_top_n), use_container_width=True)
    summary = report.geographic_summaries.get(indicator)
    if summary is not None:
        st.caption(
            f"{summary.affected_count:,} affected ({summary.affected_percentage}%). "
            f"Top {len(summary.top_regions)} ZIPs hold {summary.top_regions_share_of_affected}% of estimated affected. "
            "Regional figures are proportional estimates; populated ZIPs are shown with at least 1 when the rate is non-zero."
        )

logger.info("Population search page rendered.")
