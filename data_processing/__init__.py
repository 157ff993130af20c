# population_insights_root/data_processing/__init__.py
# EXPLICIT PACKAGE API

"""
Initializes the data_processing package, defining its public API.

This file explicitly exports all public-facing functions from its submodules,
providing a single, consistent import point for the rest of the application.
"""

# --- Identifier Normalization & Pipeline from helpers.py ---
from .helpers import (
    DataPipeline,
    convert_to_numeric,
    hash_dataframe,
    normalize_label,
    normalize_zip,
    percentage_of,
    resolve_field,
    robust_json_load,
    round_half_up,
)

# --- Record Loading from loaders.py ---
from .loaders import (
    load_insight_records,
    load_patient_records,
    load_records_from_json,
)

# --- Filter Criteria Resolver from filtering.py ---
from .filtering import (
    CRITERIA_GROUP_ORDER,
    CriteriaGroup,
    FilterConfiguration,
    FilterConfigurationError,
    FilteredPopulation,
    LinkOperator,
    fold_group_results,
    record_matches,
    resolve_filtered_population,
)

# --- Dual-Source Reconciler from reconciliation.py ---
from .reconciliation import (
    Provenance,
    ReconciledCount,
    count_extracted_insights,
    count_structured_hrsn,
    reconcile_counts,
    reconcile_hrsn_categories,
)

# --- Categorical Aggregator from aggregation.py ---
from .aggregation import (
    AggregationResult,
    aggregate_category,
    aggregate_hrsn_indicator,
    aggregate_insight_field,
    aggregate_patient_field,
    aggregate_reconciled,
    attach_top_n_share,
    results_to_frame,
    truncate_top_n,
)

# --- Geographic Estimator from geography.py ---
from .geography import (
    GeographicBin,
    GeographicSummary,
    affected_rate,
    affected_rate_from_reconciled,
    assign_intensity_level,
    build_geographic_bins,
    estimate_affected,
    predominant_attribute,
    summarize_geography,
)

# --- Cached Wrappers from cached.py (for UI) ---
from .cached import (
    get_cached_filtered_population,
    get_cached_geographic_bins,
    get_cached_zip_breakdown,
)


__all__ = [
    # helpers.py
    "DataPipeline", "convert_to_numeric", "hash_dataframe", "normalize_label",
    "normalize_zip", "percentage_of", "resolve_field", "robust_json_load", "round_half_up",

    # loaders.py
    "load_insight_records", "load_patient_records", "load_records_from_json",

    # filtering.py
    "CRITERIA_GROUP_ORDER", "CriteriaGroup", "FilterConfiguration", "FilterConfigurationError",
    "FilteredPopulation", "LinkOperator", "fold_group_results", "record_matches",
    "resolve_filtered_population",

    # reconciliation.py
    "Provenance", "ReconciledCount", "count_extracted_insights", "count_structured_hrsn",
    "reconcile_counts", "reconcile_hrsn_categories",

    # aggregation.py
    "AggregationResult", "aggregate_category", "aggregate_hrsn_indicator", "aggregate_insight_field",
    "aggregate_patient_field", "aggregate_reconciled", "attach_top_n_share", "results_to_frame",
    "truncate_top_n",

    # geography.py
    "GeographicBin", "GeographicSummary", "affected_rate", "affected_rate_from_reconciled",
    "assign_intensity_level", "build_geographic_bins", "estimate_affected", "predominant_attribute",
    "summarize_geography",

    # cached.py (for UI)
    "get_cached_filtered_population", "get_cached_geographic_bins", "get_cached_zip_breakdown",
]
