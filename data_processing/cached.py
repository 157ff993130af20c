# population_insights_root/data_processing/cached.py
# STREAMLIT CACHING LAYER

from fractions import Fraction
from typing import List, Optional, Union

import pandas as pd
import streamlit as st

from config import settings
from .aggregation import AggregationResult, aggregate_patient_field
from .filtering import FilterConfiguration, FilteredPopulation, resolve_filtered_population
from .geography import GeographicBin, build_geographic_bins
from .helpers import hash_dataframe

CACHE_TTL_SECONDS = settings.WEB_CACHE_TTL_SECONDS
_HASH_FUNCS = {
    pd.DataFrame: hash_dataframe,
    FilterConfiguration: FilterConfiguration.cache_key,
    Fraction: str,
}


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs=_HASH_FUNCS)
def get_cached_filtered_population(config: FilterConfiguration, patients_df: pd.DataFrame, insights_df: pd.DataFrame) -> FilteredPopulation:
    """Cached wrapper for resolve_filtered_population."""
    return resolve_filtered_population(config, patients_df, insights_df)


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs=_HASH_FUNCS)
def get_cached_zip_breakdown(config: FilterConfiguration, patients_df: pd.DataFrame, insights_df: pd.DataFrame) -> List[AggregationResult]:
    """Cached ZIP breakdown of the filtered population."""
    population = resolve_filtered_population(config, patients_df, insights_df)
    return aggregate_patient_field(population, 'zip_code')


@st.cache_data(ttl=CACHE_TTL_SECONDS, hash_funcs=_HASH_FUNCS)
def get_cached_geographic_bins(patients_df: pd.DataFrame, rate: Optional[Union[float, Fraction]]) -> List[GeographicBin]:
    """Cached wrapper for build_geographic_bins."""
    return build_geographic_bins(patients_df, rate)
