# population_insights_root/analytics/orchestrator.py
# POPULATION SEARCH ORCHESTRATION PIPELINE

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from data_processing.aggregation import (AggregationResult, aggregate_hrsn_indicator,
                                         aggregate_insight_field, aggregate_patient_field,
                                         aggregate_reconciled)
from data_processing.filtering import FilterConfiguration, FilteredPopulation, resolve_filtered_population
from data_processing.geography import (GeographicBin, GeographicSummary, affected_rate_from_reconciled,
                                       build_geographic_bins, summarize_geography)
from data_processing.reconciliation import ReconciledCount, reconcile_hrsn_categories, reconciled_lookup

logger = logging.getLogger(__name__)

PATIENT_BREAKDOWN_FIELDS: Tuple[str, ...] = ('zip_code', *settings.DEMOGRAPHIC_FIELDS)
INSIGHT_BREAKDOWN_FIELDS: Tuple[str, ...] = ('symptom_segment', 'diagnosis', 'diagnostic_category', 'symptom_id')


class PopulationReport(BaseModel):
    """Everything one search pass produces for the presentation layer."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    population: FilteredPopulation
    patient_breakdowns: Dict[str, List[AggregationResult]] = Field(default_factory=dict)
    insight_breakdowns: Dict[str, List[AggregationResult]] = Field(default_factory=dict)
    hrsn_breakdowns: Dict[str, List[AggregationResult]] = Field(default_factory=dict)
    reconciled_hrsn: List[ReconciledCount] = Field(default_factory=list)
    hrsn_ranking: List[AggregationResult] = Field(default_factory=list)
    geographic_bins: Dict[str, List[GeographicBin]] = Field(default_factory=dict)
    geographic_summaries: Dict[str, GeographicSummary] = Field(default_factory=dict)

    @property
    def total_patients(self) -> int:
        return self.population.total


class PopulationInsightPipeline:
    """
    Runs one filter/aggregate pass: resolve the population, break it down by
    patient and insight fields, reconcile the HRSN sources and estimate their
    geographic spread. A failing step is logged and recorded in `errors`;
    the remaining steps still run.
    """
    def __init__(
        self,
        patients_df: pd.DataFrame,
        insights_df: Optional[pd.DataFrame],
        config: FilterConfiguration,
        hrsn_indicators: Optional[Sequence[str]] = None,
        source_context: str = "default",
    ):
        self.patients_df = patients_df
        self.insights_df = insights_df if isinstance(insights_df, pd.DataFrame) else pd.DataFrame(columns=['patient_id'])
        self.config = config
        self.hrsn_indicators = list(hrsn_indicators) if hrsn_indicators is not None else settings.HRSN_FIELDS
        self.source_context = source_context
        self.errors: List[str] = []
        self._parts: Dict[str, object] = {}

    def _resolve_population(self) -> 'PopulationInsightPipeline':
        # Structural configuration errors propagate; they are caller bugs.
        self.population = resolve_filtered_population(self.config, self.patients_df, self.insights_df)
        return self

    def _aggregate_patient_fields(self) -> 'PopulationInsightPipeline':
        breakdowns: Dict[str, List[AggregationResult]] = {}
        for field in PATIENT_BREAKDOWN_FIELDS:
            try:
                breakdowns[field] = aggregate_patient_field(self.population, field)
            except Exception as e:
                self._record_failure(f"Patient breakdown for '{field}' failed.", e)
                breakdowns[field] = []
        self._parts['patient_breakdowns'] = breakdowns
        return self

    def _aggregate_insight_fields(self) -> 'PopulationInsightPipeline':
        breakdowns: Dict[str, List[AggregationResult]] = {}
        for field in INSIGHT_BREAKDOWN_FIELDS:
            try:
                breakdowns[field] = aggregate_insight_field(self.population, field)
            except Exception as e:
                self._record_failure(f"Insight breakdown for '{field}' failed.", e)
                breakdowns[field] = []
        self._parts['insight_breakdowns'] = breakdowns
        return self

    def _reconcile_hrsn(self) -> 'PopulationInsightPipeline':
        patients = self.population.patients
        try:
            reconciled = reconcile_hrsn_categories(patients, self.population.insights, self.hrsn_indicators)
        except Exception as e:
            self._record_failure("HRSN reconciliation failed.", e)
            reconciled = []
        self._parts['reconciled_hrsn'] = reconciled
        self._parts['hrsn_ranking'] = aggregate_reconciled(reconciled, self.population.total)
        self._parts['hrsn_breakdowns'] = {
            indicator: aggregate_hrsn_indicator(patients, indicator) for indicator in self.hrsn_indicators
        }
        return self

    def _estimate_geography(self) -> 'PopulationInsightPipeline':
        lookup = reconciled_lookup(self._parts.get('reconciled_hrsn', []))
        bins: Dict[str, List[GeographicBin]] = {}
        summaries: Dict[str, GeographicSummary] = {}
        total = self.population.total
        for indicator in self.hrsn_indicators:
            try:
                entry = lookup.get(indicator)
                rate = affected_rate_from_reconciled(entry, total)
                bins[indicator] = build_geographic_bins(self.population.patients, rate)
                affected = min(entry.combined_count, total) if entry is not None else 0
                summaries[indicator] = summarize_geography(bins[indicator], affected, total)
            except Exception as e:
                self._record_failure(f"Geographic estimate for '{indicator}' failed.", e)
                bins[indicator] = []
        self._parts['geographic_bins'] = bins
        self._parts['geographic_summaries'] = summaries
        return self

    def _record_failure(self, msg: str, exc: Exception) -> None:
        self.errors.append(msg)
        logger.error(f"({self.source_context}) {msg}: {exc}", exc_info=True)

    def run(self) -> Tuple[PopulationReport, List[str]]:
        """Executes the full pass in a fluent sequence."""
        logger.info(f"({self.source_context}) Starting population search over {len(self.patients_df)} patients.")

        (self
            ._resolve_population()
            ._aggregate_patient_fields()
            ._aggregate_insight_fields()
            ._reconcile_hrsn()
            ._estimate_geography()
        )

        report = PopulationReport(population=self.population, **self._parts)
        logger.info(f"({self.source_context}) Population search complete: {report.total_patients} patients, {len(self.errors)} error(s).")
        return report, self.errors


def run_population_search(
    patients_df: pd.DataFrame,
    insights_df: Optional[pd.DataFrame],
    config: Optional[FilterConfiguration] = None,
    hrsn_indicators: Optional[Sequence[str]] = None,
    source_context: str = "PopulationSearch",
) -> Tuple[PopulationReport, List[str]]:
    """
    Public factory function for one search pass. A missing configuration
    means the unconstrained default (whole population).
    """
    if not isinstance(patients_df, pd.DataFrame):
        raise TypeError("patients_df must be a pandas DataFrame.")
    pipeline = PopulationInsightPipeline(
        patients_df, insights_df, config or FilterConfiguration.unconstrained(),
        hrsn_indicators=hrsn_indicators, source_context=source_context,
    )
    return pipeline.run()
