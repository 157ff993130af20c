# population_insights_root/data_processing/aggregation.py
# CATEGORICAL AGGREGATOR - RANKED COUNTS, PERCENTAGES & TOP-N

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from .filtering import FilteredPopulation
from .helpers import percentage_of
from .reconciliation import Provenance, ReconciledCount

logger = logging.getLogger(__name__)

YES_NO_LABELS: Tuple[str, str] = ("Yes", "No")


class AggregationResult(BaseModel):
    """
    One ranked category entry.

    `percentage` is always against the full filtered population. The optional
    `top_n_percentage` is the entry's share of the displayed top-N subset and
    is only filled in by `attach_top_n_share`.
    """
    model_config = ConfigDict(frozen=True)

    category: str
    id: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)
    rank: int = Field(ge=1)
    provenance: Provenance
    top_n_percentage: Optional[int] = None


def count_values(values: pd.Series) -> List[Tuple[str, int]]:
    """Counts distinct non-null values in first-encountered order."""
    present = values.dropna()
    if present.empty:
        return []
    counts = present.value_counts(sort=False)
    return [(str(v), int(counts[v])) for v in pd.unique(present)]


def rank_counts(
    counts: Sequence[Tuple[str, int]],
    total: int,
    category: str,
    provenance: Provenance = Provenance.STRUCTURED_ONLY,
) -> List[AggregationResult]:
    """Ranks (label, count) pairs by descending count; ties keep input order."""
    ordered = sorted(counts, key=lambda item: -item[1])
    return [
        AggregationResult(
            category=category, id=label, count=count,
            percentage=min(100, percentage_of(count, total)),
            rank=position, provenance=provenance,
        )
        for position, (label, count) in enumerate(ordered, start=1)
    ]


def resolve_top_n(field: str) -> int:
    if field in settings.AGGREGATION.high_cardinality_fields:
        return settings.AGGREGATION.high_cardinality_top_n
    return settings.AGGREGATION.default_top_n


def truncate_top_n(results: Sequence[AggregationResult], top_n: Optional[int]) -> List[AggregationResult]:
    """Keeps the first N ranked entries; counts and percentages are left as computed."""
    if top_n is None:
        return list(results)
    return list(results[:max(top_n, 0)])


def attach_top_n_share(results: Sequence[AggregationResult]) -> List[AggregationResult]:
    """Adds each entry's share of the given subset as `top_n_percentage`."""
    subset_total = sum(r.count for r in results)
    return [r.model_copy(update={'top_n_percentage': percentage_of(r.count, subset_total)}) for r in results]


def aggregate_category(
    frame: pd.DataFrame,
    field: str,
    total: Optional[int] = None,
    provenance: Provenance = Provenance.STRUCTURED_ONLY,
    top_n: Optional[int] = None,
) -> List[AggregationResult]:
    """
    Generic breakdown of `frame[field]`.

    The denominator defaults to the number of rows holding a value for
    `field`, so a breakdown partitions exactly the rows it counts. Top-N
    truncation happens after ranking and never changes it.
    """
    if field not in frame.columns:
        logger.debug(f"Field '{field}' not present; empty breakdown.")
        return []
    denominator = int(frame[field].notna().sum()) if total is None else total
    ranked = rank_counts(count_values(frame[field]), denominator, field, provenance)
    return truncate_top_n(ranked, top_n)


def aggregate_patient_field(population: FilteredPopulation, field: str, top_n: Optional[int] = -1) -> List[AggregationResult]:
    """
    Breakdown of a patient-level field (ZIP, demographics).

    `top_n=-1` picks the configured default for the field; None disables
    truncation.
    """
    limit = resolve_top_n(field) if top_n == -1 else top_n
    return aggregate_category(population.patients, field, provenance=Provenance.STRUCTURED_ONLY, top_n=limit)


def aggregate_insight_field(population: FilteredPopulation, field: str, top_n: Optional[int] = -1) -> List[AggregationResult]:
    """Breakdown of an insight label over the filtered insight records."""
    limit = resolve_top_n(field) if top_n == -1 else top_n
    return aggregate_category(population.insights, field, provenance=Provenance.EXTRACTED_ONLY, top_n=limit)


def aggregate_hrsn_indicator(patients_df: pd.DataFrame, indicator: str) -> List[AggregationResult]:
    """
    Two-bar Yes/No breakdown of one HRSN indicator.

    Always returns exactly a "Yes" and a "No" entry, in that order, each
    carrying its count-based rank. "No" counts every patient without a "Yes",
    including those with no recorded value.
    """
    total = len(patients_df)
    if indicator in patients_df.columns:
        yes_count = int(patients_df[indicator].eq("Yes").sum())
    else:
        yes_count = 0
    counts = [("Yes", yes_count), ("No", total - yes_count)]
    ranked = rank_counts(counts, total, indicator, Provenance.STRUCTURED_ONLY)
    return sorted(ranked, key=lambda r: YES_NO_LABELS.index(r.id))


def aggregate_reconciled(reconciled: Iterable[ReconciledCount], total: int, category: str = 'hrsn_category') -> List[AggregationResult]:
    """Ranks reconciled categories by combined count, keeping their provenance."""
    entries = list(reconciled)
    ordered = sorted(entries, key=lambda r: -r.combined_count)
    return [
        AggregationResult(
            category=category, id=r.key, count=r.combined_count,
            percentage=min(100, percentage_of(r.combined_count, total)),
            rank=position, provenance=r.provenance,
        )
        for position, r in enumerate(ordered, start=1)
    ]


def results_to_frame(results: Sequence[AggregationResult]) -> pd.DataFrame:
    """Tabular view of aggregation results for the presentation layer."""
    columns = list(AggregationResult.model_fields.keys())
    if not results:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([r.model_dump(mode='json') for r in results], columns=columns)
    return df
