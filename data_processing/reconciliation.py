# population_insights_root/data_processing/reconciliation.py
# DUAL-SOURCE RECONCILER - STRUCTURED FIELDS vs. EXTRACTED INSIGHTS

"""
Merges the structured-field count and the NLP-extracted count of each category
into one provenance-tagged entry. Join keys are normalized labels and the
reconciled key set is always the union of both sources plus any requested keys.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict

from config import settings
from .helpers import normalize_label

logger = logging.getLogger(__name__)


class Provenance(str, Enum):
    STRUCTURED_ONLY = "structured-only"
    EXTRACTED_ONLY = "extracted-only"
    DUAL_SOURCE = "dual-source"
    NO_DATA = "no-data"


class ReconciledCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    structured_count: int = 0
    extracted_count: int = 0
    combined_count: int = 0
    provenance: Provenance = Provenance.NO_DATA


def classify_provenance(structured_count: int, extracted_count: int) -> Provenance:
    if structured_count > 0 and extracted_count > 0:
        return Provenance.DUAL_SOURCE
    if structured_count > 0:
        return Provenance.STRUCTURED_ONLY
    if extracted_count > 0:
        return Provenance.EXTRACTED_ONLY
    return Provenance.NO_DATA


def _normalized_counts(counts: Optional[Mapping[str, int]]) -> Dict[str, int]:
    """Re-keys a count mapping by normalized label; colliding labels are summed."""
    merged: Dict[str, int] = {}
    for raw_key, value in (counts or {}).items():
        key = normalize_label(raw_key)
        if key is None:
            continue
        merged[key] = merged.get(key, 0) + int(value or 0)
    return merged


def reconcile_counts(
    structured: Optional[Mapping[str, int]],
    extracted: Optional[Mapping[str, int]],
    requested: Iterable[str] = (),
) -> List[ReconciledCount]:
    """
    Reconciles two per-category count mappings.

    Output order: requested keys first, then structured keys, then extracted
    keys, each in first-seen order. No key from either source is dropped.
    """
    structured_counts = _normalized_counts(structured)
    extracted_counts = _normalized_counts(extracted)

    ordered_keys: Dict[str, None] = {}
    for key in requested:
        label = normalize_label(key)
        if label is not None:
            ordered_keys.setdefault(label, None)
    for key in list(structured_counts) + list(extracted_counts):
        ordered_keys.setdefault(key, None)

    reconciled = []
    for key in ordered_keys:
        s_count = structured_counts.get(key, 0)
        e_count = extracted_counts.get(key, 0)
        provenance = classify_provenance(s_count, e_count)
        # Only non-zero sources contribute to the combined figure.
        combined = (s_count if s_count > 0 else 0) + (e_count if e_count > 0 else 0)
        reconciled.append(ReconciledCount(
            key=key, structured_count=s_count, extracted_count=e_count,
            combined_count=combined, provenance=provenance,
        ))

    tally = pd.Series([r.provenance.value for r in reconciled], dtype=object).value_counts().to_dict()
    logger.debug(f"Reconciled {len(reconciled)} categories: {tally}")
    return reconciled


def count_structured_hrsn(patients_df: pd.DataFrame, indicators: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Patients flagged as affected on their own record, per HRSN indicator."""
    keys = list(indicators) if indicators is not None else settings.HRSN_FIELDS
    counts: Dict[str, int] = {}
    for key in keys:
        config = settings.HRSN_INDICATORS.get(key)
        if config is None or key not in patients_df.columns:
            continue
        counts[key] = int(patients_df[key].eq(config.affected_value).sum())
    return counts


def count_extracted_insights(insights_df: pd.DataFrame, label_col: str = 'hrsn_category', weighted: bool = False) -> Dict[str, int]:
    """
    Per-label counts from insight records.

    By default a label counts distinct patients; with `weighted=True` it sums
    the insight `count` column instead.
    """
    if insights_df.empty or label_col not in insights_df.columns:
        return {}
    labelled = insights_df.dropna(subset=[label_col])
    if labelled.empty:
        return {}
    if weighted and 'count' in labelled.columns:
        grouped = labelled.groupby(label_col, sort=False)['count'].sum()
    else:
        grouped = labelled.groupby(label_col, sort=False)['patient_id'].nunique()
    return {str(k): int(v) for k, v in grouped.items()}


def reconcile_hrsn_categories(
    patients_df: pd.DataFrame,
    insights_df: pd.DataFrame,
    indicators: Optional[Iterable[str]] = None,
    weighted: bool = False,
) -> List[ReconciledCount]:
    """Reconciles every configured HRSN indicator across both sources."""
    keys = list(indicators) if indicators is not None else settings.HRSN_FIELDS
    extracted = count_extracted_insights(insights_df, 'hrsn_category', weighted=weighted)
    if indicators is not None:
        extracted = {k: v for k, v in extracted.items() if k in keys}
    return reconcile_counts(count_structured_hrsn(patients_df, keys), extracted, requested=keys)


def reconciled_lookup(reconciled: Iterable[ReconciledCount]) -> Dict[str, ReconciledCount]:
    return {r.key: r for r in reconciled}
