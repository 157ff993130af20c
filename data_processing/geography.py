# population_insights_root/data_processing/geography.py
# GEOGRAPHIC ESTIMATOR - ZIP-LEVEL AFFECTED ESTIMATES & INTENSITY BUCKETS

"""
Per-ZIP statistics for an HRSN category when only its population-wide
affected rate is known.

The estimate is proportional: `estimated = round(total_in_zip * rate)`. When
that rounds to 0 for a populated ZIP and the rate is non-zero the estimate is
clamped to 1 so sparse regions stay visible on a map. This floor is a display
bias, not a statistical estimate; `GeographicBin.floor_applied` flags the
regions it touched.
"""

import logging
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from .helpers import percentage_of, round_half_up
from .reconciliation import ReconciledCount

logger = logging.getLogger(__name__)


class GeographicBin(BaseModel):
    model_config = ConfigDict(frozen=True)

    zip_code: str
    total_patients: int = Field(ge=0)
    estimated_affected: int = Field(ge=0)
    intensity_level: int = Field(ge=0)
    predominant_attribute: str
    floor_applied: bool = False


class RegionShare(BaseModel):
    """A top-N region with its share of all patients and of the top-N group."""
    model_config = ConfigDict(frozen=True)

    rank: int
    zip_code: str
    estimated_affected: int
    total_patients: int
    predominant_attribute: str
    percent_of_all_patients: float
    percent_of_top_regions: float


class GeographicSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_patients: int
    affected_count: int
    affected_percentage: float
    unique_zip_count: int
    estimated_affected_zip_count: int
    top_regions: List[RegionShare]
    top_regions_share_of_affected: float


Rate = Union[float, Fraction]


def affected_rate(affected_count: int, total_patients: int) -> Fraction:
    """
    Population-wide affected fraction, clamped to [0, 1]; 0 for an empty population.

    Kept as an exact Fraction so ZIP estimates round on the true product.
    """
    if total_patients <= 0 or affected_count <= 0:
        return Fraction(0)
    return min(Fraction(1), Fraction(int(affected_count), int(total_patients)))


def affected_rate_from_reconciled(entry: Optional[ReconciledCount], total_patients: int) -> Fraction:
    if entry is None:
        return Fraction(0)
    return affected_rate(entry.combined_count, total_patients)


def estimate_affected(total_in_zip: int, rate: Rate) -> int:
    """Proportional estimate with the display floor of 1 for populated, non-zero-rate regions."""
    estimated = round_half_up(total_in_zip * rate)
    if estimated == 0 and total_in_zip > 0 and rate > 0:
        return 1
    return estimated


def assign_intensity_level(value: float, max_value: float, levels: Optional[int] = None) -> int:
    """
    Maps a count onto `levels` ordered buckets by linear interpolation.

    Zero (or a zero maximum) is always level 0; any positive count gets at
    least level 1 and the maximum gets the top level.
    """
    n_levels = levels or settings.GEOGRAPHY.intensity_levels
    if value <= 0 or max_value <= 0:
        return 0
    scaled = round_half_up(min(value, max_value) / max_value * (n_levels - 1))
    return max(1, min(n_levels - 1, scaled))


def predominant_attribute(zip_patients: pd.DataFrame, fields: Optional[Sequence[str]] = None, threshold: Optional[float] = None) -> str:
    """
    The dominant demographic value of a region.

    Fields are tried in fallback order (age range, race, ethnicity); the first
    whose most common known value covers at least `threshold` of the region's
    patients wins. Otherwise the region is reported as mixed.
    """
    geo = settings.GEOGRAPHY
    order = fields or geo.demographic_fallback_order
    min_share = geo.predominance_threshold if threshold is None else threshold
    total = len(zip_patients)
    if total == 0:
        return geo.mixed_label
    for field in order:
        if field not in zip_patients.columns:
            continue
        known = zip_patients[field].dropna()
        known = known[known != settings.UNKNOWN_LABEL]
        if known.empty:
            continue
        counts = known.value_counts(sort=False)
        top_value = max(pd.unique(known), key=lambda v: counts[v])
        if counts[top_value] >= total * min_share:
            return str(top_value)
    return geo.mixed_label


def build_geographic_bins(patients_df: pd.DataFrame, rate: Optional[Rate] = None, levels: Optional[int] = None) -> List[GeographicBin]:
    """
    One bin per ZIP present in `patients_df`.

    With a `rate`, bins carry proportional affected estimates and intensity is
    bucketed on them; without one, intensity follows the patient totals and
    `estimated_affected` is 0. Patients without a valid ZIP are excluded.
    Bins are ordered by estimated affected, then total, then first appearance.
    """
    if patients_df.empty or 'zip_code' not in patients_df.columns:
        return []
    located = patients_df.dropna(subset=['zip_code'])
    excluded = len(patients_df) - len(located)
    if excluded:
        logger.debug(f"{excluded} patient(s) without a valid ZIP excluded from geographic binning.")
    if located.empty:
        return []

    effective_rate = max(0, min(1, rate)) if rate is not None else None
    groups = {str(zip_code): frame for zip_code, frame in located.groupby('zip_code', sort=False)}
    totals = {zip_code: len(frame) for zip_code, frame in groups.items()}
    estimates: Dict[str, int] = {
        zip_code: estimate_affected(total, effective_rate) if effective_rate is not None else 0
        for zip_code, total in totals.items()
    }
    basis = estimates if effective_rate is not None else totals
    max_value = max(basis.values()) if basis else 0

    bins = [
        GeographicBin(
            zip_code=zip_code,
            total_patients=totals[zip_code],
            estimated_affected=estimates[zip_code],
            intensity_level=assign_intensity_level(basis[zip_code], max_value, levels),
            predominant_attribute=predominant_attribute(frame),
            floor_applied=bool(
                effective_rate and estimates[zip_code] == 1
                and round_half_up(totals[zip_code] * effective_rate) == 0
            ),
        )
        for zip_code, frame in groups.items()
    ]
    bins.sort(key=lambda b: (-b.estimated_affected, -b.total_patients))
    logger.info(f"Built {len(bins)} geographic bins (rate={float(effective_rate or 0):.4f}, max={max_value}).")
    return bins


def summarize_geography(
    bins: Sequence[GeographicBin],
    affected_count: int,
    total_patients: int,
    top_n: Optional[int] = None,
) -> GeographicSummary:
    """Headline figures and the top-N affected regions for one category."""
    limit = settings.GEOGRAPHY.top_region_count if top_n is None else top_n
    rate = affected_rate(affected_count, total_patients)
    top = list(bins[:limit])
    top_total = sum(b.estimated_affected for b in top)

    def _pct(part: float, whole: float) -> float:
        return round(100.0 * part / whole, 1) if whole else 0.0

    shares = [
        RegionShare(
            rank=position, zip_code=b.zip_code, estimated_affected=b.estimated_affected,
            total_patients=b.total_patients, predominant_attribute=b.predominant_attribute,
            percent_of_all_patients=_pct(b.estimated_affected, total_patients),
            percent_of_top_regions=_pct(b.estimated_affected, top_total),
        )
        for position, b in enumerate(top, start=1)
    ]
    return GeographicSummary(
        total_patients=total_patients,
        affected_count=affected_count,
        affected_percentage=_pct(affected_count, total_patients),
        unique_zip_count=len(bins),
        estimated_affected_zip_count=round_half_up(len(bins) * rate),
        top_regions=shares,
        top_regions_share_of_affected=_pct(top_total, affected_count),
    )


def zip_affected_percentage(bin_: GeographicBin) -> int:
    """Estimated affected share of a ZIP's own population."""
    return percentage_of(bin_.estimated_affected, bin_.total_patients)
