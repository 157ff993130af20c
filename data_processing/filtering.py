# population_insights_root/data_processing/filtering.py
# FILTER CRITERIA RESOLVER - FIVE-GROUP BOOLEAN CHAIN

"""
Resolves a multi-category boolean filter over the patient population.

A FilterConfiguration is an immutable value object: five criteria groups in a
fixed order joined by four AND/OR link operators. Groups are OR-within,
unconstrained groups are skipped, and the constrained groups are folded
left-to-right over the running result:

    ((((g1 OP1 g2) OP2 g3) OP3 g4) OP4 g5)
"""

import json
import logging
import operator
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from config import settings
from .helpers import normalize_label

logger = logging.getLogger(__name__)

T = TypeVar('T')


class FilterConfigurationError(ValueError):
    """Raised for a structurally invalid filter configuration."""


class LinkOperator(str, Enum):
    AND = "AND"
    OR = "OR"


# Fixed group order: (group name, source, field)
CRITERIA_GROUP_DEFINITIONS: Tuple[Tuple[str, str, str], ...] = (
    ('symptom_segments', 'insights', 'symptom_segment'),
    ('diagnoses', 'insights', 'diagnosis'),
    ('diagnostic_categories', 'insights', 'diagnostic_category'),
    ('symptom_ids', 'insights', 'symptom_id'),
    ('hrsn_problems', 'hrsn', 'hrsn_category'),
)
CRITERIA_GROUP_ORDER: Tuple[str, ...] = tuple(name for name, _, _ in CRITERIA_GROUP_DEFINITIONS)
_GROUP_FIELDS: Dict[str, str] = {name: field for name, _, field in CRITERIA_GROUP_DEFINITIONS}

_COMBINERS: Dict[LinkOperator, Callable[[Any, Any], Any]] = {
    LinkOperator.AND: operator.and_,
    LinkOperator.OR: operator.or_,
}


class CriteriaGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    selections: FrozenSet[str] = frozenset()

    @field_validator('selections', mode='before')
    @classmethod
    def _normalize_selections(cls, value: Any) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        labels = (normalize_label(v) for v in value)
        return frozenset(label for label in labels if label is not None)

    @property
    def field(self) -> str:
        return _GROUP_FIELDS[self.name]

    @property
    def is_constrained(self) -> bool:
        return bool(self.selections)


class FilterConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    groups: Tuple[CriteriaGroup, ...]
    operators: Tuple[LinkOperator, ...]

    @field_validator('operators', mode='before')
    @classmethod
    def _coerce_operators(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            coerced = []
            for op in value:
                try:
                    coerced.append(LinkOperator(op.upper() if isinstance(op, str) else op))
                except ValueError:
                    raise FilterConfigurationError(f"Unknown link operator: {op!r}")
            return tuple(coerced)
        return value

    @model_validator(mode='after')
    def _check_structure(self) -> 'FilterConfiguration':
        names = tuple(g.name for g in self.groups)
        if names != CRITERIA_GROUP_ORDER:
            raise FilterConfigurationError(
                f"Expected criteria groups {CRITERIA_GROUP_ORDER}, got {names}."
            )
        if len(self.operators) != len(self.groups) - 1:
            raise FilterConfigurationError(
                f"Expected {len(self.groups) - 1} link operators, got {len(self.operators)}."
            )
        return self

    @classmethod
    def from_selections(
        cls,
        symptom_segments: Iterable[str] = (),
        diagnoses: Iterable[str] = (),
        diagnostic_categories: Iterable[str] = (),
        symptom_ids: Iterable[str] = (),
        hrsn_problems: Iterable[str] = (),
        operators: Sequence[Union[str, LinkOperator]] = ("AND", "AND", "AND", "AND"),
    ) -> 'FilterConfiguration':
        """Builds a configuration from keyword selections in the fixed group order."""
        selections = {
            'symptom_segments': symptom_segments, 'diagnoses': diagnoses,
            'diagnostic_categories': diagnostic_categories, 'symptom_ids': symptom_ids,
            'hrsn_problems': hrsn_problems,
        }
        groups = tuple(CriteriaGroup(name=name, selections=selections[name]) for name in CRITERIA_GROUP_ORDER)
        return cls(groups=groups, operators=tuple(operators))

    @classmethod
    def unconstrained(cls) -> 'FilterConfiguration':
        return cls.from_selections()

    @property
    def is_unconstrained(self) -> bool:
        return not any(g.is_constrained for g in self.groups)

    def describe(self) -> str:
        """Human-readable rendering of the active chain, e.g. for logging."""
        parts: List[str] = []
        for idx, group in enumerate(self.groups):
            if not group.is_constrained:
                continue
            if parts:
                parts.append(self.operators[idx - 1].value)
            parts.append(f"{group.name} in {sorted(group.selections)}")
        return " ".join(parts) if parts else "<all records>"

    def cache_key(self) -> str:
        """Canonical JSON of groups and operators; equal configurations give equal keys."""
        return json.dumps({
            'groups': [[g.name, sorted(g.selections)] for g in self.groups],
            'operators': [op.value for op in self.operators],
        })


class FilteredPopulation(BaseModel):
    """Patients passing the filter (input order kept) and their insights."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    patients: pd.DataFrame
    insights: pd.DataFrame
    configuration: FilterConfiguration

    @property
    def total(self) -> int:
        return len(self.patients)

    @property
    def patient_ids(self) -> List[str]:
        return self.patients['patient_id'].tolist() if 'patient_id' in self.patients.columns else []


def fold_group_results(results: Sequence[Optional[T]], operators: Sequence[LinkOperator]) -> Optional[T]:
    """
    Left-associative fold of per-group results.

    `results[i]` is None for an unconstrained group, which is skipped; a
    constrained group joins the running result through `operators[i - 1]`.
    Works for plain booleans and for boolean Series alike. Returns None when
    no group is constrained.
    """
    combined: Optional[T] = None
    for idx, result in enumerate(results):
        if result is None:
            continue
        if combined is None:
            combined = result
            continue
        op = operators[idx - 1]
        if isinstance(combined, bool):
            # Short-circuit for the scalar path.
            if op is LinkOperator.AND and not combined:
                continue
            if op is LinkOperator.OR and combined:
                continue
        combined = _COMBINERS[op](combined, result)
    return combined


def _insight_field_members(insights_df: pd.DataFrame, field: str, selections: FrozenSet[str]) -> set:
    if insights_df.empty or field not in insights_df.columns:
        return set()
    hits = insights_df[insights_df[field].isin(selections)]
    return set(hits['patient_id'].dropna())


def _hrsn_members(patients_df: pd.DataFrame, insights_df: pd.DataFrame, selections: FrozenSet[str]) -> pd.Series:
    """Patients flagged for a selected HRSN problem on their record or by an extracted insight."""
    mask = pd.Series(False, index=patients_df.index)
    for problem in selections:
        indicator = settings.HRSN_INDICATORS.get(problem)
        if indicator is not None and problem in patients_df.columns:
            mask |= patients_df[problem].eq(indicator.affected_value).fillna(False).astype(bool)
    extracted_ids = _insight_field_members(insights_df, 'hrsn_category', selections)
    if extracted_ids:
        mask |= patients_df['patient_id'].isin(extracted_ids)
    return mask


def evaluate_group_masks(config: FilterConfiguration, patients_df: pd.DataFrame, insights_df: pd.DataFrame) -> List[Optional[pd.Series]]:
    """One boolean mask per group over `patients_df`; None for unconstrained groups."""
    masks: List[Optional[pd.Series]] = []
    for group in config.groups:
        if not group.is_constrained:
            masks.append(None)
        elif group.name == 'hrsn_problems':
            masks.append(_hrsn_members(patients_df, insights_df, group.selections))
        else:
            members = _insight_field_members(insights_df, group.field, group.selections)
            masks.append(patients_df['patient_id'].isin(members))
    return masks


def record_matches(config: FilterConfiguration, patient: Dict[str, Any], patient_insights: Iterable[Dict[str, Any]] = ()) -> bool:
    """Decides inclusion for a single canonical patient record and its insights."""
    insights = list(patient_insights)
    results: List[Optional[bool]] = []
    for group in config.groups:
        if not group.is_constrained:
            results.append(None)
            continue
        if group.name == 'hrsn_problems':
            structured = any(
                patient.get(p) == settings.HRSN_INDICATORS[p].affected_value
                for p in group.selections if p in settings.HRSN_INDICATORS
            )
            extracted = any(i.get('hrsn_category') in group.selections for i in insights)
            results.append(structured or extracted)
        else:
            results.append(any(i.get(group.field) in group.selections for i in insights))
    combined = fold_group_results(results, config.operators)
    return True if combined is None else bool(combined)


def resolve_filtered_population(
    config: FilterConfiguration,
    patients_df: pd.DataFrame,
    insights_df: Optional[pd.DataFrame] = None,
) -> FilteredPopulation:
    """
    Applies the filter chain to the whole population.

    The returned frames are copies; the inputs are never mutated. An
    unconstrained configuration returns every patient in input order.
    """
    if not isinstance(config, FilterConfiguration):
        raise FilterConfigurationError(f"Expected a FilterConfiguration, got {type(config).__name__}.")
    insights_df = insights_df if isinstance(insights_df, pd.DataFrame) else pd.DataFrame(columns=['patient_id'])

    if patients_df.empty:
        return FilteredPopulation(patients=patients_df.copy(), insights=insights_df.iloc[0:0].copy(), configuration=config)

    combined = fold_group_results(evaluate_group_masks(config, patients_df, insights_df), config.operators)
    filtered_patients = patients_df.copy() if combined is None else patients_df.loc[combined.astype(bool)].copy()

    if insights_df.empty:
        filtered_insights = insights_df.copy()
    else:
        filtered_insights = insights_df.loc[insights_df['patient_id'].isin(set(filtered_patients['patient_id']))].copy()

    logger.info(
        f"Filter [{config.describe()}] matched {len(filtered_patients)}/{len(patients_df)} patients "
        f"and {len(filtered_insights)} insight records."
    )
    return FilteredPopulation(patients=filtered_patients, insights=filtered_insights, configuration=config)
