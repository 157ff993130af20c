# population_insights_root/data_processing/loaders.py
# ROBUST RECORD LOADING - CANONICAL PATIENT & INSIGHT FRAMES

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd
from pydantic import BaseModel, Field

from config import settings
from .helpers import DataPipeline, normalize_label, robust_json_load

logger = logging.getLogger(__name__)

RecordInput = Union[pd.DataFrame, Iterable[Mapping[str, Any]], None]

# --- Pydantic Models for Type-Safe Configuration ---

class RecordConfig(BaseModel):
    """Defines the canonical schema a record source is normalized into."""
    fields: List[str]
    label_cols: List[str] = Field(default_factory=list)
    sentinel_cols: List[str] = Field(default_factory=list)
    numeric_defaults: Dict[str, Any] = Field(default_factory=dict)
    required_cols: List[str] = Field(default_factory=list)
    path_setting: Optional[str] = None

# --- Centralized Record Source Configuration ---

RECORD_CONFIG: Dict[str, RecordConfig] = {
    'patients': RecordConfig(
        fields=['patient_id', 'zip_code', *settings.DEMOGRAPHIC_FIELDS],
        label_cols=['patient_id', *settings.DEMOGRAPHIC_FIELDS],
        sentinel_cols=settings.DEMOGRAPHIC_FIELDS,
        required_cols=['patient_id'],
        path_setting='PATIENT_RECORDS_PATH'
    ),
    'insights': RecordConfig(
        fields=['patient_id', *settings.INSIGHT_LABEL_FIELDS, 'count'],
        label_cols=['patient_id', *settings.INSIGHT_LABEL_FIELDS],
        numeric_defaults={'count': 1},
        required_cols=['patient_id'],
        path_setting='INSIGHT_RECORDS_PATH'
    ),
}


def _hrsn_aliases() -> Dict[str, List[str]]:
    return {key: cfg.field_aliases for key, cfg in settings.HRSN_INDICATORS.items()}


def _normalize_hrsn_value(value: Any) -> Optional[str]:
    label = normalize_label(value)
    if label is None:
        return None
    lowered = label.lower()
    if lowered in ('yes', 'y', 'true', '1'):
        return "Yes"
    if lowered in ('no', 'n', 'false', '0'):
        return "No"
    return None


def _build_frame(config_key: str, records: RecordInput, extra_aliases: Optional[Dict[str, List[str]]] = None) -> pd.DataFrame:
    config = RECORD_CONFIG[config_key]
    aliases = {**settings.FIELD_ALIASES, **(extra_aliases or {})}
    fields = config.fields + list((extra_aliases or {}).keys())

    pipeline = DataPipeline.from_records(records)
    if pipeline.df.empty:
        logger.info(f"({config_key}) No records supplied.")
        return pd.DataFrame(columns=fields)

    processed_df = (pipeline
        .resolve_aliases(fields, aliases)
        .normalize_zip_column('zip_code')
        .normalize_label_columns(config.label_cols)
        .fill_missing_labels(config.sentinel_cols, settings.UNKNOWN_LABEL)
        .standardize_missing_values(config.numeric_defaults)
        .drop_rows_missing('patient_id', config_key)
        .reset_index()
        .to_df()
    )
    missing_cols = set(config.required_cols) - set(processed_df.columns)
    if missing_cols:
        logger.critical(f"({config_key}) Schema validation failed! Missing required columns: {missing_cols}")
        return pd.DataFrame(columns=fields)

    logger.info(f"({config_key}) Loaded and normalized {len(processed_df)} records.")
    return processed_df


def load_patient_records(records: RecordInput) -> pd.DataFrame:
    """
    Normalizes raw patient records into the canonical patient frame.

    ZIP codes are canonicalized (absent ones become None), demographics fall
    back to the 'Unknown' sentinel and every configured HRSN indicator gets a
    column holding "Yes", "No" or None. Input order is preserved.
    """
    df = _build_frame('patients', records, extra_aliases=_hrsn_aliases())
    for indicator in settings.HRSN_FIELDS:
        if indicator in df.columns:
            df[indicator] = df[indicator].map(_normalize_hrsn_value).astype(object)
    return df


def load_insight_records(records: RecordInput) -> pd.DataFrame:
    """Normalizes raw NLP insight records into the canonical insight frame."""
    return _build_frame('insights', records)


def load_records_from_json(config_key: str, filepath_override: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Loads a JSON array of records from a path or its settings attribute."""
    config = RECORD_CONFIG.get(config_key)
    if config is None or not config.path_setting:
        logger.error(f"Invalid record config key: '{config_key}'")
        return pd.DataFrame()

    path_to_load = Path(filepath_override) if filepath_override else getattr(settings, config.path_setting)
    raw = robust_json_load(path_to_load)
    if not isinstance(raw, list):
        logger.error(f"({config_key}) Expected a JSON array of records at {path_to_load}.")
        raw = []
    loader = load_patient_records if config_key == 'patients' else load_insight_records
    return loader(raw)
