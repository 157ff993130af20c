# population_insights_root/data_processing/helpers.py
# IDENTIFIER NORMALIZATION & FLUENT RECORD PIPELINE

"""
Identifier normalization utilities and a fluent DataPipeline class that turns
loosely-typed patient and insight records into canonical, analytics-ready
DataFrames.
"""
import hashlib
import json
import logging
import math
import re
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from config import settings

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|np\.nan|nat|<na>|null|nil|na|undefined|unknown|-|)\s*$'
)
_NON_DIGIT_PATTERN = re.compile(r'\D+')
_WHITESPACE_RUN_PATTERN = re.compile(r'\s+')


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # Array-likes are never a single missing scalar.
        return False


def normalize_zip(raw: Any) -> Optional[str]:
    """
    Canonicalizes a ZIP-like value to a 5-digit string.

    Any suffix after a '-' is discarded, non-digits are stripped and the result
    is left-padded with zeros. Nine-digit ZIP+4 runs keep their first five
    digits. Returns None when nothing numeric is left, which callers treat as
    an absent ZIP.
    """
    if is_missing(raw):
        return None
    if isinstance(raw, (bool, np.bool_)):
        return None
    if isinstance(raw, (float, np.floating)):
        if not float(raw).is_integer():
            return None
        raw = int(raw)
    digits = _NON_DIGIT_PATTERN.sub('', str(raw).split('-', 1)[0])
    if not digits:
        return None
    return digits[:5].zfill(5)


def normalize_label(raw: Any) -> Optional[str]:
    """Trims and collapses internal whitespace. Case is preserved."""
    if is_missing(raw):
        return None
    label = _WHITESPACE_RUN_PATTERN.sub(' ', str(raw)).strip()
    return label or None


def resolve_field(record: Mapping[str, Any], field: str, aliases: Optional[Dict[str, List[str]]] = None) -> Any:
    """Returns the first present value among the configured aliases of `field`."""
    alias_table = aliases if aliases is not None else settings.FIELD_ALIASES
    for alias in alias_table.get(field, [field]):
        value = record.get(alias)
        if not is_missing(value):
            return value
    return None


def round_half_up(value: Union[float, Fraction]) -> int:
    """
    Rounds .5 away from zero for non-negative values, unlike Python's round().

    A Fraction stays exact, so products like 50 * 29/100 land on 15.
    """
    if isinstance(value, Fraction):
        return int(math.floor(value + Fraction(1, 2)))
    return int(math.floor(float(value) + 0.5))


def percentage_of(count: float, total: float) -> int:
    """Integer percentage of `total`; 0 when the denominator is 0."""
    if not total:
        return 0
    return round_half_up(100.0 * count / total)


def convert_to_numeric(data_input: Any, default_value: Any = np.nan, target_type: Optional[type] = None) -> Any:
    """
    Converts a Series or scalar to numeric, treating the common "Not Available"
    spellings as missing.
    """
    is_series = isinstance(data_input, pd.Series)
    series = data_input if is_series else pd.Series([data_input], dtype=object)

    if pd.api.types.is_object_dtype(series.dtype):
        series = series.replace(NA_REGEX_PATTERN, np.nan, regex=True)

    numeric_series = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numeric_series = numeric_series.fillna(default_value)

    if target_type is int and pd.api.types.is_numeric_dtype(numeric_series.dtype):
        numeric_series = numeric_series.astype(pd.Int64Dtype() if numeric_series.isnull().any() else int)
    elif target_type is float:
        numeric_series = numeric_series.astype(float)

    return numeric_series if is_series else (numeric_series.iloc[0] if not numeric_series.empty else default_value)


def robust_json_load(file_path: Union[str, Path]) -> Optional[Union[Dict, List]]:
    """Loads JSON data from a file with robust error handling and UTF-8 encoding."""
    path_obj = Path(file_path)
    if not path_obj.is_file():
        logger.error(f"JSON load failed: File not found at {path_obj.resolve()}")
        return None
    try:
        with path_obj.open('r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Error decoding JSON from {path_obj.resolve()}: {e}")
        return None


def hash_dataframe(df: Optional[pd.DataFrame]) -> Optional[str]:
    """Creates a consistent SHA256 hash for a DataFrame, suitable for caching."""
    if df is None:
        return None
    if df.empty:
        col_string = '_'.join(sorted(map(str, df.columns)))
        return hashlib.sha256(f"empty_df:{col_string}".encode()).hexdigest()
    try:
        df_sorted = df.reindex(sorted(df.columns), axis=1)
        return hashlib.sha256(pd.util.hash_pandas_object(df_sorted, index=True).values).hexdigest()
    except TypeError as e:
        # Unhashable cell values (lists, dicts) fall back to a repr digest.
        logger.warning(f"Standard DataFrame hashing failed: {e}. Falling back to a repr hash.")
        return hashlib.sha256(df.to_json(orient='split', default_handler=str).encode('utf-8')).hexdigest()


class DataPipeline:
    """
    A fluent interface for turning raw record mappings into a canonical frame.

    Usage:
        patients_df = (DataPipeline.from_records(raw_patients)
                       .resolve_aliases(['patient_id', 'zip_code', 'gender'])
                       .normalize_zip_column('zip_code')
                       .normalize_label_columns(['gender'])
                       .fill_missing_labels(['gender'], 'Unknown')
                       .to_df())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self.df = df.copy()
        self._raw = df

    @classmethod
    def from_records(cls, records: Union[pd.DataFrame, Iterable[Mapping[str, Any]], None]) -> 'DataPipeline':
        if records is None:
            return cls(pd.DataFrame())
        if isinstance(records, pd.DataFrame):
            return cls(records)
        return cls(pd.DataFrame.from_records([dict(r) for r in records]))

    def to_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def resolve_aliases(self, fields: Iterable[str], aliases: Optional[Dict[str, List[str]]] = None) -> 'DataPipeline':
        """
        Builds one canonical column per field from its ordered alias columns.
        For each row the first alias holding a present value wins.
        """
        alias_table = aliases if aliases is not None else settings.FIELD_ALIASES
        resolved: Dict[str, pd.Series] = {}
        for field in fields:
            candidates = [a for a in alias_table.get(field, [field]) if a in self._raw.columns]
            column = pd.Series([None] * len(self._raw), index=self._raw.index, dtype=object)
            for alias in candidates:
                values = self._raw[alias].astype(object)
                present = ~values.map(is_missing)
                column = column.where(column.notna() | ~present, values)
            resolved[field] = column
        self.df = pd.DataFrame(resolved, index=self._raw.index)
        return self

    def normalize_zip_column(self, column: str = 'zip_code') -> 'DataPipeline':
        if column in self.df.columns:
            raw = self.df[column]
            normalized = raw.map(normalize_zip).astype(object)
            dropped = int((raw.notna() & normalized.isna()).sum())
            if dropped:
                logger.warning(f"{dropped} malformed ZIP value(s) treated as absent.")
            self.df[column] = normalized.where(normalized.notna(), None)
        return self

    def normalize_label_columns(self, columns: Iterable[str]) -> 'DataPipeline':
        for col in columns:
            if col in self.df.columns:
                normalized = self.df[col].map(normalize_label).astype(object)
                self.df[col] = normalized.where(normalized.notna(), None)
        return self

    def fill_missing_labels(self, columns: Iterable[str], sentinel: str) -> 'DataPipeline':
        """Replaces absent and "Not Available" style labels with an explicit sentinel."""
        for col in columns:
            if col in self.df.columns:
                series = self.df[col].astype(object).replace(NA_REGEX_PATTERN, np.nan, regex=True)
                self.df[col] = series.where(series.notna(), sentinel)
        return self

    def standardize_missing_values(self, default_values: Dict[str, Any]) -> 'DataPipeline':
        """Fills numeric columns with defaults after coercing "Not Available" spellings."""
        for col, default in default_values.items():
            if col in self.df.columns:
                target_type = int if isinstance(default, int) else float
                self.df[col] = convert_to_numeric(self.df[col], default_value=default, target_type=target_type)
        return self

    def drop_rows_missing(self, column: str, context: str = "records") -> 'DataPipeline':
        if column in self.df.columns:
            missing = self.df[column].isna()
            if missing.any():
                logger.warning(f"({context}) Dropping {int(missing.sum())} row(s) without '{column}'.")
                self.df = self.df.loc[~missing]
        return self

    def reset_index(self) -> 'DataPipeline':
        self.df = self.df.reset_index(drop=True)
        return self
