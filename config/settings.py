# population_insights_root/config/settings.py
# CENTRALIZED CONFIGURATION HUB - FIELD ALIASES, HRSN INDICATORS, DISPLAY THEME

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class HrsnIndicatorConfig(BaseModel):
    display_name: str
    field_aliases: List[str]
    affected_value: Literal["Yes", "No"] = "Yes"

class AggregationConfig(BaseModel):
    default_top_n: int = 5; high_cardinality_top_n: int = 25
    high_cardinality_fields: List[str] = ['zip_code', 'diagnosis']

class GeographyConfig(BaseModel):
    intensity_levels: int = Field(5, ge=2); top_region_count: int = 5
    predominance_threshold: float = 0.5; mixed_label: str = "Mixed"
    demographic_fallback_order: List[str] = ['age_range', 'race', 'ethnicity']

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='INSIGHT_', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', extra='ignore')

    PROJECT_ROOT_DIR: Path = Path(__file__).resolve().parent.parent
    APP_NAME: str = "Population Insight Explorer"; APP_VERSION: str = "1.2.0"
    ORGANIZATION_NAME: str = "Community Health Analytics Group"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DATA_SOURCES_DIR: Path; PATIENT_RECORDS_PATH: Path; INSIGHT_RECORDS_PATH: Path

    @model_validator(mode='before')
    @classmethod
    def set_default_paths(cls, values: Any) -> Any:
        if isinstance(values, dict):
            root = Path(values.get('PROJECT_ROOT_DIR', Path(__file__).resolve().parent.parent))
            data = root / "data_sources"
            values.setdefault('DATA_SOURCES_DIR', data)
            values.setdefault('PATIENT_RECORDS_PATH', data / "patients.json")
            values.setdefault('INSIGHT_RECORDS_PATH', data / "insights.json")
        return values

    # First alias present on a record wins.
    FIELD_ALIASES: Dict[str, List[str]] = {
        'patient_id': ['patient_id', 'patientId', 'patient_identifier', 'id'],
        'zip_code': ['zip_code', 'zipCode', 'zip', 'patient_zip_code'],
        'age_range': ['age_range', 'ageRange', 'Age_Range'],
        'gender': ['gender', 'Gender'],
        'race': ['race', 'Race'],
        'ethnicity': ['ethnicity', 'Ethnicity'],
        'symptom_segment': ['symptom_segment', 'symptomSegment'],
        'diagnosis': ['diagnosis', 'Diagnosis'],
        'diagnostic_category': ['diagnostic_category', 'diagnosticCategory'],
        'symptom_id': ['symptom_id', 'symptomId'],
        'hrsn_category': ['hrsn_category', 'hrsnCategory', 'hrsn_code'],
        'count': ['count', 'weight', 'occurrence_count'],
    }
    DEMOGRAPHIC_FIELDS: List[str] = ['age_range', 'gender', 'race', 'ethnicity']
    INSIGHT_LABEL_FIELDS: List[str] = ['symptom_segment', 'diagnosis', 'diagnostic_category', 'symptom_id', 'hrsn_category']
    UNKNOWN_LABEL: str = "Unknown"

    HRSN_INDICATORS: Dict[str, HrsnIndicatorConfig] = {
        "housing_insecurity": HrsnIndicatorConfig(display_name="Housing Insecurity", field_aliases=['housing_insecurity', 'housing_instability']),
        "food_insecurity": HrsnIndicatorConfig(display_name="Food Insecurity", field_aliases=['food_insecurity', 'food_instability']),
        "financial_strain": HrsnIndicatorConfig(display_name="Financial Strain", field_aliases=['financial_strain', 'financial_instability']),
        "access_to_transportation": HrsnIndicatorConfig(display_name="Access to Transportation", field_aliases=['access_to_transportation'], affected_value="No"),
        "has_a_car": HrsnIndicatorConfig(display_name="Has a Car", field_aliases=['has_a_car', 'has_car'], affected_value="No"),
        "utility_insecurity": HrsnIndicatorConfig(display_name="Utility Insecurity", field_aliases=['utility_insecurity', 'utilities']),
        "veteran_status": HrsnIndicatorConfig(display_name="Veteran Status", field_aliases=['veteran_status', 'veteran']),
    }

    @computed_field
    @property
    def HRSN_FIELDS(self) -> List[str]: return list(self.HRSN_INDICATORS.keys())

    AGGREGATION: AggregationConfig = AggregationConfig(); GEOGRAPHY: GeographyConfig = GeographyConfig()

    WEB_CACHE_TTL_SECONDS: int = 3600

    COLOR_PRIMARY: str = "#1976D2"; COLOR_SECONDARY: str = "#546E7A"
    COLOR_BACKGROUND_CONTENT: str = "#FFFFFF"; COLOR_TEXT_PRIMARY: str = "#343A40"
    COLOR_TEXT_HEADINGS: str = "#1A2557"; COLOR_TEXT_MUTED: str = "#6C757D"
    COLOR_AFFECTED_YES: str = "#D32F2F"; COLOR_AFFECTED_NO: str = "#388E3C"
    COLOR_INTENSITY_ZERO: str = "#F1F5F9"; COLOR_INTENSITY_MAX: str = "#B91C1C"
    PLOTLY_COLORWAY: List[str] = [COLOR_PRIMARY, COLOR_AFFECTED_NO, COLOR_AFFECTED_YES, COLOR_SECONDARY]

try:
    settings = Settings()
    settings_logger.info(f"Insight settings loaded successfully. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
