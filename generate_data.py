# population_insights_root/generate_data.py
# Synthetic patient & insight records for the demo dashboard.

import json
import logging
from pathlib import Path

import numpy as np

from config import settings

logger = logging.getLogger(__name__)

# --- Configuration for Data Generation ---
NUM_PATIENTS = 600
AVG_INSIGHTS_PER_PATIENT = 4
RANDOM_SEED = 42

# Raw ZIPs deliberately arrive in mixed shapes: 4-digit, ZIP+4, numeric and blank.
ZIP_POOL = ["3034", "03034", "02101", "02101-1234", "01852", "1960", "03060", "02139", "", None, "N/A"]
ZIP_WEIGHTS = [0.10, 0.08, 0.16, 0.04, 0.12, 0.10, 0.14, 0.16, 0.04, 0.03, 0.03]

AGE_RANGES = ["18-25", "26-35", "36-50", "51-65", "65+"]
AGE_WEIGHTS = [0.14, 0.22, 0.28, 0.22, 0.14]
GENDERS = ["Male", "Female", None]
GENDER_WEIGHTS = [0.48, 0.50, 0.02]
RACES = ["White", "Black", "Asian", "Other", None]
RACE_WEIGHTS = [0.55, 0.18, 0.10, 0.12, 0.05]
ETHNICITIES = ["Not Hispanic or Latino", "Hispanic or Latino", None]
ETHNICITY_WEIGHTS = [0.72, 0.22, 0.06]

HRSN_PREVALENCE = {
    "housing_insecurity": 0.12, "food_insecurity": 0.18, "financial_strain": 0.22,
    "access_to_transportation": 0.85, "has_a_car": 0.70, "utility_insecurity": 0.08,
    "veteran_status": 0.06,
}

CLINICAL_CATALOG = [
    # (symptom_segment, symptom_id, diagnosis, diagnostic_category)
    ("Depressed mood", "SYM-101", "Depression", "Mental Health"),
    ("Anhedonia", "SYM-102", "Depression", "Mental Health"),
    ("Excessive worry", "SYM-110", "Anxiety", "Mental Health"),
    ("Chest tightness", "SYM-201", "Asthma", "Respiratory"),
    ("Wheezing", "SYM-202", "Asthma", "Respiratory"),
    ("Elevated blood pressure", "SYM-301", "Hypertension", "Cardiovascular"),
    ("Polyuria", "SYM-401", "Type 2 Diabetes", "Endocrine"),
    ("Joint pain", "SYM-501", "Osteoarthritis", "Musculoskeletal"),
]
EXTRACTED_HRSN_RATE = 0.05


def generate_records(num_patients: int = NUM_PATIENTS, seed: int = RANDOM_SEED):
    rng = np.random.default_rng(seed)
    patients, insights = [], []
    for i in range(num_patients):
        pid = f"P{i:05d}"
        zip_choice = ZIP_POOL[rng.choice(len(ZIP_POOL), p=ZIP_WEIGHTS)]
        # Mix of alias spellings, as different upstream exports produce.
        zip_key = ("zip_code", "zipCode", "zip")[i % 3]
        record = {
            "patient_id": pid,
            zip_key: zip_choice,
            "age_range": AGE_RANGES[rng.choice(len(AGE_RANGES), p=AGE_WEIGHTS)],
            "gender": GENDERS[rng.choice(len(GENDERS), p=GENDER_WEIGHTS)],
            "race": RACES[rng.choice(len(RACES), p=RACE_WEIGHTS)],
            "ethnicity": ETHNICITIES[rng.choice(len(ETHNICITIES), p=ETHNICITY_WEIGHTS)],
        }
        for indicator, prevalence in HRSN_PREVALENCE.items():
            if rng.random() < 0.9:
                record[indicator] = "Yes" if rng.random() < prevalence else "No"
        patients.append(record)

        for _ in range(rng.poisson(AVG_INSIGHTS_PER_PATIENT)):
            segment, symptom_id, diagnosis, category = CLINICAL_CATALOG[rng.integers(len(CLINICAL_CATALOG))]
            insights.append({
                "patient_id": pid, "symptom_segment": segment, "symptom_id": symptom_id,
                "diagnosis": diagnosis, "diagnostic_category": category,
                "count": int(rng.integers(1, 4)),
            })
        if rng.random() < EXTRACTED_HRSN_RATE:
            insights.append({
                "patient_id": pid, "hrsn_category": str(rng.choice(list(HRSN_PREVALENCE))), "count": 1,
            })
    return patients, insights


def write_records(output_dir: Path = settings.DATA_SOURCES_DIR) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    patients, insights = generate_records()
    with (output_dir / settings.PATIENT_RECORDS_PATH.name).open('w', encoding='utf-8') as f:
        json.dump(patients, f, indent=1)
    with (output_dir / settings.INSIGHT_RECORDS_PATH.name).open('w', encoding='utf-8') as f:
        json.dump(insights, f, indent=1)
    logger.info(f"Wrote {len(patients)} patients and {len(insights)} insights to {output_dir}.")


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
    write_records()
