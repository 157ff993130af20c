# population_insights_root/analytics/session.py
# SEARCH SESSION - IMMUTABLE SNAPSHOT & STALE-RESULT INVALIDATION

"""
Holds one immutable record snapshot and the latest search output.

Every search takes a generation token. A result is only published if its
token is still current, so output from a superseded search is discarded
rather than shown. Work already running is not cancelled.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

import pandas as pd

from data_processing.filtering import FilterConfiguration
from .orchestrator import PopulationReport, run_population_search

logger = logging.getLogger(__name__)


class SearchSession:
    """Single-writer search state for one dashboard user."""

    def __init__(self, patients_df: pd.DataFrame, insights_df: Optional[pd.DataFrame] = None):
        self._patients = patients_df.copy()
        self._insights = insights_df.copy() if isinstance(insights_df, pd.DataFrame) else None
        self._generation = 0
        self.latest_report: Optional[PopulationReport] = None
        self.latest_errors: List[str] = []
        self.latest_configuration: Optional[FilterConfiguration] = None
        self.snapshot_loaded_at = datetime.now()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def patients(self) -> pd.DataFrame:
        """A copy of the snapshot; edits to it never reach later searches."""
        return self._patients.copy()

    @property
    def insights(self) -> pd.DataFrame:
        if self._insights is None:
            return pd.DataFrame(columns=['patient_id'])
        return self._insights.copy()

    def replace_snapshot(self, patients_df: pd.DataFrame, insights_df: Optional[pd.DataFrame] = None) -> None:
        """Swaps in freshly fetched records; any outstanding search becomes stale."""
        self._patients = patients_df.copy()
        self._insights = insights_df.copy() if isinstance(insights_df, pd.DataFrame) else None
        self._generation += 1
        self.latest_report = None
        self.latest_errors = []
        self.snapshot_loaded_at = datetime.now()
        logger.info(f"Snapshot replaced ({len(self._patients)} patients); generation now {self._generation}.")

    def begin_search(self, config: FilterConfiguration) -> int:
        """Registers a new search and returns its token, invalidating older ones."""
        self._generation += 1
        self.latest_configuration = config
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def compute(self, config: FilterConfiguration) -> Tuple[PopulationReport, List[str]]:
        """Runs a pass against the current snapshot without publishing it."""
        return run_population_search(self._patients, self._insights, config, source_context=f"session-{self._generation}")

    def publish(self, token: int, report: PopulationReport, errors: Optional[List[str]] = None) -> bool:
        """Stores `report` only if `token` is still current. Returns whether it was kept."""
        if not self.is_current(token):
            logger.info(f"Discarding stale search result (token {token}, current {self._generation}).")
            return False
        self.latest_report = report
        self.latest_errors = list(errors or [])
        return True

    def search(self, config: FilterConfiguration) -> PopulationReport:
        """Convenience path: begin, compute and publish in one call."""
        token = self.begin_search(config)
        report, errors = self.compute(config)
        self.publish(token, report, errors)
        return report
