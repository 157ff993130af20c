# population_insights_root/analytics/__init__.py

"""
Initializes the analytics package: whole-pass orchestration over the
data_processing engine and the search session that owns result freshness.

This __init__.py defines the public API for the package.
"""

from .orchestrator import PopulationInsightPipeline, PopulationReport, run_population_search
from .session import SearchSession

__all__ = [
    "PopulationInsightPipeline",
    "PopulationReport",
    "run_population_search",
    "SearchSession",
]
