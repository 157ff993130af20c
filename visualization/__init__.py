# population_insights_root/visualization/__init__.py
# EXPLICIT PACKAGE API

"""
Initializes the visualization package, defining its public API.
Bucket colours live here as a pure function of the engine's intensity index.
"""

from .plots import (
    build_intensity_palette,
    create_empty_figure,
    intensity_color,
    plot_category_breakdown,
    plot_yes_no_comparison,
    plot_zip_intensity,
    set_plotly_theme,
)

__all__ = [
    "build_intensity_palette",
    "create_empty_figure",
    "intensity_color",
    "plot_category_breakdown",
    "plot_yes_no_comparison",
    "plot_zip_intensity",
    "set_plotly_theme",
]
