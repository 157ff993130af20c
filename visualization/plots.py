# population_insights_root/visualization/plots.py
# PLOTTING FACTORY - CATEGORY BREAKDOWNS, YES/NO COMPARISONS, ZIP INTENSITY

import html
import logging
from typing import List, Optional, Sequence, Tuple

import plotly.express as px
import plotly.graph_objects as go
import plotly.io as pio

from config import settings
from data_processing.aggregation import AggregationResult, results_to_frame
from data_processing.geography import GeographicBin

logger = logging.getLogger(__name__)

# --- Helper Functions ---
def _hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    value = hex_color.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Expected a 6-digit hex colour, got {hex_color!r}.")
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))

def _rgb_to_hex(rgb: Sequence[float]) -> str:
    return '#' + ''.join(f"{int(round(c)):02X}" for c in rgb)

# --- Intensity Palette ---
def intensity_color(level: int, levels: Optional[int] = None) -> str:
    """
    Colour for a geographic intensity level, interpolated linearly between the
    zero colour and the maximum colour.
    """
    n_levels = levels or settings.GEOGRAPHY.intensity_levels
    clamped = max(0, min(n_levels - 1, int(level)))
    fraction = clamped / (n_levels - 1)
    start, end = _hex_to_rgb(settings.COLOR_INTENSITY_ZERO), _hex_to_rgb(settings.COLOR_INTENSITY_MAX)
    return _rgb_to_hex([s + (e - s) * fraction for s, e in zip(start, end)])

def build_intensity_palette(levels: Optional[int] = None) -> List[str]:
    n_levels = levels or settings.GEOGRAPHY.intensity_levels
    return [intensity_color(i, n_levels) for i in range(n_levels)]

# --- Theme Setup ---
def set_plotly_theme():
    """Sets the custom 'insight' theme as the default for all Plotly charts."""
    base_layout = {
        'font': {'family': "sans-serif", 'size': 12, 'color': settings.COLOR_TEXT_PRIMARY},
        'title': {'x': 0.5, 'xanchor': 'center', 'font': {'size': 18, 'color': settings.COLOR_TEXT_HEADINGS}},
        'paper_bgcolor': settings.COLOR_BACKGROUND_CONTENT,
        'plot_bgcolor': settings.COLOR_BACKGROUND_CONTENT,
        'margin': dict(l=60, r=40, t=60, b=60),
        'xaxis': {'showgrid': False, 'zeroline': False},
        'yaxis': {'gridcolor': '#e9ecef', 'zeroline': False},
    }
    insight_template = go.layout.Template(layout=base_layout)
    insight_template.layout.colorway = settings.PLOTLY_COLORWAY
    pio.templates['insight'] = insight_template
    pio.templates.default = 'insight'
    logger.debug("Custom 'insight' Plotly theme applied.")

# --- Factory Functions for Charts ---
def create_empty_figure(title: str, message: str = "No data available.") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(
        title_text=f"<b>{html.escape(title)}</b>",
        xaxis={"visible": False}, yaxis={"visible": False},
        annotations=[{"text": html.escape(message), "xref": "paper", "yref": "paper", "showarrow": False, "font": {"size": 14, "color": settings.COLOR_TEXT_MUTED}}]
    )
    return fig

def plot_category_breakdown(results: Sequence[AggregationResult], title: str, show_percentage: bool = False) -> go.Figure:
    """Ranked bar chart of an aggregation breakdown, counts or population percentages."""
    df = results_to_frame(results)
    if df.empty:
        return create_empty_figure(title)
    value_col = 'percentage' if show_percentage else 'count'
    hover_cols = ['rank', 'provenance'] + ([] if show_percentage else ['percentage'])
    fig = px.bar(
        df, x='id', y=value_col, title=f"<b>{html.escape(title)}</b>",
        labels={'id': df['category'].iloc[0].replace('_', ' ').title(), value_col: value_col.title()},
        hover_data=hover_cols,
    )
    fig.update_traces(texttemplate='%{y}%' if show_percentage else '%{y:,.0f}', textposition='outside')
    fig.update_xaxes(type='category')
    fig.update_yaxes(tickformat='d', range=[0, 100] if show_percentage else None, rangemode='tozero')
    return fig

def plot_yes_no_comparison(results: Sequence[AggregationResult], title: str) -> go.Figure:
    """Two-bar Yes/No chart of an HRSN indicator; both bars are always drawn."""
    df = results_to_frame(results)
    if df.empty:
        return create_empty_figure(title)
    df = df.set_index('id').reindex(['Yes', 'No']).fillna({'count': 0, 'percentage': 0}).reset_index()
    fig = go.Figure(go.Bar(
        x=df['id'], y=df['count'],
        marker_color=[settings.COLOR_AFFECTED_YES, settings.COLOR_AFFECTED_NO],
        text=[f"{int(c):,} ({int(p)}%)" for c, p in zip(df['count'], df['percentage'])],
        textposition='outside',
    ))
    fig.update_layout(title_text=f"<b>{html.escape(title)}</b>", yaxis_title="Patients", xaxis_title="")
    fig.update_yaxes(tickformat='d', rangemode='tozero')
    return fig

def plot_zip_intensity(bins: Sequence[GeographicBin], title: str, top_n: Optional[int] = None) -> go.Figure:
    """Horizontal bars per ZIP coloured by intensity level."""
    if not bins:
        return create_empty_figure(title, "No geographic data.")
    shown = list(bins[:top_n]) if top_n else list(bins)
    use_estimates = any(b.estimated_affected for b in shown)
    values = [b.estimated_affected if use_estimates else b.total_patients for b in shown]
    fig = go.Figure(go.Bar(
        x=values, y=[b.zip_code for b in shown], orientation='h',
        marker_color=[intensity_color(b.intensity_level) for b in shown],
        customdata=[[b.total_patients, b.predominant_attribute] for b in shown],
        hovertemplate='<b>ZIP %{y}</b><br>Value: %{x:,}<br>Patients: %{customdata[0]:,}<br>Predominant: %{customdata[1]}<extra></extra>',
    ))
    fig.update_layout(
        title_text=f"<b>{html.escape(title)}</b>",
        xaxis_title="Estimated Affected" if use_estimates else "Patients",
        yaxis={'type': 'category', 'autorange': 'reversed'},
    )
    return fig
