# topic_viz.py

"""
topic_viz.py

Visualization helpers for topicsweep.

This module is intentionally thin and UI-agnostic. It:

- Renders the coherence-vs-K series of a sweep.
- Renders topic prevalence bars from a topic summary.
- Renders a dendrogram from a Dendrogram merge tree.

All functions return Plotly Figure objects, so they can be used in
notebooks, Streamlit, Dash, etc.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from scipy.cluster.hierarchy import dendrogram as scipy_dendrogram

from .model_sweep import SweepResult
from .topic_clustering import Dendrogram
from .topic_summarizer import TopicSummaryRow


# ---------------------------------------------------------------------
# Coherence vs. K
# ---------------------------------------------------------------------


def plot_coherence_by_k(
    sweep_result: SweepResult,
    *,
    highlight_k: Optional[int] = None,
    width: int = 800,
    height: int = 400,
    title: str = "Mean topic coherence by number of topics",
) -> go.Figure:
    """
    Line plot of mean coherence per K.

    Parameters
    ----------
    sweep_result:
        Output of ModelSweeper.sweep().
    highlight_k:
        Optional K (typically the selected model) drawn as a larger marker.
    width, height:
        Figure size in pixels.
    title:
        Figure title.

    Returns
    -------
    plotly.graph_objects.Figure
        Successful runs as a line; failed/timeout/cancelled runs as
        crosses on the lowest observed coherence level.
    """
    df = sweep_result.coherence_by_k()
    ok = df[df["status"] == "ok"]
    failed = df[df["status"] != "ok"]

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=ok["k"],
            y=ok["mean_coherence"],
            mode="lines+markers",
            name="coherence",
            line=dict(width=2, color="darkblue"),
            hovertemplate="K=%{x}<br>coherence=%{y:.4f}<extra></extra>",
        )
    )

    if not failed.empty:
        baseline = float(ok["mean_coherence"].min()) if not ok.empty else 0.0
        fig.add_trace(
            go.Scatter(
                x=failed["k"],
                y=[baseline] * len(failed),
                mode="markers",
                name="failed",
                marker=dict(symbol="x", size=10, color="crimson"),
                hovertext=[f"K={k}: {s}" for k, s in zip(failed["k"], failed["status"])],
                hoverinfo="text",
            )
        )

    if highlight_k is not None and highlight_k in set(ok["k"]):
        row = ok.loc[ok["k"] == highlight_k].iloc[0]
        fig.add_trace(
            go.Scatter(
                x=[highlight_k],
                y=[row["mean_coherence"]],
                mode="markers",
                name=f"selected (K={highlight_k})",
                marker=dict(size=14, color="darkorange", line=dict(width=1, color="DarkSlateGrey")),
            )
        )

    fig.update_layout(
        width=width,
        height=height,
        title=title,
        xaxis=dict(title="Number of topics (K)", showgrid=False),
        yaxis=dict(title="Mean probabilistic coherence", gridcolor="rgb(204, 204, 204)"),
        plot_bgcolor="white",
    )
    return fig


# ---------------------------------------------------------------------
# Topic prevalence
# ---------------------------------------------------------------------


def plot_topic_prevalence(
    summary_rows: Sequence[TopicSummaryRow],
    *,
    width: int = 800,
    height: int = 500,
    title: str = "Topic prevalence",
) -> go.Figure:
    """
    Horizontal bar chart of topic prevalence, labelled by topic label and
    coloured by coherence.
    """
    rows = sorted(summary_rows, key=lambda r: r.prevalence)
    data = pd.DataFrame(
        {
            "topic": [f"{r.topic_id}: {r.label}" for r in rows],
            "prevalence": [r.prevalence for r in rows],
            "coherence": [r.coherence for r in rows],
            "exclusive_terms": [", ".join(r.exclusive_terms[:5]) for r in rows],
        }
    )

    fig = px.bar(
        data,
        x="prevalence",
        y="topic",
        color="coherence",
        orientation="h",
        hover_data={"exclusive_terms": True},
        color_continuous_scale="Viridis",
        width=width,
        height=height,
    )
    fig.update_layout(
        title=title,
        xaxis=dict(title="Mean share of documents", showgrid=False),
        yaxis=dict(title=None),
        plot_bgcolor="white",
    )
    return fig


# ---------------------------------------------------------------------
# Dendrogram
# ---------------------------------------------------------------------


def plot_dendrogram(
    tree: Dendrogram,
    *,
    width: int = 900,
    height: int = 450,
    title: Optional[str] = None,
    color: str = "darkblue",
) -> go.Figure:
    """
    Draw a Dendrogram with leaves along the x-axis and merge height on y.

    Coordinates come from scipy's dendrogram layout (no Matplotlib call).
    """
    if tree.n_leaves < 2:
        layout = {"icoord": [], "dcoord": [], "ivl": [str(label) for label in tree.labels]}
    else:
        layout = scipy_dendrogram(
            tree.linkage_matrix,
            labels=[str(label) for label in tree.labels],
            no_plot=True,
        )

    fig = go.Figure()
    for xs, ys in zip(layout["icoord"], layout["dcoord"]):
        fig.add_trace(
            go.Scatter(
                x=xs,
                y=ys,
                mode="lines",
                line=dict(width=1.5, color=color),
                hoverinfo="skip",
                showlegend=False,
            )
        )

    # scipy places leaf i at x = 5 + 10 * i
    tick_positions = list(np.arange(len(layout["ivl"])) * 10 + 5)
    fig.update_layout(
        width=width,
        height=height,
        title=title or f"{tree.method.capitalize()} linkage dendrogram ({tree.n_leaves} leaves)",
        xaxis=dict(
            tickmode="array",
            tickvals=tick_positions,
            ticktext=layout["ivl"],
            showgrid=False,
            zeroline=False,
        ),
        yaxis=dict(title="Merge height", showgrid=True, gridcolor="rgb(204, 204, 204)", zeroline=False),
        plot_bgcolor="white",
        margin=dict(l=40, r=10, b=80, t=50),
    )
    return fig
