"""
Visualization Module
====================

Style setup plus the figures referenced by the report: pairwise score
matrix, study-effort box plots, Q-Q plots and bootstrap histograms.
"""

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving plots

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import statsmodels.api as sm

from . import config

SCORE_COLOR = '#3498db'
CUTOFF_COLOR = '#e74c3c'

# Correlation bars by t-test decision, bootstrap histograms by screen outcome
DECISION_COLORS = {
    config.DECISION_REJECT: '#e67e22',
    config.DECISION_KEEP: '#27ae60',
    config.DECISION_INCONCLUSIVE: '#95a5a6',
}
SCREEN_COLORS = {True: '#27ae60', False: '#c0392b'}


def setup_style() -> None:
    """Seaborn whitegrid theme on a white figure background."""
    sns.set_theme(style='whitegrid', context='paper', font_scale=1.1,
                  rc={'figure.facecolor': 'white', 'savefig.facecolor': 'white'})


def create_figure(nrows: int = 1, ncols: int = 1, figsize: tuple = None) -> tuple:
    """
    Create figure with subplots sized per panel.

    Axes always come back as a 2D array so callers can index [row, col].

    Returns:
        Tuple of (fig, axes)
    """
    if figsize is None:
        figsize = (5 * ncols, 4 * nrows)

    return plt.subplots(nrows, ncols, figsize=figsize, squeeze=False)


def plot_pair_matrix(df: pd.DataFrame, columns: list[str]) -> plt.Figure:
    """Scatter matrix with density plots on the diagonal."""
    grid = sns.pairplot(df[columns].dropna(), diag_kind='kde',
                        plot_kws={'alpha': 0.6, 's': 20, 'color': SCORE_COLOR})
    grid.figure.suptitle('Real GRE Scores vs Study Effort', y=1.02)
    return grid.figure


def plot_boxplots(df: pd.DataFrame, columns: list[str], cutoffs: dict = None) -> plt.Figure:
    """
    One box plot per column, with optional horizontal cutoff lines.

    Parameters:
        df: Input DataFrame
        columns: Columns to plot
        cutoffs: Optional {column: value} lines marking cleaning thresholds
    """
    cutoffs = cutoffs or {}
    fig, axes = create_figure(1, len(columns))

    for ax, col in zip(axes[0], columns):
        sns.boxplot(y=df[col].dropna(), ax=ax, color=SCORE_COLOR)
        if col in cutoffs:
            ax.axhline(y=cutoffs[col], color=CUTOFF_COLOR, linestyle='--',
                       label=f'Cutoff ({cutoffs[col]:g})')
            ax.legend(loc='upper right')
        ax.set_title(col)

    plt.tight_layout()
    return fig


def plot_qq_grid(
    series_by_label: dict,
    ncols: int = 3,
    title: str = None
) -> plt.Figure:
    """
    Normal Q-Q plot for each labelled sample.

    Parameters:
        series_by_label: {label: values} in display order
        ncols: Panels per row
        title: Optional figure title
    """
    n = max(len(series_by_label), 1)
    ncols = min(ncols, n)
    nrows = int(np.ceil(n / ncols))
    fig, axes = create_figure(nrows, ncols)
    flat_axes = axes.ravel()

    for ax, (label, values) in zip(flat_axes, series_by_label.items()):
        values = pd.Series(values).dropna()
        if len(values) >= 2:
            sm.qqplot(values, line='s', ax=ax, markerfacecolor=SCORE_COLOR,
                      markeredgecolor=SCORE_COLOR, alpha=0.7)
        ax.set_title(f'{label} (n={len(values)})')

    for ax in flat_axes[len(series_by_label):]:
        ax.set_visible(False)

    if title:
        fig.suptitle(title)
    plt.tight_layout()
    return fig


def plot_bootstrap_means(
    means_by_test: dict,
    screen: pd.DataFrame,
    ncols: int = 4,
    title: str = None
) -> plt.Figure:
    """
    Histogram of bootstrap means per practice test, colored by screen result.

    Parameters:
        means_by_test: {test: array of resample means}
        screen: Output of stats.screen_bootstrap_normality
        ncols: Panels per row
        title: Optional figure title
    """
    n = max(len(means_by_test), 1)
    ncols = min(ncols, n)
    nrows = int(np.ceil(n / ncols))
    fig, axes = create_figure(nrows, ncols)
    flat_axes = axes.ravel()

    for ax, (test, means) in zip(flat_axes, means_by_test.items()):
        color = SCREEN_COLORS[bool(screen.loc[test, 'passes'])]
        ax.hist(means, bins=40, color=color, alpha=0.8)
        ax.set_title(f"{test}\nskew={screen.loc[test, 'skewness']:.2f}", fontsize=10)
        ax.set_yticks([])

    for ax in flat_axes[len(means_by_test):]:
        ax.set_visible(False)

    if title:
        fig.suptitle(title)
    plt.tight_layout()
    return fig


def plot_correlations(results: pd.DataFrame, title: str, alpha: float) -> plt.Figure:
    """
    Horizontal bar chart of Spearman rho per practice test.

    Bars are colored by the paired t-test decision, so a test can rank
    respondents well (high rho) and still be biased (Reject).

    Parameters:
        results: 'results' frame from stats.compare_practice_tests
        title: Figure title
        alpha: Level the decisions were taken at
    """
    results = results.sort_values('spearman_rho')
    bar_colors = results['decision'].map(DECISION_COLORS).tolist()

    fig, ax = plt.subplots(figsize=(10, 6))
    bars = ax.barh(results['test'], results['spearman_rho'], color=bar_colors)
    for bar, rho in zip(bars, results['spearman_rho']):
        ax.text(rho + 0.01, bar.get_y() + bar.get_height() / 2,
                f'{rho:.3f}', va='center', fontsize=9)

    handles = [plt.Rectangle((0, 0), 1, 1, color=color) for color in DECISION_COLORS.values()]
    ax.legend(handles, list(DECISION_COLORS), title=f'Adjusted p < {alpha}', loc='lower right')
    ax.set_xlabel('Spearman rho with real score')
    ax.set_title(title)
    plt.tight_layout()
    return fig


def plot_scores_by_bucket(
    view: pd.DataFrame,
    score_cols: list[str],
    bucket_col: str,
    bucket_labels: dict,
    by: str
) -> plt.Figure:
    """Box plots of each score across study-variable buckets."""
    fig, axes = create_figure(1, len(score_cols))
    order = sorted(bucket_labels)

    for ax, col in zip(axes[0], score_cols):
        sns.boxplot(data=view, x=bucket_col, y=col, order=order, ax=ax)
        ax.set_xticks(range(len(order)))
        ax.set_xticklabels([bucket_labels[b] for b in order])
        ax.set_xlabel(by)
        ax.set_title(f'{col} by {by}')

    plt.tight_layout()
    return fig
