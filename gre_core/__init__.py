"""
GRE Analysis Core Library
=========================

Analysis framework for comparing self-reported GRE practice-test scores
with real GRE scores and relating study effort to outcomes.

Modules:
    config  - Global configuration parameters
    data    - Data loading, cleaning, section split, quantile buckets
    stats   - Statistical tests (Spearman, t-test, Wilcoxon, Kruskal-Wallis, Mann-Whitney)
    viz     - Visualization utilities
    output  - Output naming and saving
    report  - Report formatting and assembly
"""

from . import config
from . import data
from . import stats
from . import viz
from . import output
from . import report

__version__ = '1.0.0'

__all__ = [
    'config',
    'data',
    'stats',
    'viz',
    'output',
    'report',
]
