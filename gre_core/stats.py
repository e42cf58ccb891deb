"""
Statistical Tests Module
========================

Descriptive statistics, practice-test comparisons (Spearman, paired t-test,
Wilcoxon signed-rank, p-value adjustment) and study-effect tests
(Kruskal-Wallis, Mann-Whitney U) over the cleaned survey data.

Tests that do not have enough observations return a result flagged
``inconclusive`` instead of raising.
"""

from itertools import combinations

import pandas as pd
import numpy as np
from scipy import stats as scipy_stats
from statsmodels.stats.multitest import multipletests

from . import config


def _sig_marker(p_value: float) -> str:
    if not np.isfinite(p_value):
        return ""
    if p_value < 0.001:
        return "***"
    elif p_value < 0.01:
        return "**"
    elif p_value < 0.05:
        return "*"
    return ""


def _inconclusive(reason: str, n: int, **extra) -> dict:
    return {
        'statistic': np.nan,
        'p_value': np.nan,
        'significant': False,
        'inconclusive': True,
        'reason': reason,
        'n': n,
        **extra,
    }


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================
def score_percentiles(
    df: pd.DataFrame,
    columns: list[str],
    percentiles: list[float] = None
) -> pd.DataFrame:
    """
    Compute percentiles of each score column, ignoring missing values.

    Parameters:
        df: Input DataFrame
        columns: Score columns
        percentiles: Fractions in [0, 1]. Defaults to config.PERCENTILES

    Returns:
        DataFrame indexed by percentile label ('0%', '20%', ...) with one
        column per score
    """
    if percentiles is None:
        percentiles = config.PERCENTILES

    table = df[columns].quantile(percentiles)
    table.index = [f"{p * 100:.0f}%" for p in percentiles]
    return table


def missing_data_tally(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    """
    Share of respondents reporting each column, most reported first.

    Returns:
        DataFrame indexed by column with 'n_present' and 'proportion'
    """
    n_present = df[columns].notna().sum()
    tally = pd.DataFrame({
        'n_present': n_present,
        'proportion': n_present / len(df) if len(df) else np.nan,
    })
    return tally.sort_values('proportion', ascending=False, kind='stable')


def iqr_outlier_bounds(
    df: pd.DataFrame,
    columns: list[str],
    whisker: float = None
) -> pd.DataFrame:
    """
    Box-plot fences per column (Q1 - w*IQR, Q3 + w*IQR).

    Parameters:
        df: Input DataFrame
        columns: Numeric columns
        whisker: IQR multiplier. Defaults to config.IQR_WHISKER

    Returns:
        DataFrame indexed by column with quartiles, fences and outlier count
    """
    if whisker is None:
        whisker = config.IQR_WHISKER

    rows = []
    for col in columns:
        values = df[col].dropna()
        q1, q3 = values.quantile([0.25, 0.75])
        iqr = q3 - q1
        lower, upper = q1 - whisker * iqr, q3 + whisker * iqr
        rows.append({
            'variable': col,
            'n': len(values),
            'q1': q1,
            'median': values.median(),
            'q3': q3,
            'iqr': iqr,
            'lower_fence': lower,
            'upper_fence': upper,
            'n_outside': int(((values < lower) | (values > upper)).sum()),
            'max': values.max(),
        })
    return pd.DataFrame(rows).set_index('variable')


# =============================================================================
# CORRELATION
# =============================================================================
def spearman_correlation(a: pd.Series, b: pd.Series) -> float:
    """Spearman rank correlation over pairwise-complete observations."""
    return a.corr(b, method='spearman')


def correlate_with_target(
    df: pd.DataFrame,
    target: str,
    tests: list[str]
) -> pd.DataFrame:
    """
    Spearman correlation of each practice test with the real score.

    Returns:
        DataFrame with 'test', 'spearman_rho', 'n', sorted by rho descending
    """
    rows = []
    for test in tests:
        pairs = df[[test, target]].dropna()
        rows.append({
            'test': test,
            'spearman_rho': spearman_correlation(df[test], df[target]),
            'n': len(pairs),
        })
    results = pd.DataFrame(rows, columns=['test', 'spearman_rho', 'n'])
    return results.sort_values('spearman_rho', ascending=False, na_position='last')


# =============================================================================
# NORMALITY SCREEN
# =============================================================================
def bootstrap_means(
    values: pd.Series,
    n_resamples: int = None,
    sample_frac: float = None,
    seed=None
) -> np.ndarray:
    """
    Sampling distribution of the mean by resampling without replacement.

    Each resample draws sample_frac of the non-missing observations
    without replacement; draws are independent of each other.

    Parameters:
        values: Observations (missing values are dropped)
        n_resamples: Number of resamples. Defaults to config.BOOTSTRAP_RESAMPLES
        sample_frac: Resample size as a fraction of n. Defaults to config.BOOTSTRAP_SAMPLE_FRAC
        seed: int, numpy Generator, or None for an unseeded run

    Returns:
        Array of n_resamples resample means
    """
    if n_resamples is None:
        n_resamples = config.BOOTSTRAP_RESAMPLES
    if sample_frac is None:
        sample_frac = config.BOOTSTRAP_SAMPLE_FRAC

    data = pd.Series(values).dropna().to_numpy(dtype=float)
    if len(data) == 0:
        return np.array([])

    size = max(1, int(sample_frac * len(data)))
    rng = np.random.default_rng(seed)

    # Random keys per row; the first `size` argsorted positions are a
    # uniform sample without replacement
    idx = np.argsort(rng.random((n_resamples, len(data))), axis=1)[:, :size]
    return data[idx].mean(axis=1)


def screen_bootstrap_normality(
    df: pd.DataFrame,
    tests: list[str],
    n_resamples: int = None,
    sample_frac: float = None,
    min_observations: int = None,
    max_abs_skew: float = None,
    max_abs_kurtosis: float = None,
    excluded: list[str] = None,
    seed=None
) -> tuple[pd.DataFrame, dict]:
    """
    Screen practice tests by the shape of their bootstrap mean distribution.

    A test passes when it has at least min_observations values and the
    bootstrap means have |skewness| <= max_abs_skew and
    |excess kurtosis| <= max_abs_kurtosis. Tests listed in `excluded`
    always fail.

    Returns:
        Tuple of (screen DataFrame indexed by test, dict of bootstrap means)
    """
    if min_observations is None:
        min_observations = config.MIN_TEST_OBSERVATIONS
    if max_abs_skew is None:
        max_abs_skew = config.BOOTSTRAP_MAX_ABS_SKEW
    if max_abs_kurtosis is None:
        max_abs_kurtosis = config.BOOTSTRAP_MAX_ABS_KURTOSIS
    if excluded is None:
        excluded = config.EXCLUDED_PRACTICE_TESTS

    rng = np.random.default_rng(seed)
    rows = []
    means_by_test = {}

    for test in tests:
        n = int(df[test].notna().sum())
        row = {'test': test, 'n': n, 'skewness': np.nan, 'excess_kurtosis': np.nan}

        if n < min_observations:
            row.update(passes=False, reason=f"fewer than {min_observations} observations")
            rows.append(row)
            continue

        means = bootstrap_means(df[test], n_resamples, sample_frac, seed=rng)
        means_by_test[test] = means
        skewness = scipy_stats.skew(means)
        kurtosis = scipy_stats.kurtosis(means)
        row.update(skewness=skewness, excess_kurtosis=kurtosis)

        if test in excluded:
            row.update(passes=False, reason="excluded by analyst")
        elif not (np.isfinite(skewness) and np.isfinite(kurtosis)):
            row.update(passes=False, reason="degenerate resample distribution")
        elif abs(skewness) > max_abs_skew:
            row.update(passes=False, reason=f"|skewness| > {max_abs_skew}")
        elif abs(kurtosis) > max_abs_kurtosis:
            row.update(passes=False, reason=f"|excess kurtosis| > {max_abs_kurtosis}")
        else:
            row.update(passes=True, reason="")
        rows.append(row)

    screen = pd.DataFrame(rows, columns=['test', 'n', 'skewness', 'excess_kurtosis',
                                         'passes', 'reason']).set_index('test')
    n_pass = int(screen['passes'].sum()) if len(screen) else 0
    print(f"Normality screen: {n_pass}/{len(screen)} practice tests pass")
    return screen, means_by_test


# =============================================================================
# PAIRED TESTS
# =============================================================================
def run_paired_ttest(
    df: pd.DataFrame,
    practice_col: str,
    real_col: str,
    min_n: int = None,
    alpha: float = None
) -> dict:
    """
    Two-sided paired t-test of a practice score against the real score.

    Rows missing either value are dropped from both sides together.

    Returns:
        Dictionary with t statistic, p-value, mean difference (practice - real)
        and n, or an inconclusive result when fewer than min_n pairs remain
    """
    if min_n is None:
        min_n = config.MIN_PAIRED_N
    if alpha is None:
        alpha = config.ALPHA

    pairs = df[[practice_col, real_col]].dropna()
    n = len(pairs)
    if n < min_n:
        return _inconclusive(f"{n} complete pairs (< {min_n})", n, mean_difference=np.nan)

    diff = pairs[practice_col] - pairs[real_col]
    if diff.std() == 0:
        return _inconclusive("no variation in paired differences", n,
                             mean_difference=diff.mean())

    t_stat, p_value = scipy_stats.ttest_rel(pairs[practice_col], pairs[real_col])

    return {
        'statistic': t_stat,
        'p_value': p_value,
        'mean_difference': diff.mean(),
        'significant': p_value < alpha,
        'inconclusive': False,
        'reason': '',
        'n': n,
    }


def run_wilcoxon_signed_rank(
    df: pd.DataFrame,
    practice_col: str = 'practice_score',
    real_col: str = 'real_score',
    min_n: int = None,
    alpha: float = None
) -> dict:
    """
    Two-sided Wilcoxon signed-rank test of practice scores against real scores.

    Rows missing either value are dropped from both sides together; zero
    differences are discarded before ranking. When the remaining absolute
    differences contain ties (AW scores move in half points) the normal
    approximation with continuity correction is used, never the exact
    distribution.

    Returns:
        Dictionary with W statistic, p-value, median difference and n
    """
    if min_n is None:
        min_n = config.MIN_PAIRED_N
    if alpha is None:
        alpha = config.ALPHA

    pairs = df[[practice_col, real_col]].dropna()
    diff = pairs[practice_col] - pairs[real_col]
    n_nonzero = int((diff != 0).sum())
    if n_nonzero < min_n:
        return _inconclusive(f"{n_nonzero} non-zero differences (< {min_n})", len(pairs),
                             n_nonzero=n_nonzero, median_difference=diff.median())

    nonzero = diff[diff != 0].abs()
    method = 'approx' if nonzero.duplicated().any() else 'auto'

    w_stat, p_value = scipy_stats.wilcoxon(
        pairs[practice_col], pairs[real_col],
        zero_method='wilcox', correction=True, alternative='two-sided', method=method,
    )

    return {
        'statistic': w_stat,
        'p_value': p_value,
        'median_difference': diff.median(),
        'significant': p_value < alpha,
        'sig_marker': _sig_marker(p_value),
        'inconclusive': False,
        'reason': '',
        'n': len(pairs),
        'n_nonzero': n_nonzero,
        'method': method,
    }


def adjust_pvalues(
    p_values,
    method: str = None,
    alpha: float = None
) -> tuple[np.ndarray, np.ndarray]:
    """
    Adjust a family of p-values for multiple comparisons.

    Missing p-values (inconclusive tests) are left out of the family and
    come back as NaN / not rejected.

    Parameters:
        p_values: Sequence of raw p-values
        method: statsmodels multipletests method. Defaults to config.P_ADJUST_METHOD
        alpha: Family-wise level. Defaults to config.ALPHA

    Returns:
        Tuple of (reject flags, adjusted p-values), aligned with p_values
    """
    if method is None:
        method = config.P_ADJUST_METHOD
    if alpha is None:
        alpha = config.ALPHA

    p_values = np.asarray(p_values, dtype=float)
    reject = np.zeros(len(p_values), dtype=bool)
    adjusted = np.full(len(p_values), np.nan)

    mask = np.isfinite(p_values)
    if mask.any():
        reject[mask], adjusted[mask], _, _ = multipletests(
            p_values[mask], alpha=alpha, method=method
        )
    return reject, adjusted


def compare_practice_tests(
    section_df: pd.DataFrame,
    target: str,
    tests: list[str] = None,
    alpha: float = None,
    method: str = None,
    seed=None,
    **screen_kwargs
) -> dict:
    """
    Full comparison battery for one GRE section.

    1. Bootstrap normality screen of every practice test
    2. Spearman correlation of surviving tests with the real score
    3. Paired t-test of each surviving test against the real score
    4. Joint p-value adjustment across the section

    Parameters:
        section_df: Section subset (real score + practice columns)
        target: Real score column
        tests: Practice columns. Defaults to every non-target column
        alpha: Significance level. Defaults to config.ALPHA
        method: Adjustment method. Defaults to config.P_ADJUST_METHOD
        seed: Seed for the bootstrap resampling
        **screen_kwargs: Overrides passed to screen_bootstrap_normality

    Returns:
        Dictionary with 'screen', 'bootstrap', 'correlations' and 'results'
    """
    if tests is None:
        tests = [col for col in section_df.columns if col != target]
    if alpha is None:
        alpha = config.ALPHA

    screen, means_by_test = screen_bootstrap_normality(
        section_df, tests, seed=seed, **screen_kwargs
    )
    surviving = [test for test in tests if screen.loc[test, 'passes']]

    correlations = correlate_with_target(section_df, target, surviving)

    rows = []
    for test in surviving:
        result = run_paired_ttest(section_df, test, target, alpha=alpha)
        rows.append({
            'test': test,
            'n': result['n'],
            't_statistic': result['statistic'],
            'p_value': result['p_value'],
            'mean_difference': result['mean_difference'],
            'inconclusive': result['inconclusive'],
        })

    columns = ['test', 'n', 't_statistic', 'p_value', 'mean_difference', 'inconclusive']
    results = pd.DataFrame(rows, columns=columns)
    reject, adjusted = adjust_pvalues(results['p_value'], method=method, alpha=alpha)
    results['p_adjusted'] = adjusted
    results['significant'] = reject
    results['decision'] = [
        config.DECISION_INCONCLUSIVE if inconclusive else config.get_decision_label(sig)
        for inconclusive, sig in zip(results['inconclusive'], reject)
    ]
    results['sig_marker'] = [_sig_marker(p) for p in adjusted]
    results = results.merge(correlations[['test', 'spearman_rho']], on='test', how='left')

    return {
        'screen': screen,
        'bootstrap': means_by_test,
        'correlations': correlations,
        'results': results,
    }


# =============================================================================
# STUDY-EFFECT TESTS
# =============================================================================
def bucket_ranges(view: pd.DataFrame, by: str, bucket_col: str = None) -> pd.DataFrame:
    """Observed min-max edges of each bucket, e.g. '4-34'."""
    if bucket_col is None:
        bucket_col = config.BUCKET_COL

    ranges = view.groupby(bucket_col)[by].agg(['min', 'max', 'size'])
    ranges = ranges.rename(columns={'size': 'n'})
    ranges['range'] = [f"{lo:g}-{hi:g}" for lo, hi in zip(ranges['min'], ranges['max'])]
    return ranges


def bucket_summary(
    view: pd.DataFrame,
    by: str,
    bucket_col: str = None,
    score_cols: list[str] = None
) -> pd.DataFrame:
    """
    Per-bucket mean scores and within-bucket Spearman correlation of the
    study variable with each score.

    Returns:
        DataFrame indexed by bucket
    """
    if bucket_col is None:
        bucket_col = config.BUCKET_COL
    if score_cols is None:
        score_cols = [config.GRE_V, config.GRE_Q]

    summary = bucket_ranges(view, by, bucket_col)[['range', 'n']].copy()
    grouped = view.groupby(bucket_col)
    for col in score_cols:
        summary[f'mean {col}'] = grouped[col].mean()
    for col in score_cols:
        summary[f'rho {col}'] = grouped[[by, col]].apply(
            lambda g, c=col: spearman_correlation(g[by], g[c])
        )
    return summary


def run_kruskal_wallis(
    view: pd.DataFrame,
    value_col: str,
    group_col: str = None,
    alpha: float = None,
    min_group_n: int = None
) -> dict:
    """
    Kruskal-Wallis one-way test of value_col across groups.

    Returns:
        Dictionary with H statistic, p-value, significance and group count
    """
    if group_col is None:
        group_col = config.BUCKET_COL
    if alpha is None:
        alpha = config.ALPHA
    if min_group_n is None:
        min_group_n = config.MIN_GROUP_N

    groups = [group[value_col].dropna().values for _, group in view.groupby(group_col)]
    n_total = int(sum(len(g) for g in groups))

    if len(groups) < 2:
        return _inconclusive(f"{len(groups)} group(s)", n_total, n_groups=len(groups))
    if min(len(g) for g in groups) < min_group_n:
        return _inconclusive(f"a group has fewer than {min_group_n} observations",
                             n_total, n_groups=len(groups))
    if len(np.unique(np.concatenate(groups))) < 2:
        return _inconclusive("all values identical", n_total, n_groups=len(groups))

    h_stat, p_value = scipy_stats.kruskal(*groups)

    return {
        'statistic': h_stat,
        'p_value': p_value,
        'significant': p_value < alpha,
        'sig_marker': _sig_marker(p_value),
        'inconclusive': False,
        'reason': '',
        'n': n_total,
        'n_groups': len(groups),
    }


def run_mann_whitney(
    group1: np.ndarray,
    group2: np.ndarray,
    alpha: float = None,
    min_group_n: int = None
) -> dict:
    """
    Two-sided Mann-Whitney U test between two samples.

    Returns:
        Dictionary with U statistic, raw p-value and interpretation
    """
    if alpha is None:
        alpha = config.ALPHA
    if min_group_n is None:
        min_group_n = config.MIN_GROUP_N

    group1 = np.asarray(group1, dtype=float)
    group2 = np.asarray(group2, dtype=float)
    group1, group2 = group1[~np.isnan(group1)], group2[~np.isnan(group2)]

    if min(len(group1), len(group2)) < min_group_n:
        return _inconclusive(f"a group has fewer than {min_group_n} observations",
                             len(group1) + len(group2),
                             n_group1=len(group1), n_group2=len(group2))

    u_stat, p_value = scipy_stats.mannwhitneyu(group1, group2, alternative='two-sided')

    return {
        'statistic': u_stat,
        'p_value': p_value,
        'significant': p_value < alpha,
        'sig_marker': _sig_marker(p_value),
        'inconclusive': False,
        'reason': '',
        'n': len(group1) + len(group2),
        'n_group1': len(group1),
        'n_group2': len(group2),
    }


def run_pairwise_mann_whitney(
    view: pd.DataFrame,
    value_col: str,
    group_col: str = None,
    alpha: float = None
) -> pd.DataFrame:
    """
    Uncorrected Mann-Whitney U test for every unordered pair of groups.

    Returns:
        DataFrame with one row per pair
    """
    if group_col is None:
        group_col = config.BUCKET_COL

    groups = {name: group[value_col].values for name, group in view.groupby(group_col)}

    comparisons = []
    for name1, name2 in combinations(sorted(groups), 2):
        result = run_mann_whitney(groups[name1], groups[name2], alpha=alpha)
        comparisons.append({
            'variable': value_col,
            'group1': name1,
            'group2': name2,
            'u_statistic': result['statistic'],
            'p_value': result['p_value'],
            'significant': result['significant'],
            'inconclusive': result['inconclusive'],
        })

    return pd.DataFrame(comparisons)


def analyze_study_effect(
    view: pd.DataFrame,
    by: str,
    bucket_col: str = None,
    score_cols: list[str] = None,
    alpha: float = None
) -> dict:
    """
    Bucket summary, Kruskal-Wallis per score, and post-hoc Mann-Whitney
    tests for every score whose omnibus test rejects.

    Parameters:
        view: Study view with a bucket column (see data.add_buckets)
        by: Study variable the buckets were built from
        bucket_col: Bucket column. Defaults to config.BUCKET_COL
        score_cols: Scores to test. Defaults to GRE V and GRE Q
        alpha: Significance level. Defaults to config.ALPHA

    Returns:
        Dictionary with 'summary', 'omnibus' and 'posthoc' DataFrames
    """
    if bucket_col is None:
        bucket_col = config.BUCKET_COL
    if score_cols is None:
        score_cols = [config.GRE_V, config.GRE_Q]

    summary = bucket_summary(view, by, bucket_col, score_cols)

    omnibus_rows = []
    posthoc = []
    for col in score_cols:
        result = run_kruskal_wallis(view, col, bucket_col, alpha=alpha)
        omnibus_rows.append({
            'variable': col,
            'grouping': by,
            'h_statistic': result['statistic'],
            'p_value': result['p_value'],
            'significant': result['significant'],
            'decision': (config.DECISION_INCONCLUSIVE if result['inconclusive']
                         else config.get_decision_label(result['significant'])),
            'sig_marker': _sig_marker(result['p_value']),
        })
        if result['significant']:
            pairs = run_pairwise_mann_whitney(view, col, bucket_col, alpha=alpha)
            pairs.insert(1, 'grouping', by)
            posthoc.append(pairs)

    omnibus = pd.DataFrame(omnibus_rows)
    if posthoc:
        posthoc_df = pd.concat(posthoc, ignore_index=True)
    else:
        posthoc_df = pd.DataFrame(columns=['variable', 'grouping', 'group1', 'group2',
                                           'u_statistic', 'p_value', 'significant',
                                           'inconclusive'])

    return {
        'summary': summary,
        'omnibus': omnibus,
        'posthoc': posthoc_df,
    }


# =============================================================================
# CONSOLE OUTPUT
# =============================================================================
def print_comparison_results(results: pd.DataFrame, title: str) -> None:
    """Print paired-test battery in readable format."""
    print("\n" + "-" * 60)
    print(title)
    print("-" * 60)

    for _, row in results.iterrows():
        print(f"\n{row['test']} (n={row['n']}):")
        if row['inconclusive']:
            print("  Inconclusive: too few complete pairs")
            continue
        print(f"  Spearman rho: {row['spearman_rho']:.3f}")
        print(f"  t-statistic: {row['t_statistic']:.2f}, mean diff: {row['mean_difference']:.2f}")
        print(f"  p-value: {row['p_value']:.2e}, adjusted: {row['p_adjusted']:.2e} "
              f"{row['sig_marker']} -> {row['decision']}")


def print_study_effect_results(omnibus: pd.DataFrame, posthoc: pd.DataFrame) -> None:
    """Print Kruskal-Wallis and post-hoc results in readable format."""
    print("\n" + "-" * 60)
    print("KRUSKAL-WALLIS RESULTS")
    print("-" * 60)

    for _, row in omnibus.iterrows():
        print(f"\n{row['variable']} by {row['grouping']}:")
        print(f"  H-statistic: {row['h_statistic']:.2f}")
        print(f"  p-value: {row['p_value']:.2e} {row['sig_marker']} -> {row['decision']}")

    if len(posthoc) > 0:
        print("\nPost-hoc Mann-Whitney U (uncorrected):")
        for _, row in posthoc.iterrows():
            print(f"  {row['variable']}, bucket {row['group1']} vs {row['group2']}: "
                  f"U={row['u_statistic']:.1f}, p={row['p_value']:.2e}")
