"""
Report Rendering Module
=======================

Formats computed tables and test results into the plain-text report.
Numbers are rounded to config.SIG_DIGITS significant digits and p-values
are shown in scientific notation.
"""

from pathlib import Path

import numpy as np
import pandas as pd

from . import config, output

RULE = "=" * 70
SUBRULE = "-" * 50


def format_sig(value, digits: int = None) -> str:
    """Round to significant digits, e.g. 156.72 -> '157', 0.012345 -> '0.0123'."""
    if digits is None:
        digits = config.SIG_DIGITS
    if value is None or not np.isfinite(value):
        return 'NA'
    return f"{float(f'{value:.{digits}g}'):g}"


def format_pvalue(p_value) -> str:
    """Scientific notation p-value, e.g. '3.21e-04'."""
    if p_value is None or not np.isfinite(p_value):
        return 'NA'
    return f"{p_value:.2e}"


def _is_pvalue_column(name) -> bool:
    return str(name).startswith('p_')


def format_table(df: pd.DataFrame, index: bool = True) -> str:
    """Render a DataFrame with report number formatting."""
    if df.empty:
        return "(no rows)"

    formatted = df.copy()
    for col in formatted.columns:
        if pd.api.types.is_bool_dtype(formatted[col]):
            continue
        if pd.api.types.is_float_dtype(formatted[col]):
            fmt = format_pvalue if _is_pvalue_column(col) else format_sig
            formatted[col] = formatted[col].map(fmt)
    return formatted.to_string(index=index)


def _header(title: str) -> list[str]:
    return ["", title, SUBRULE]


def render_configuration(params: dict) -> list[str]:
    """Configuration block listing every explicit threshold used."""
    lines = _header("CONFIGURATION")
    lines.extend([
        f"Data file: {params['data_file']}",
        f"Cleaning: tests taken < {params['max_tests_taken']}, "
        f"0 < hours studied <= {params['max_hours']} (or missing)",
        f"Bootstrap: {params['n_resamples']:,} resamples at "
        f"{params['sample_frac']:.0%} without replacement, seed={params['seed']}",
        f"Normality screen: n >= {params['min_observations']}, "
        f"|skew| <= {params['max_abs_skew']}, |excess kurtosis| <= {params['max_abs_kurtosis']}",
        f"Manually excluded tests: {', '.join(params['excluded_tests']) or 'none'}",
        f"P-value adjustment: {params['p_adjust_method']} at alpha = {params['alpha']}",
        f"Buckets: {params['n_hours_buckets']} hours-studied, "
        f"{params['n_tests_buckets']} tests-taken (cut at value quantiles)",
    ])
    return lines


def render_descriptive(descriptive: dict) -> list[str]:
    """Sample sizes, percentiles, missing-data tally and outlier fences."""
    lines = _header("DESCRIPTIVE STATISTICS")
    lines.append(f"Respondents: {descriptive['n_raw']:,} raw, "
                 f"{descriptive['n_clean']:,} after cleaning")

    lines.extend(["", "Percentiles of real GRE scores:",
                  format_table(descriptive['percentiles'])])

    tally = descriptive['tally']
    lines.extend(["", "Practice-test participation (share of cleaned respondents):",
                  format_table(tally)])
    if len(tally) > 0:
        top = tally.index[0]
        lines.append(f"Most reported practice test: {top} "
                     f"({format_sig(tally.loc[top, 'proportion'])})")

    lines.extend(["", "Box-plot fences of study effort (raw data):",
                  format_table(descriptive['outliers'])])
    return lines


def render_comparison(section: str, comparison: dict) -> list[str]:
    """Screen, correlation and paired t-test results for one section."""
    lines = _header(f"PRACTICE TESTS VS REAL GRE {section}")

    screen = comparison['screen']
    failed = screen[~screen['passes']]
    lines.append(f"Normality screen: {len(screen) - len(failed)}/{len(screen)} tests kept")
    for test, row in failed.iterrows():
        lines.append(f"  - excluded {test}: {row['reason']}")

    results = comparison['results']
    if results.empty:
        lines.append("No practice tests survived the screen.")
        return lines

    table = results[['test', 'n', 'spearman_rho', 't_statistic', 'mean_difference',
                     'p_value', 'p_adjusted', 'decision']]
    lines.extend(["", format_table(table, index=False)])

    best = results.dropna(subset=['spearman_rho'])
    if len(best) > 0:
        top = best.loc[best['spearman_rho'].idxmax()]
        lines.append(f"\nStrongest rank correlation: {top['test']} "
                     f"(rho = {format_sig(top['spearman_rho'])})")

    unbiased = results[results['decision'] == config.DECISION_KEEP]['test'].tolist()
    if unbiased:
        lines.append("Mean not distinguishable from real score: " + ", ".join(unbiased))
    biased = results[results['decision'] == config.DECISION_REJECT]
    for _, row in biased.iterrows():
        direction = 'over' if row['mean_difference'] > 0 else 'under'
        lines.append(f"  - {row['test']} {direction}estimates by "
                     f"{format_sig(abs(row['mean_difference']))} points on average")
    return lines


def render_aw(aw: dict, alpha: float) -> list[str]:
    """Wilcoxon signed-rank result for Analytical Writing."""
    lines = _header("PRACTICE TESTS VS REAL GRE AW")
    result = aw['wilcoxon']
    lines.append(f"Respondents with a real AW score: {aw['n_respondents']}, "
                 f"practice AW scores reported: {len(aw['long'])}")

    if result['inconclusive']:
        lines.append(f"Wilcoxon signed-rank: {config.DECISION_INCONCLUSIVE} ({result['reason']})")
        return lines

    lines.extend([
        f"Wilcoxon signed-rank: W = {format_sig(result['statistic'])}, "
        f"p = {format_pvalue(result['p_value'])}, "
        f"median difference = {format_sig(result['median_difference'])}",
        f"Decision at alpha = {alpha}: "
        f"{config.get_decision_label(result['significant'])}",
    ])
    return lines


def render_study_effect(by: str, study: dict) -> list[str]:
    """Bucket summary, Kruskal-Wallis and post-hoc tests for one study variable."""
    lines = _header(f"STUDY EFFECT: {by.upper()}")
    lines.extend([format_table(study['summary']), ""])

    for _, row in study['omnibus'].iterrows():
        lines.append(f"Kruskal-Wallis {row['variable']}: H = {format_sig(row['h_statistic'])}, "
                     f"p = {format_pvalue(row['p_value'])} -> {row['decision']}")

    posthoc = study['posthoc']
    if len(posthoc) > 0:
        lines.extend(["", "Post-hoc Mann-Whitney U (uncorrected, exploratory):"])
        for _, row in posthoc.iterrows():
            marker = " *" if row['significant'] else ""
            lines.append(f"  {row['variable']} bucket {row['group1']} vs {row['group2']}: "
                         f"U = {format_sig(row['u_statistic'])}, "
                         f"p = {format_pvalue(row['p_value'])}{marker}")
    return lines


def render_figures(figures: dict) -> list[str]:
    lines = _header("FIGURES")
    for name, path in figures.items():
        lines.append(f"  {name}: {path.name}")
    return lines


def render_report(results: dict, params: dict) -> str:
    """
    Assemble the complete report.

    Parameters:
        results: Pipeline results with 'descriptive', 'comparisons', 'aw',
            'study' and 'figures' entries (any may be missing)
        params: Pipeline parameters

    Returns:
        Report text
    """
    lines = [
        RULE,
        "GRE PRACTICE-TEST ANALYSIS REPORT",
        RULE,
        "",
        "Which practice tests predict real GRE scores, and how do study",
        "hours and the number of practice tests relate to GRE outcomes?",
    ]
    lines.extend(render_configuration(params))

    if 'descriptive' in results:
        lines.extend(render_descriptive(results['descriptive']))
    for section, comparison in results.get('comparisons', {}).items():
        lines.extend(render_comparison(section, comparison))
    if 'aw' in results:
        lines.extend(render_aw(results['aw'], params['alpha']))
    for by, study in results.get('study', {}).items():
        lines.extend(render_study_effect(by, study))
    if results.get('figures'):
        lines.extend(render_figures(results['figures']))

    lines.extend(["", RULE])
    return "\n".join(lines)


def write_report(results: dict, params: dict, output_dir: Path, name: str) -> tuple[str, Path]:
    """
    Render the report and write it next to the figures and tables it lists.

    The FIGURES section names files by basename only, so the report must live
    in the same directory as them.

    Returns:
        Tuple of (report text, path of the written file)
    """
    missing = [path.name for path in results.get('figures', {}).values()
               if Path(path).parent != Path(output_dir)]
    if missing:
        raise ValueError(f"Figures outside {output_dir}: {', '.join(missing)}")

    text = render_report(results, params)
    filepath = output.output_path(output_dir, name, 'report', 'txt')
    filepath.write_text(text, encoding='utf-8')
    print(f"Saved: {filepath.name}")
    return text, filepath
