#!/usr/bin/env python3
"""
Full GRE Report Orchestrator
============================

Complete pipeline that chains: Load -> Clean -> Describe -> Compare -> Study Effect -> Report

Workflow:
1. Load the 29-column survey and assign semantic labels
2. Drop implausible respondents (tests taken >= 15, hours outside (0, 200])
3. Split by section (V, Q, AW)
4. Percentiles, participation tally, box-plot fences, pairwise plots
5. Per section (Q, V): bootstrap normality screen, Spearman, paired t-tests,
   Hochberg adjustment
6. AW: one Wilcoxon signed-rank test over all practice/real pairs
7. Hours studied and tests taken: value-quantile buckets, bucket means and
   correlations, Kruskal-Wallis, post-hoc Mann-Whitney U
8. Render the report

Outputs: outputs/{DATE}-gre-report/
    - pairs.png, effort-boxplots.png, qq-scores.png
    - {q,v}-bootstrap.png, {q,v}-correlations.png
    - qq-{hours,tests}.png, {hours,tests}-buckets.png
    - percentiles.csv, tally.csv, fences.csv, {q,v}-screen.csv, {q,v}-tests.csv,
      aw-pairs.csv, {hours,tests}-summary.csv, {hours,tests}-kruskal.csv,
      {hours,tests}-posthoc.csv
    - report.txt
"""

import warnings

import pandas as pd

from gre_core import data, stats, viz, output, report, config

# =============================================================================
# CONFIGURATION
# =============================================================================
PIPELINE_NAME = 'gre-report'

PARAMS = {
    'data_file': config.DEFAULT_DATA_FILE,
    'output_base': config.DEFAULT_OUTPUT_BASE,
    'max_tests_taken': config.MAX_TESTS_TAKEN,
    'max_hours': config.MAX_HOURS_STUDIED,
    'n_resamples': config.BOOTSTRAP_RESAMPLES,
    'sample_frac': config.BOOTSTRAP_SAMPLE_FRAC,
    'min_observations': config.MIN_TEST_OBSERVATIONS,
    'max_abs_skew': config.BOOTSTRAP_MAX_ABS_SKEW,
    'max_abs_kurtosis': config.BOOTSTRAP_MAX_ABS_KURTOSIS,
    'excluded_tests': config.EXCLUDED_PRACTICE_TESTS,
    'p_adjust_method': config.P_ADJUST_METHOD,
    'alpha': config.ALPHA,
    'seed': config.RANDOM_SEED,  # None = unseeded resampling
    'n_hours_buckets': config.N_HOURS_BUCKETS,
    'n_tests_buckets': config.N_TESTS_BUCKETS,
    'suppress_warnings': True,
}

SCORE_COLS = [config.GRE_V, config.GRE_Q]
EFFORT_COLS = [config.HOURS_STUDIED, config.TESTS_TAKEN]
STUDY_SLUGS = {config.HOURS_STUDIED: 'hours', config.TESTS_TAKEN: 'tests'}


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


# =============================================================================
# PIPELINE STEPS
# =============================================================================
def describe(raw, clean, params, output_dir, figures):
    """Percentiles, participation tally, fences and exploratory plots."""
    real_scores = [config.GRE_V, config.GRE_Q, config.GRE_AW]

    percentiles = stats.score_percentiles(clean, real_scores)
    tally = stats.missing_data_tally(clean, config.practice_columns())
    fences = stats.iqr_outlier_bounds(raw, EFFORT_COLS)

    print("\nPercentiles:")
    print(percentiles.round(1).to_string())
    print("\nTop practice tests by participation:")
    print(tally.head(5).round(3).to_string())

    output.save_table(percentiles, output_dir, PIPELINE_NAME, 'percentiles', index=True)
    output.save_table(tally, output_dir, PIPELINE_NAME, 'tally', index=True)
    output.save_table(fences, output_dir, PIPELINE_NAME, 'fences', index=True)

    fig = viz.plot_pair_matrix(clean, SCORE_COLS + EFFORT_COLS)
    figures['Pairwise scores vs study effort'] = output.save_figure(
        fig, output_dir, PIPELINE_NAME, 'pairs')

    cutoffs = {config.HOURS_STUDIED: params['max_hours'],
               config.TESTS_TAKEN: params['max_tests_taken']}
    fig = viz.plot_boxplots(raw, EFFORT_COLS, cutoffs)
    figures['Study effort before cleaning'] = output.save_figure(
        fig, output_dir, PIPELINE_NAME, 'effort-boxplots')

    fig = viz.plot_qq_grid({col: clean[col] for col in real_scores},
                           title='Normal Q-Q: real GRE scores')
    figures['Q-Q real scores'] = output.save_figure(fig, output_dir, PIPELINE_NAME, 'qq-scores')

    return {
        'n_raw': len(raw),
        'n_clean': len(clean),
        'percentiles': percentiles,
        'tally': tally,
        'outliers': fences,
    }


def compare_section(section, section_df, params, output_dir, figures):
    """Screen, correlate and t-test every practice test for one section."""
    target = config.SECTION_TARGETS[section]
    comparison = stats.compare_practice_tests(
        section_df,
        target,
        alpha=params['alpha'],
        method=params['p_adjust_method'],
        seed=params['seed'],
        n_resamples=params['n_resamples'],
        sample_frac=params['sample_frac'],
        min_observations=params['min_observations'],
        max_abs_skew=params['max_abs_skew'],
        max_abs_kurtosis=params['max_abs_kurtosis'],
        excluded=params['excluded_tests'],
    )
    results = comparison['results']
    stats.print_comparison_results(results, f"PAIRED T-TESTS: {target}")

    slug = section.lower()
    output.save_table(comparison['screen'], output_dir, PIPELINE_NAME, f'{slug}-screen', index=True)
    output.save_table(results, output_dir, PIPELINE_NAME, f'{slug}-tests')

    if comparison['bootstrap']:
        fig = viz.plot_bootstrap_means(comparison['bootstrap'], comparison['screen'],
                                       title=f'Bootstrap means: {section} practice tests')
        figures[f'{section} bootstrap screen'] = output.save_figure(
            fig, output_dir, PIPELINE_NAME, f'{slug}-bootstrap')

    plottable = results.dropna(subset=['spearman_rho'])
    if len(plottable) > 0:
        fig = viz.plot_correlations(plottable, f'{target}: practice-test correlations',
                                   params['alpha'])
        figures[f'{section} correlations'] = output.save_figure(
            fig, output_dir, PIPELINE_NAME, f'{slug}-correlations')

    return comparison


def compare_aw(aw_df, params, output_dir):
    """Single Wilcoxon signed-rank test over every practice AW score."""
    long_df = data.flatten_aw_scores(aw_df)
    result = stats.run_wilcoxon_signed_rank(long_df, alpha=params['alpha'])

    if result['inconclusive']:
        print(f"\nWilcoxon signed-rank: inconclusive ({result['reason']})")
    else:
        print(f"\nWilcoxon signed-rank (n={result['n']}): "
              f"W={result['statistic']:.1f}, p={result['p_value']:.2e}")

    output.save_table(long_df, output_dir, PIPELINE_NAME, 'aw-pairs')
    return {
        'n_respondents': len(aw_df),
        'long': long_df,
        'wilcoxon': result,
    }


def study_effect(clean, by, n_buckets, params, output_dir, figures):
    """Bucket one study variable and test score differences across buckets."""
    view = data.study_view(clean, by)
    if len(view) < n_buckets:
        print(f"Skipping {by}: {len(view)} complete records for {n_buckets} buckets")
        return None

    view = data.add_buckets(view, by, n_buckets)
    study = stats.analyze_study_effect(view, by, alpha=params['alpha'])
    stats.print_study_effect_results(study['omnibus'], study['posthoc'])

    slug = STUDY_SLUGS[by]
    output.save_table(study['summary'], output_dir, PIPELINE_NAME, f'{slug}-summary', index=True)
    output.save_table(study['omnibus'], output_dir, PIPELINE_NAME, f'{slug}-kruskal')
    output.save_table(study['posthoc'], output_dir, PIPELINE_NAME, f'{slug}-posthoc')

    bucket_labels = study['summary']['range'].to_dict()
    samples = {}
    for col in SCORE_COLS:
        for bucket, label in bucket_labels.items():
            samples[f'{col}, {by} {label}'] = view.loc[view[config.BUCKET_COL] == bucket, col]
    fig = viz.plot_qq_grid(samples, ncols=n_buckets, title=f'Normal Q-Q by {by} bucket')
    figures[f'Q-Q by {by} bucket'] = output.save_figure(
        fig, output_dir, PIPELINE_NAME, f'qq-{slug}')

    fig = viz.plot_scores_by_bucket(view, SCORE_COLS, config.BUCKET_COL, bucket_labels, by)
    figures[f'Scores by {by} bucket'] = output.save_figure(
        fig, output_dir, PIPELINE_NAME, f'{slug}-buckets')

    return study


# =============================================================================
# MAIN PIPELINE
# =============================================================================
def run_pipeline(params: dict = None) -> dict:
    """
    Run the full analysis and write the report.

    Parameters:
        params: Overrides for PARAMS

    Returns:
        Dictionary with every computed table, the report text and output_dir

    Raises:
        data.DataLoadError: before anything is written, if the input is unusable
    """
    params = {**PARAMS, **(params or {})}

    with warnings.catch_warnings():
        if params['suppress_warnings']:
            warnings.simplefilter('ignore')
        return _run(params)


def _run(params: dict) -> dict:
    # -------------------------------------------------------------------------
    # STEP 1: Load & clean
    # -------------------------------------------------------------------------
    _banner("STEP 1: LOADING AND CLEANING DATA")

    raw = data.load_csv(params['data_file'])
    clean = data.filter_valid_respondents(
        raw, max_tests_taken=params['max_tests_taken'], max_hours=params['max_hours']
    )
    sections = data.split_sections(clean)

    output_dir = output.get_output_dir(PIPELINE_NAME, params['output_base'])
    viz.setup_style()
    figures = {}
    results = {'figures': figures}

    # -------------------------------------------------------------------------
    # STEP 2: Descriptive statistics
    # -------------------------------------------------------------------------
    _banner("STEP 2: DESCRIPTIVE STATISTICS")
    results['descriptive'] = describe(raw, clean, params, output_dir, figures)

    # -------------------------------------------------------------------------
    # STEP 3: Practice tests vs real scores (Q, V)
    # -------------------------------------------------------------------------
    _banner("STEP 3: PRACTICE TESTS VS REAL SCORES")
    results['comparisons'] = {
        section: compare_section(section, sections[section], params, output_dir, figures)
        for section in ['Q', 'V']
    }

    # -------------------------------------------------------------------------
    # STEP 4: Analytical Writing
    # -------------------------------------------------------------------------
    _banner("STEP 4: ANALYTICAL WRITING")
    results['aw'] = compare_aw(sections['AW'], params, output_dir)

    # -------------------------------------------------------------------------
    # STEP 5: Study effect
    # -------------------------------------------------------------------------
    _banner("STEP 5: STUDY EFFECT")
    results['study'] = {}
    for by, n_buckets in [(config.HOURS_STUDIED, params['n_hours_buckets']),
                          (config.TESTS_TAKEN, params['n_tests_buckets'])]:
        study = study_effect(clean, by, n_buckets, params, output_dir, figures)
        if study is not None:
            results['study'][by] = study

    # -------------------------------------------------------------------------
    # STEP 6: Report
    # -------------------------------------------------------------------------
    _banner("STEP 6: RENDERING REPORT")
    text, _ = report.write_report(results, params, output_dir, PIPELINE_NAME)

    _banner("PIPELINE COMPLETE")
    output.print_summary(output_dir)

    results.update({
        'raw': raw,
        'clean': clean,
        'sections': sections,
        'report': text,
        'output_dir': output_dir,
    })
    return results


# =============================================================================
# ENTRY POINT
# =============================================================================
if __name__ == '__main__':
    pd.set_option('display.width', 120)
    results = run_pipeline()
