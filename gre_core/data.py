"""
Data Loading and Preprocessing Module
======================================

Functions for loading the survey table, filtering implausible respondents,
and deriving per-section and study-effect views for analysis.
"""

from pathlib import Path

import pandas as pd

from . import config


class DataLoadError(Exception):
    """Input file is missing, unreadable or does not match the expected layout."""


def load_csv(filepath: str = None) -> pd.DataFrame:
    """
    Load the survey CSV and assign the fixed semantic column labels.

    Parameters:
        filepath: Path to CSV file. Defaults to config.DEFAULT_DATA_FILE

    Returns:
        DataFrame with config.COLUMN_LABELS as columns, row order preserved

    Raises:
        DataLoadError: if the file is missing, unparsable, has the wrong
            number of columns, or holds non-numeric values (empty cells
            included; only the literal NA token marks a missing value)
    """
    if filepath is None:
        filepath = config.DEFAULT_DATA_FILE

    filepath = Path(filepath)
    if not filepath.exists():
        raise DataLoadError(f"CSV file not found: {filepath}")

    try:
        df = pd.read_csv(filepath, na_values=[config.MISSING_TOKEN], keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        raise DataLoadError(f"Could not read {filepath}: {e}") from e

    if len(df.columns) != config.N_COLUMNS:
        raise DataLoadError(
            f"{filepath} has {len(df.columns)} columns, expected {config.N_COLUMNS}"
        )

    df.columns = config.COLUMN_LABELS

    non_numeric = [col for col in df.columns if not pd.api.types.is_numeric_dtype(df[col])]
    if non_numeric:
        raise DataLoadError(f"Non-numeric values in columns: {', '.join(non_numeric)}")

    df = df.astype(float)
    print(f"Loaded {len(df):,} records with {len(df.columns)} columns from {filepath}")
    return df


def filter_valid_respondents(
    df: pd.DataFrame,
    max_tests_taken: int = None,
    max_hours: float = None,
    min_hours: float = None
) -> pd.DataFrame:
    """
    Drop respondents with implausible study effort.

    Keeps rows where tests taken < max_tests_taken AND
    (min_hours < hours <= max_hours OR hours is missing).

    Parameters:
        df: Raw survey DataFrame
        max_tests_taken: Exclusive upper bound. Defaults to config.MAX_TESTS_TAKEN
        max_hours: Inclusive upper bound. Defaults to config.MAX_HOURS_STUDIED
        min_hours: Exclusive lower bound. Defaults to config.MIN_HOURS_STUDIED

    Returns:
        Filtered copy of df
    """
    if max_tests_taken is None:
        max_tests_taken = config.MAX_TESTS_TAKEN
    if max_hours is None:
        max_hours = config.MAX_HOURS_STUDIED
    if min_hours is None:
        min_hours = config.MIN_HOURS_STUDIED

    hours = df[config.HOURS_STUDIED]
    tests_ok = df[config.TESTS_TAKEN] < max_tests_taken
    hours_ok = ((hours > min_hours) & (hours <= max_hours)) | hours.isna()

    df_filtered = df[tests_ok & hours_ok].copy()
    print(f"After validity filter (tests < {max_tests_taken}, "
          f"{min_hours} < hours <= {max_hours}): {len(df_filtered):,} records "
          f"({len(df) - len(df_filtered):,} dropped)")
    return df_filtered


def split_sections(df: pd.DataFrame) -> dict[str, pd.DataFrame]:
    """
    Partition the cleaned table into per-section subsets.

    Each subset holds the real section score followed by every practice
    column for that section. The AW subset also drops rows without a
    real AW score.

    Returns:
        Dictionary keyed by section ('V', 'Q', 'AW')
    """
    sections = {}
    for section in config.SECTIONS:
        target = config.SECTION_TARGETS[section]
        subset = df[[target] + config.section_columns(section)].copy()
        if section == 'AW':
            subset = subset.dropna(subset=[target])
        sections[section] = subset
        print(f"  {section} subset: {len(subset):,} records, "
              f"{len(subset.columns) - 1} practice tests")
    return sections


def get_practice_tests(section_df: pd.DataFrame, target: str) -> list[str]:
    """Return the practice-test columns in a section subset."""
    return [col for col in section_df.columns if col != target]


def flatten_aw_scores(aw_df: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape the AW subset into one row per reported practice AW score.

    Parameters:
        aw_df: AW section subset from split_sections

    Returns:
        DataFrame with columns 'practice_score', 'test', 'real_score'
    """
    target = config.GRE_AW
    tests = get_practice_tests(aw_df, target)

    long_df = aw_df.rename_axis('respondent').reset_index().melt(
        id_vars=['respondent', target],
        value_vars=tests,
        var_name='test',
        value_name='practice_score',
    )
    long_df = long_df.dropna(subset=['practice_score', target])
    long_df['test'] = long_df['test'].str.replace(' AW', '', regex=False)
    long_df = long_df.sort_values(['respondent', 'test'])
    long_df = long_df.rename(columns={target: 'real_score'})

    return long_df[['practice_score', 'test', 'real_score']].reset_index(drop=True)


def study_view(df: pd.DataFrame, by: str) -> pd.DataFrame:
    """
    Build the (GRE V, GRE Q, by) view with incomplete rows dropped.

    Parameters:
        df: Cleaned survey DataFrame
        by: Study variable (config.HOURS_STUDIED or config.TESTS_TAKEN)
    """
    view = df[[config.GRE_V, config.GRE_Q, by]].dropna().copy()
    print(f"Records with complete {by} data: {len(view):,}")
    return view


def assign_quantile_buckets(series: pd.Series, n_buckets: int = 3) -> pd.Series:
    """
    Assign buckets 1..n_buckets by cutting at the value quantiles.

    Every distinct value lands in exactly one bucket, so bucket ranges never
    overlap and the assignment does not depend on row order. Heavy ties make
    bucket sizes uneven, and quantile edges that coincide are merged, which
    can leave fewer than n_buckets buckets.

    Parameters:
        series: Numeric series without missing values
        n_buckets: Number of buckets

    Returns:
        Integer series of bucket numbers aligned with series
    """
    if len(series) < n_buckets:
        raise ValueError(f"Cannot split {len(series)} values into {n_buckets} buckets")

    if series.nunique() == 1:
        return pd.Series(1, index=series.index)

    buckets = pd.qcut(series, q=n_buckets, labels=False, duplicates='drop') + 1
    return buckets.astype(int)


def add_buckets(
    view: pd.DataFrame,
    by: str,
    n_buckets: int = 3,
    bucket_col: str = None
) -> pd.DataFrame:
    """Return a copy of view with a bucket column for the study variable."""
    if bucket_col is None:
        bucket_col = config.BUCKET_COL

    view = view.copy()
    view[bucket_col] = assign_quantile_buckets(view[by], n_buckets)
    sizes = view[bucket_col].value_counts().sort_index()
    if len(sizes) < n_buckets:
        print(f"  {by} has tied quantiles: {len(sizes)} of {n_buckets} buckets kept")
    print(f"Created {len(sizes)} {by} buckets: sizes {sizes.tolist()}")
    return view
