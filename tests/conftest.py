import numpy as np
import pandas as pd
import pytest

from gre_core import config

N_RESPONDENTS = 240

# Share of respondents reporting each practice test
PARTICIPATION = {
    'PowerPrep 1': 0.8,
    'PowerPrep 2': 0.55,
    'PowerPrep Plus 1': 0.3,
    'PowerPrep Plus 2': 0.2,
    'PowerPrep Plus 3': 0.25,
    'Kaplan': 0.4,
    'Magoosh': 0.35,
    'Manhattan': 0.3,
    'Princeton Review': 0.01,
}

# Systematic offset of each practice test from the real score
BIAS = {
    'PowerPrep 1': 0.0,
    'PowerPrep 2': 0.0,
    'PowerPrep Plus 1': -1.0,
    'PowerPrep Plus 2': -1.0,
    'PowerPrep Plus 3': 5.0,
    'Kaplan': -7.0,
    'Magoosh': 4.0,
    'Manhattan': -6.0,
    'Princeton Review': -3.0,
}


def _symmetric_noise(rng, n, scale):
    """Noise whose mean is exactly zero: each draw is paired with its negation."""
    half = rng.normal(0, scale, size=n // 2).round()
    noise = np.concatenate([half, -half, np.zeros(n % 2)])
    return rng.permutation(noise)


def make_survey(n=N_RESPONDENTS, seed=7) -> pd.DataFrame:
    """Synthetic survey with the 29 labelled columns."""
    rng = np.random.default_rng(seed)

    df = pd.DataFrame(index=range(n), columns=config.COLUMN_LABELS, dtype=float)
    df[config.GRE_V] = np.clip(rng.normal(155, 6, n).round(), 130, 170)
    df[config.GRE_Q] = np.clip(rng.normal(160, 5, n).round(), 130, 170)
    df[config.GRE_AW] = np.where(rng.random(n) < 0.8,
                                 rng.integers(6, 13, n) / 2.0, np.nan)
    df[config.TESTS_TAKEN] = rng.integers(1, 20, n).astype(float)
    hours = rng.integers(0, 300, n).astype(float)
    hours[rng.random(n) < 0.1] = np.nan
    df[config.HOURS_STUDIED] = hours

    for test in config.PRACTICE_TESTS:
        for section, target in [('V', config.GRE_V), ('Q', config.GRE_Q)]:
            present = rng.permutation(n) < round(PARTICIPATION[test] * n)
            idx = np.flatnonzero(present)
            scores = df.loc[idx, target] + BIAS[test] + _symmetric_noise(rng, len(idx), 2)
            df.loc[idx, f'{test} {section}'] = scores.values

    for test in config.AW_PRACTICE_TESTS:
        present = (rng.random(n) < 0.05) & df[config.GRE_AW].notna()
        df.loc[present, f'{test} AW'] = (
            df.loc[present, config.GRE_AW] - 0.5 * rng.integers(0, 3, present.sum())
        ).clip(lower=0)

    return df


@pytest.fixture
def survey_df():
    return make_survey()


@pytest.fixture
def survey_csv(tmp_path, survey_df):
    """Survey written the way the raw export looks: short headers, NA tokens."""
    path = tmp_path / 'gre_scores.csv'
    raw = survey_df.copy()
    raw.columns = [f'q{i + 1}' for i in range(len(raw.columns))]
    raw.to_csv(path, index=False, na_rep='NA')
    return path


@pytest.fixture
def bucketed_view():
    """
    Study view where V scores rise only in the top bucket and Q scores
    are identical across buckets.
    """
    low = np.arange(150, 160, dtype=float)
    return pd.DataFrame({
        config.GRE_V: np.concatenate([low, low, low + 15]),
        config.GRE_Q: np.concatenate([low, low, low]),
        config.HOURS_STUDIED: np.arange(1, 31, dtype=float),
        config.BUCKET_COL: np.repeat([1, 2, 3], 10),
    })
