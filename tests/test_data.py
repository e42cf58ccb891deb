import numpy as np
import pandas as pd
import pytest

from gre_core import config, data


class TestLoadCsv:
    def test_assigns_semantic_labels(self, survey_csv, survey_df):
        df = data.load_csv(survey_csv)

        assert list(df.columns) == config.COLUMN_LABELS
        assert len(df.columns) == 29
        assert len(df) == len(survey_df)

    def test_na_token_is_missing_not_zero(self, survey_csv, survey_df):
        df = data.load_csv(survey_csv)

        pd.testing.assert_series_equal(
            df[config.HOURS_STUDIED].isna(),
            survey_df[config.HOURS_STUDIED].isna(),
        )
        assert (df[config.HOURS_STUDIED].dropna() >= 0).all()

    def test_preserves_row_order(self, survey_csv, survey_df):
        df = data.load_csv(survey_csv)
        np.testing.assert_array_equal(df[config.GRE_V].values, survey_df[config.GRE_V].values)

    def test_missing_file(self, tmp_path):
        with pytest.raises(data.DataLoadError, match="not found"):
            data.load_csv(tmp_path / 'nope.csv')

    def test_wrong_column_count(self, tmp_path):
        path = tmp_path / 'short.csv'
        pd.DataFrame({'a': [1, 2], 'b': [3, 4]}).to_csv(path, index=False)

        with pytest.raises(data.DataLoadError, match="expected 29"):
            data.load_csv(path)

    def test_non_numeric_values(self, tmp_path, survey_df):
        path = tmp_path / 'bad.csv'
        bad = survey_df.copy().astype(object)
        bad.iloc[0, 0] = 'one fifty'
        bad.to_csv(path, index=False, na_rep='NA')

        with pytest.raises(data.DataLoadError, match="Non-numeric"):
            data.load_csv(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.csv'
        path.write_text('')

        with pytest.raises(data.DataLoadError):
            data.load_csv(path)

    def test_directory_path(self, tmp_path):
        with pytest.raises(data.DataLoadError, match="Could not read"):
            data.load_csv(tmp_path)

    def test_only_na_token_marks_missing(self, tmp_path, survey_df):
        path = tmp_path / 'blank.csv'
        survey_df.head(3).to_csv(path, index=False, na_rep='')

        with pytest.raises(data.DataLoadError, match="Non-numeric"):
            data.load_csv(path)


def test_layout_has_nine_practice_tests_per_section():
    assert config.N_COLUMNS == 29
    assert len(config.section_columns('V')) == 9
    assert len(config.section_columns('Q')) == 9
    assert len(config.section_columns('AW')) == 6
    assert len(config.practice_columns()) == 24


class TestFilterValidRespondents:
    def test_every_kept_row_is_plausible(self, survey_df):
        clean = data.filter_valid_respondents(survey_df)
        hours = clean[config.HOURS_STUDIED]

        assert (clean[config.TESTS_TAKEN] < 15).all()
        assert (((hours > 0) & (hours <= 200)) | hours.isna()).all()

    def test_keeps_missing_hours(self, survey_df):
        clean = data.filter_valid_respondents(survey_df)
        expected = survey_df[
            survey_df[config.HOURS_STUDIED].isna() & (survey_df[config.TESTS_TAKEN] < 15)
        ]
        assert clean[config.HOURS_STUDIED].isna().sum() == len(expected)

    def test_boundaries(self):
        df = pd.DataFrame(np.nan, index=range(5), columns=config.COLUMN_LABELS)
        df[config.TESTS_TAKEN] = [14, 15, 3, 3, np.nan]
        df[config.HOURS_STUDIED] = [200, 10, 0, 200.5, 10]

        clean = data.filter_valid_respondents(df)

        assert clean.index.tolist() == [0]

    def test_does_not_mutate_input(self, survey_df):
        before = survey_df.copy()
        data.filter_valid_respondents(survey_df)
        pd.testing.assert_frame_equal(survey_df, before)


class TestSplitSections:
    def test_section_columns(self, survey_df):
        sections = data.split_sections(survey_df)

        assert set(sections) == {'V', 'Q', 'AW'}
        assert sections['V'].columns[0] == config.GRE_V
        assert len(sections['V'].columns) == 10
        assert len(sections['Q'].columns) == 10
        assert list(sections['AW'].columns) == [config.GRE_AW] + [
            f'{test} AW' for test in config.AW_PRACTICE_TESTS
        ]

    def test_aw_drops_missing_real_score(self, survey_df):
        sections = data.split_sections(survey_df)

        assert sections['AW'][config.GRE_AW].notna().all()
        assert len(sections['AW']) == survey_df[config.GRE_AW].notna().sum()
        assert len(sections['V']) == len(survey_df)


class TestFlattenAwScores:
    def test_one_row_per_reported_practice_score(self):
        aw = pd.DataFrame({
            config.GRE_AW: [4.0, 5.0, 3.5],
            'PowerPrep 1 AW': [4.5, np.nan, np.nan],
            'PowerPrep 2 AW': [4.0, 5.5, np.nan],
            'PowerPrep Plus 1 AW': [np.nan, np.nan, np.nan],
            'PowerPrep Plus 2 AW': [np.nan, np.nan, np.nan],
        })

        long_df = data.flatten_aw_scores(aw)

        assert list(long_df.columns) == ['practice_score', 'test', 'real_score']
        assert long_df.values.tolist() == [
            [4.5, 'PowerPrep 1', 4.0],
            [4.0, 'PowerPrep 2', 4.0],
            [5.5, 'PowerPrep 2', 5.0],
        ]


class TestQuantileBuckets:
    def test_equal_frequency(self):
        series = pd.Series(np.arange(39, dtype=float))
        buckets = data.assign_quantile_buckets(series, 3)

        assert buckets.value_counts().tolist() == [13, 13, 13]
        assert buckets.iloc[0] == 1
        assert buckets.iloc[-1] == 3

    def test_tied_values_share_a_bucket(self):
        series = pd.Series([1, 1, 1, 1, 1, 1, 2, 2, 5, 9], dtype=float)
        buckets = data.assign_quantile_buckets(series, 3)

        assert (buckets.groupby(series).nunique() == 1).all()
        # Coinciding quantile edges are merged
        assert buckets.tolist() == [1, 1, 1, 1, 1, 1, 1, 1, 2, 2]

    def test_single_value(self):
        buckets = data.assign_quantile_buckets(pd.Series([4.0] * 6), 3)
        assert (buckets == 1).all()

    @pytest.mark.parametrize('by', [config.HOURS_STUDIED, config.TESTS_TAKEN])
    def test_buckets_are_disjoint(self, survey_df, by):
        view = data.study_view(survey_df, by)
        view = data.add_buckets(view, by, 3)
        edges = view.groupby(config.BUCKET_COL)[by].agg(['min', 'max'])

        assert (edges['max'].iloc[:-1].values < edges['min'].iloc[1:].values).all()
        assert (view.groupby(by)[config.BUCKET_COL].nunique() == 1).all()

    def test_row_order_does_not_matter(self, survey_df):
        view = data.study_view(survey_df, config.TESTS_TAKEN)
        shuffled = view.sample(frac=1.0, random_state=0)

        original = data.assign_quantile_buckets(view[config.TESTS_TAKEN], 3)
        reordered = data.assign_quantile_buckets(shuffled[config.TESTS_TAKEN], 3)

        pd.testing.assert_series_equal(original, reordered.loc[original.index])

    def test_too_few_values(self):
        with pytest.raises(ValueError):
            data.assign_quantile_buckets(pd.Series([1.0, 2.0]), 3)


def test_study_view_drops_incomplete_rows(survey_df):
    view = data.study_view(survey_df, config.HOURS_STUDIED)

    assert list(view.columns) == [config.GRE_V, config.GRE_Q, config.HOURS_STUDIED]
    assert view.notna().all().all()
    assert len(view) == survey_df[config.HOURS_STUDIED].notna().sum()
