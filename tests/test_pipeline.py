import importlib.util
from pathlib import Path

import pytest

from gre_core import config, data

SCRIPT = Path(__file__).parent.parent / 'analyses' / 'full_gre_report.py'


@pytest.fixture(scope='module')
def pipeline():
    spec = importlib.util.spec_from_file_location('full_gre_report', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_full_report(pipeline, survey_csv, tmp_path):
    base = tmp_path / 'outputs'
    results = pipeline.run_pipeline({
        'data_file': str(survey_csv),
        'output_base': str(base),
        'n_resamples': 500,
    })

    output_dir = results['output_dir']
    files = sorted(p.name for p in output_dir.iterdir())
    report_files = [f for f in files if f.endswith('-report.txt')]

    assert len(report_files) == 1
    assert any(f.endswith('-pairs.png') for f in files)
    assert any(f.endswith('-q-tests.csv') for f in files)
    assert any(f.endswith('-qq-hours.png') for f in files)

    text = (output_dir / report_files[0]).read_text(encoding='utf-8')
    assert text == results['report']
    for heading in ['DESCRIPTIVE STATISTICS', 'PRACTICE TESTS VS REAL GRE Q',
                    'PRACTICE TESTS VS REAL GRE V', 'PRACTICE TESTS VS REAL GRE AW',
                    'STUDY EFFECT: HOURS STUDIED', 'STUDY EFFECT: TESTS TAKEN', 'FIGURES']:
        assert heading in text

    clean = results['clean']
    assert (clean[config.TESTS_TAKEN] < 15).all()
    assert set(results['comparisons']) == {'Q', 'V'}
    assert set(results['study']) == {config.HOURS_STUDIED, config.TESTS_TAKEN}
    assert len(results['study'][config.HOURS_STUDIED]['omnibus']) == 2


def test_seeded_runs_are_reproducible(pipeline, survey_csv, tmp_path):
    params = {'data_file': str(survey_csv), 'n_resamples': 300, 'seed': 5}
    first = pipeline.run_pipeline({**params, 'output_base': str(tmp_path / 'a')})
    second = pipeline.run_pipeline({**params, 'output_base': str(tmp_path / 'b')})

    screen_a = first['comparisons']['Q']['screen']
    screen_b = second['comparisons']['Q']['screen']
    assert screen_a['skewness'].equals(screen_b['skewness'])


def test_unreadable_input_aborts_without_output(pipeline, tmp_path):
    base = tmp_path / 'outputs'

    with pytest.raises(data.DataLoadError):
        pipeline.run_pipeline({
            'data_file': str(tmp_path / 'missing.csv'),
            'output_base': str(base),
        })

    assert not base.exists()


def test_alpha_reaches_every_decision(pipeline, survey_csv, tmp_path):
    results = pipeline.run_pipeline({
        'data_file': str(survey_csv),
        'output_base': str(tmp_path / 'outputs'),
        'n_resamples': 300,
        'alpha': 0.01,
    })
    text = results['report']

    assert 'Decision at alpha = 0.01' in text
    assert 'alpha = 0.05' not in text

    wilcoxon = results['aw']['wilcoxon']
    assert not wilcoxon['inconclusive']
    assert wilcoxon['significant'] == (wilcoxon['p_value'] < 0.01)

    for comparison in results['comparisons'].values():
        rejected = comparison['results'][comparison['results']['significant']]
        assert (rejected['p_adjusted'] <= 0.01).all()
    for study in results['study'].values():
        omnibus = study['omnibus'].dropna(subset=['p_value'])
        assert (omnibus['significant'] == (omnibus['p_value'] < 0.01)).all()


def test_report_lists_figures_written_beside_it(pipeline, survey_csv, tmp_path):
    results = pipeline.run_pipeline({
        'data_file': str(survey_csv),
        'output_base': str(tmp_path / 'outputs'),
        'n_resamples': 300,
    })

    for path in results['figures'].values():
        assert path.parent == results['output_dir']
        assert path.exists()
        assert path.name in results['report']


def test_cleaning_cutoffs_come_from_params(pipeline, survey_csv, tmp_path):
    results = pipeline.run_pipeline({
        'data_file': str(survey_csv),
        'output_base': str(tmp_path / 'outputs'),
        'n_resamples': 300,
        'max_tests_taken': 10,
        'max_hours': 100,
    })
    clean = results['clean']
    hours = clean[config.HOURS_STUDIED].dropna()

    assert (clean[config.TESTS_TAKEN] < 10).all()
    assert (hours <= 100).all()
    assert 'tests taken < 10' in results['report']
