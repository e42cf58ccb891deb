"""
Global Configuration for GRE Practice-Test Analysis
====================================================

Central location for default parameters used across all analysis scripts.
Override these in individual scripts through their params dict.
"""

# =============================================================================
# DATA CONFIGURATION
# =============================================================================
DEFAULT_DATA_FILE = 'Data/gre_scores.csv'
MISSING_TOKEN = 'NA'

# Real GRE section scores
GRE_V = 'GRE V'
GRE_Q = 'GRE Q'
GRE_AW = 'GRE AW'
TESTS_TAKEN = 'Tests Taken'
HOURS_STUDIED = 'Hours Studied'

SECTIONS = ['V', 'Q', 'AW']
SECTION_TARGETS = {
    'V': GRE_V,
    'Q': GRE_Q,
    'AW': GRE_AW,
}

# Nine practice tests report V and Q. The five ETS tests and Kaplan also
# report an AW sub-score.
ETS_PRACTICE_TESTS = [
    'PowerPrep 1',
    'PowerPrep 2',
    'PowerPrep Plus 1',
    'PowerPrep Plus 2',
    'PowerPrep Plus 3',
]
OTHER_PRACTICE_TESTS = [
    'Kaplan',
    'Magoosh',
    'Manhattan',
    'Princeton Review',
]
PRACTICE_TESTS = ETS_PRACTICE_TESTS + OTHER_PRACTICE_TESTS
AW_PRACTICE_TESTS = ETS_PRACTICE_TESTS + ['Kaplan']


def _build_column_labels() -> list[str]:
    labels = [GRE_V, GRE_Q, GRE_AW, TESTS_TAKEN, HOURS_STUDIED]
    for test in PRACTICE_TESTS:
        labels.extend([f'{test} V', f'{test} Q'])
        if test in AW_PRACTICE_TESTS:
            labels.append(f'{test} AW')
    return labels


# Fixed, ordered semantic labels for the 29 input columns
COLUMN_LABELS = _build_column_labels()
N_COLUMNS = len(COLUMN_LABELS)

# =============================================================================
# CLEANING CONFIGURATION
# =============================================================================
# Cutoffs read off the box plots of the raw survey
MAX_TESTS_TAKEN = 15      # exclusive
MIN_HOURS_STUDIED = 0     # exclusive
MAX_HOURS_STUDIED = 200   # inclusive

IQR_WHISKER = 1.5

# =============================================================================
# DESCRIPTIVE CONFIGURATION
# =============================================================================
PERCENTILES = [0.0, 0.2, 0.4, 0.6, 0.8, 1.0]

# =============================================================================
# COMPARATIVE CONFIGURATION
# =============================================================================
BOOTSTRAP_RESAMPLES = 10_000
BOOTSTRAP_SAMPLE_FRAC = 0.6
RANDOM_SEED = 42

# Normality screen on the bootstrap distribution of the mean
MIN_TEST_OBSERVATIONS = 5
BOOTSTRAP_MAX_ABS_SKEW = 0.5
BOOTSTRAP_MAX_ABS_KURTOSIS = 1.0

# Practice-test columns dropped by hand regardless of the screen,
# e.g. ['Kaplan Q', 'Manhattan 2 V']
EXCLUDED_PRACTICE_TESTS = []

# statsmodels multipletests method: 'simes-hochberg' (Hochberg) or 'fdr_bh'
P_ADJUST_METHOD = 'simes-hochberg'
ALPHA = 0.05

# Minimum sample sizes before a test is reported as inconclusive
MIN_PAIRED_N = 3
MIN_GROUP_N = 2

# =============================================================================
# STUDY-EFFECT CONFIGURATION
# =============================================================================
N_HOURS_BUCKETS = 3
N_TESTS_BUCKETS = 3
BUCKET_COL = 'BUCKET'

# =============================================================================
# OUTPUT CONFIGURATION
# =============================================================================
DEFAULT_OUTPUT_BASE = 'outputs'
DEFAULT_DPI = 150
SIG_DIGITS = 3

DECISION_REJECT = 'Reject'
DECISION_KEEP = 'Do Not Reject'
DECISION_INCONCLUSIVE = 'Inconclusive'


def section_columns(section: str) -> list[str]:
    """Return the practice-test columns that report the given section."""
    tests = AW_PRACTICE_TESTS if section == 'AW' else PRACTICE_TESTS
    return [f'{test} {section}' for test in tests]


def practice_columns() -> list[str]:
    """Return every practice-test column in input order."""
    return [col for col in COLUMN_LABELS
            if col not in (GRE_V, GRE_Q, GRE_AW, TESTS_TAKEN, HOURS_STUDIED)]


def get_decision_label(significant: bool) -> str:
    """Return human-readable hypothesis decision."""
    return DECISION_REJECT if significant else DECISION_KEEP
