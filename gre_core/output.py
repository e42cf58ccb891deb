"""
Output Naming and Saving Module
===============================

Every run writes into one dated directory, and every file in it carries the
run date and pipeline name so copies taken out of the directory stay
traceable:

    {base}/{DATE}-{name}/{DATE}-{name}-{suffix}.{ext}
    e.g. outputs/2024-02-09-gre-report/2024-02-09-gre-report-q-tests.csv
"""

from datetime import date
from pathlib import Path

import pandas as pd
import matplotlib.pyplot as plt

from . import config


def get_output_dir(name: str, base: str = None) -> Path:
    """
    Create (if needed) and return the dated run directory {base}/{DATE}-{name}/.

    Call only once the input has loaded, so a failed run leaves nothing behind.
    """
    base = Path(base if base is not None else config.DEFAULT_OUTPUT_BASE)
    output_dir = base / f"{date.today().isoformat()}-{name}"
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Output directory: {output_dir}")
    return output_dir


def output_path(output_dir: Path, name: str, suffix: str, ext: str) -> Path:
    """Dated file path inside output_dir, e.g. '2024-02-09-gre-report-pairs.png'."""
    return Path(output_dir) / f"{date.today().isoformat()}-{name}-{suffix}.{ext}"


def save_table(
    df: pd.DataFrame,
    output_dir: Path,
    name: str,
    suffix: str,
    index: bool = False
) -> Path:
    """Write a result table as CSV; missing values are written as NA like the input."""
    filepath = output_path(output_dir, name, suffix, 'csv')
    df.to_csv(filepath, index=index, na_rep=config.MISSING_TOKEN)
    print(f"Saved: {filepath.name}")
    return filepath


def save_figure(
    fig: plt.Figure,
    output_dir: Path,
    name: str,
    suffix: str,
    dpi: int = None
) -> Path:
    """Save a figure as PNG and close it."""
    filepath = output_path(output_dir, name, suffix, 'png')
    fig.savefig(filepath, dpi=dpi or config.DEFAULT_DPI, bbox_inches='tight')
    plt.close(fig)
    print(f"Saved: {filepath.name}")
    return filepath


def print_summary(output_dir: Path) -> None:
    """Print the files of a finished run, grouped by type."""
    files = sorted(p for p in Path(output_dir).iterdir() if p.is_file())
    if not files:
        print(f"\nNo files generated in {output_dir}")
        return

    print(f"\nFiles generated in {output_dir}:")
    for ext in ['txt', 'csv', 'png']:
        group = [p for p in files if p.suffix == f'.{ext}']
        if group:
            print(f"  {ext.upper()} ({len(group)}):")
            for p in group:
                print(f"    - {p.name} ({p.stat().st_size / 1024:.1f} KB)")
