"""Lactate impact summary over the wide sepsis case frame."""

from __future__ import annotations

import pandas as pd

from clifase.schemas import CRITERIA_PRIORITY, Criterion
from clifase.utils.logging_config import get_logger

logger = get_logger('ase.summary')


def summarize_lactate_impact(cases: pd.DataFrame) -> pd.DataFrame:
    """
    Compare case identification with and without lactate as a criterion.

    Parameters
    ----------
    cases : pd.DataFrame
        Output of ``compute_ase`` / ``assemble_sepsis_cases`` run with
        lactate included, so every lactate-only case is present.

    Returns
    -------
    pd.DataFrame
        Columns [metric, with_lactate, without_lactate]. Rows:
        ``hospitalizations`` (cases), ``lactate_only`` (cases that exist only
        because of lactate), then ``first_criterion:<name>`` for each criterion.
    """
    required = {'sepsis', 'sepsis_no_lactate', 'first_criterion', 'first_criterion_no_lactate'}
    missing = required - set(cases.columns)
    if missing:
        raise ValueError(f"cases is missing columns: {sorted(missing)}")

    with_lactate = cases['sepsis'].astype(bool)
    without_lactate = cases['sepsis_no_lactate'].astype(bool)
    lactate_only = with_lactate & ~without_lactate

    rows = [
        {'metric': 'hospitalizations',
         'with_lactate': int(with_lactate.sum()),
         'without_lactate': int(without_lactate.sum())},
        {'metric': 'lactate_only',
         'with_lactate': int(lactate_only.sum()),
         'without_lactate': 0},
    ]
    for criterion in CRITERIA_PRIORITY:
        rows.append({
            'metric': f"first_criterion:{criterion.value}",
            'with_lactate': int((cases.loc[with_lactate, 'first_criterion'] == criterion.value).sum()),
            'without_lactate': (
                0 if criterion is Criterion.LACTATE
                else int((cases.loc[without_lactate, 'first_criterion_no_lactate'] == criterion.value).sum())
            ),
        })

    summary = pd.DataFrame(rows, columns=['metric', 'with_lactate', 'without_lactate'])
    logger.info(
        f"Lactate impact: {int(with_lactate.sum())} cases with lactate, "
        f"{int(without_lactate.sum())} without, {int(lactate_only.sum())} lactate-only"
    )
    return summary
