"""Baseline lab values for relative-change organ dysfunction criteria.

The baseline of a lab type is the chronologically first non-null result of
that type during the hospitalization. Results sharing the earliest timestamp
are resolved by input row order, so the choice is deterministic.
"""

from __future__ import annotations

import duckdb
import numpy as np
import pandas as pd

from clifase.utils.logging_config import get_logger
from ._utils import _sql_list, to_epoch_seconds

logger = get_logger('ase.baseline')

BASELINE_LAB_CATEGORIES = ('creatinine', 'bilirubin_total', 'platelet_count')

BASELINE_COLUMNS = ['hospitalization_id', 'lab_category', 'baseline_value', 'baseline_dttm']


def prepare_labs(labs: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a labs frame for adjudication.

    Lowercases ``lab_category``, parses ``lab_result_dttm``, coerces
    ``lab_value_numeric`` to float, drops rows missing any of them, and adds
    ``_row_offset`` (position in the input) for deterministic tie-breaks.
    """
    df = labs.copy()
    df['_row_offset'] = np.arange(len(df))
    df['lab_category'] = df['lab_category'].astype('string').str.lower()
    df['lab_value_numeric'] = pd.to_numeric(df['lab_value_numeric'], errors='coerce').astype(float)
    df['lab_result_dttm'] = pd.to_datetime(df['lab_result_dttm'])
    keep = (
        df['hospitalization_id'].notna()
        & df['lab_category'].notna()
        & df['lab_value_numeric'].notna()
        & df['lab_result_dttm'].notna()
    )
    df = df.loc[keep].copy()
    df['hospitalization_id'] = df['hospitalization_id'].astype(str)
    df['lab_category'] = df['lab_category'].astype(str)
    return df.reset_index(drop=True)


def compute_baselines(
    labs: pd.DataFrame,
    lab_categories: tuple = BASELINE_LAB_CATEGORIES,
) -> pd.DataFrame:
    """
    Compute the baseline value per hospitalization and lab category.

    Parameters
    ----------
    labs : pd.DataFrame
        Columns [hospitalization_id, lab_category, lab_value_numeric, lab_result_dttm].
    lab_categories : tuple of str
        Lab categories to compute baselines for.

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, lab_category, baseline_value, baseline_dttm],
        one row per hospitalization and lab category that has at least one
        result. Hospitalizations without a result of a category get no row.
    """
    if '_row_offset' not in labs.columns:
        labs = prepare_labs(labs)

    if labs.empty:
        logger.warning("No lab results available for baseline computation")
        return pd.DataFrame({
            'hospitalization_id': pd.Series(dtype='object'),
            'lab_category': pd.Series(dtype='object'),
            'baseline_value': pd.Series(dtype='float64'),
            'baseline_dttm': pd.Series(dtype='datetime64[ns]'),
        })

    lab_keys = labs[['_row_offset', 'hospitalization_id', 'lab_category', 'lab_result_dttm']].copy()
    lab_keys['_result_epoch'] = to_epoch_seconds(lab_keys['lab_result_dttm'])
    lab_keys = lab_keys.drop(columns=['lab_result_dttm'])

    first_rows = duckdb.sql(f"""
        FROM lab_keys
        SELECT _row_offset
        WHERE lab_category IN ({_sql_list(lab_categories)})
        QUALIFY ROW_NUMBER() OVER (
            PARTITION BY hospitalization_id, lab_category
            ORDER BY _result_epoch, _row_offset
        ) = 1
    """).df()

    baselines = (
        labs.loc[labs['_row_offset'].isin(first_rows['_row_offset'])]
        .rename(columns={'lab_value_numeric': 'baseline_value', 'lab_result_dttm': 'baseline_dttm'})
        [BASELINE_COLUMNS]
        .sort_values(['hospitalization_id', 'lab_category'], kind='mergesort')
        .reset_index(drop=True)
    )

    for category in lab_categories:
        n = int((baselines['lab_category'] == category).sum())
        logger.info(f"Baseline {category}: {n} hospitalizations")

    return baselines
