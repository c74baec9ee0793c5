"""
Laboratory organ dysfunction criteria.

Relative criteria compare each result with the hospitalization's baseline
(see ``compute_baselines``) and need both the absolute and the relative
threshold:

- AKI: creatinine >= 2x baseline
- Hyperbilirubinemia: total bilirubin >= 2.0 mg/dL and >= 2x baseline
- Thrombocytopenia: platelets < 100 cells/uL, <= 50% of baseline, and a
  baseline of at least 100 cells/uL

Lactate is absolute only (>= 2.0 mmol/L) and is computed separately so it can
be toggled without re-deriving the other criteria.
"""

from __future__ import annotations

from typing import Optional

import duckdb
import pandas as pd

from clifase.schemas import Criterion
from clifase.utils.logging_config import get_logger
from ._baseline import BASELINE_LAB_CATEGORIES, compute_baselines, prepare_labs
from ._utils import (
    ASEConfig,
    empty_dysfunction_frame,
    flag_within_window,
    reduce_to_earliest,
)

logger = get_logger('ase.labs')


def _window_and_reduce(qualifying: pd.DataFrame, presumed_infection: pd.DataFrame,
                       config: ASEConfig) -> pd.DataFrame:
    in_window = flag_within_window(
        qualifying,
        presumed_infection,
        'lab_result_dttm',
        before_days=config.window_before_days,
        after_days=config.window_after_days,
        inclusive=config.inclusive_window,
        anchor_selection=config.anchor_selection,
    )
    return reduce_to_earliest(in_window, 'lab_result_dttm')


def identify_lab_dysfunction(
    labs: pd.DataFrame,
    presumed_infection: pd.DataFrame,
    baselines: Optional[pd.DataFrame] = None,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Earliest AKI, hyperbilirubinemia and thrombocytopenia times near a presumed infection.

    Parameters
    ----------
    labs : pd.DataFrame
        Columns [hospitalization_id, lab_category, lab_value_numeric, lab_result_dttm].
    presumed_infection : pd.DataFrame
        Output of ``identify_presumed_infection``.
    baselines : pd.DataFrame, optional
        Output of ``compute_baselines``; computed from ``labs`` when omitted.
    config : ASEConfig, optional

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, criterion, dysfunction_time, presumed_infection_time],
        up to one row per hospitalization per criterion.
    """
    config = config or ASEConfig()

    prepared = prepare_labs(labs)
    prepared = prepared.loc[prepared['lab_category'].isin(BASELINE_LAB_CATEGORIES)]
    if prepared.empty:
        logger.warning("No creatinine, bilirubin or platelet results found")
        return empty_dysfunction_frame()

    if baselines is None:
        baselines = compute_baselines(prepared)
    if baselines.empty:
        logger.warning("No baselines available; relative lab criteria cannot be evaluated")
        return empty_dysfunction_frame()
    baseline_keys = baselines[['hospitalization_id', 'lab_category', 'baseline_value']].copy()
    baseline_keys['hospitalization_id'] = baseline_keys['hospitalization_id'].astype(str)
    baseline_keys['baseline_value'] = baseline_keys['baseline_value'].astype(float)
    lab_keys = prepared[['_row_offset', 'hospitalization_id', 'lab_category', 'lab_value_numeric']]

    if config.platelet_baseline_min is None:
        platelet_baseline_clause = ''
    else:
        platelet_baseline_clause = f"AND baseline_value >= {float(config.platelet_baseline_min)}"

    # A missing or zero baseline gives a NULL ratio, so the CASE falls through.
    flagged = duckdb.sql(f"""
        WITH ratios AS (
            FROM lab_keys l
            LEFT JOIN baseline_keys b
                ON l.hospitalization_id = b.hospitalization_id
                AND l.lab_category = b.lab_category
            SELECT
                l._row_offset
                , l.lab_category
                , l.lab_value_numeric
                , b.baseline_value
                , l.lab_value_numeric / NULLIF(b.baseline_value, 0) AS ratio
        ),
        flags AS (
            FROM ratios
            SELECT
                _row_offset
                , CASE
                    WHEN lab_category = 'creatinine'
                        AND ratio >= {float(config.aki_ratio)}
                        THEN '{Criterion.AKI.value}'
                    WHEN lab_category = 'bilirubin_total'
                        AND lab_value_numeric >= {float(config.bilirubin_min)}
                        AND ratio >= {float(config.bilirubin_ratio)}
                        THEN '{Criterion.HYPERBILIRUBINEMIA.value}'
                    WHEN lab_category = 'platelet_count'
                        AND lab_value_numeric < {float(config.platelet_max)}
                        AND ratio <= {float(config.platelet_ratio)}
                        {platelet_baseline_clause}
                        THEN '{Criterion.THROMBOCYTOPENIA.value}'
                END AS criterion
        )
        FROM flags
        SELECT _row_offset, criterion
        WHERE criterion IS NOT NULL
    """).df()

    qualifying = prepared.merge(flagged, on='_row_offset', how='inner')
    for criterion in (Criterion.AKI, Criterion.HYPERBILIRUBINEMIA, Criterion.THROMBOCYTOPENIA):
        n = int((qualifying['criterion'] == criterion.value).sum())
        logger.info(f"Lab results meeting {criterion.value} thresholds: {n}")

    if qualifying.empty:
        logger.warning("No lab results met AKI, hyperbilirubinemia or thrombocytopenia thresholds")
        return empty_dysfunction_frame()

    result = _window_and_reduce(qualifying, presumed_infection, config)
    logger.info(f"Lab criteria met: {result.groupby('criterion').size().to_dict()}")
    return result


def identify_lactate_dysfunction(
    labs: pd.DataFrame,
    presumed_infection: pd.DataFrame,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Earliest lactate >= ``config.lactate_min`` near a presumed infection time.

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, criterion, dysfunction_time, presumed_infection_time].
    """
    config = config or ASEConfig()

    prepared = prepare_labs(labs)
    qualifying = prepared.loc[
        (prepared['lab_category'] == 'lactate')
        & (prepared['lab_value_numeric'] >= config.lactate_min)
    ].copy()
    logger.info(f"Lactate results >= {config.lactate_min}: {len(qualifying)}")

    if qualifying.empty:
        logger.warning("No elevated lactate results found")
        return empty_dysfunction_frame()

    qualifying['criterion'] = Criterion.LACTATE.value
    result = _window_and_reduce(qualifying, presumed_infection, config)
    logger.info(f"Lactate criterion met: {len(result)} hospitalizations")
    return result
