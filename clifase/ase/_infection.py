"""
Presumed infection detection for Adult Sepsis Event adjudication.

A blood culture time becomes a presumed infection time when it is
corroborated by Qualifying Antimicrobial Days (QAD): calendar-like relative
days, counted from the culture, on which at least one qualifying antibiotic
was administered. Several administrations on the same relative day count once.
"""

from __future__ import annotations

from typing import Optional

import duckdb
import pandas as pd

from clifase.utils.logging_config import get_logger
from ._utils import (
    ASEConfig,
    SECONDS_PER_DAY,
    _lower_set,
    prepare_events,
    to_epoch_seconds,
)

logger = get_logger('ase.infection')

PRESUMED_INFECTION_COLUMNS = [
    'hospitalization_id',
    'presumed_infection_time',
    'total_qad',
    'censoring_time',
    'qualified_by',
]


def compute_censoring_times(
    hospitalization: pd.DataFrame,
    patient: Optional[pd.DataFrame] = None,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Censoring time per hospitalization.

    Follow-up ends at the earlier of discharge and death (nulls ignored). That
    end is a censoring time when the stay ended in a terminal disposition
    (death, hospice, transfer to another acute care hospital) or the patient
    died at or before discharge. Other stays are not censored.

    Parameters
    ----------
    hospitalization : pd.DataFrame
        Columns [hospitalization_id, patient_id, discharge_dttm, discharge_category].
    patient : pd.DataFrame, optional
        Columns [patient_id, death_dttm]. Without it only the discharge
        category can censor a stay.
    config : ASEConfig, optional
        Supplies the terminal discharge categories.

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, censoring_time], one row per hospitalization.
    """
    config = config or ASEConfig()
    terminal = set(_lower_set(config.terminal_discharge_categories))

    hosp = hospitalization.copy()
    hosp = hosp.loc[hosp['hospitalization_id'].notna()].copy()
    hosp['hospitalization_id'] = hosp['hospitalization_id'].astype(str)
    hosp['discharge_dttm'] = pd.to_datetime(hosp['discharge_dttm'])

    if patient is not None and not patient.empty and 'patient_id' in hosp.columns:
        deaths = patient[['patient_id', 'death_dttm']].copy()
        deaths = deaths.loc[deaths['patient_id'].notna()]
        deaths['patient_id'] = deaths['patient_id'].astype(str)
        deaths['death_dttm'] = pd.to_datetime(deaths['death_dttm'])
        deaths = deaths.sort_values('death_dttm', kind='mergesort').drop_duplicates('patient_id')
        hosp['patient_id'] = hosp['patient_id'].astype(str)
        hosp = hosp.merge(deaths, on='patient_id', how='left')
    else:
        hosp['death_dttm'] = pd.NaT

    discharge = hosp['discharge_dttm']
    death = pd.to_datetime(hosp['death_dttm'])
    if death.isna().all():
        death = pd.Series(pd.NaT, index=hosp.index, dtype=discharge.dtype)

    discharge_epoch = to_epoch_seconds(discharge)
    death_epoch = to_epoch_seconds(death)
    died_first = death_epoch.notna() & (discharge_epoch.isna() | (death_epoch < discharge_epoch))
    follow_up_end = discharge.where(~died_first, death)

    category = hosp['discharge_category'].astype('string').str.lower()
    terminal_disposition = category.isin(terminal).fillna(False).astype(bool)
    died_in_stay = death_epoch.notna() & (discharge_epoch.isna() | (death_epoch <= discharge_epoch))

    censored = terminal_disposition | died_in_stay
    result = pd.DataFrame({
        'hospitalization_id': hosp['hospitalization_id'],
        'censoring_time': follow_up_end.where(censored),
    })
    result = result.drop_duplicates('hospitalization_id').reset_index(drop=True)

    logger.info(f"Censored hospitalizations: {int(result['censoring_time'].notna().sum())} of {len(result)}")
    return result


def compute_qad(
    blood_cultures: pd.DataFrame,
    antibiotics: pd.DataFrame,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Count Qualifying Antimicrobial Days per distinct blood culture.

    Relative day of an administration is ``floor((admin - culture) / 24h)``;
    a relative day counts when it lies in the inclusive QAD window.

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, collect_dttm, total_qad], one row per
        distinct (hospitalization_id, collect_dttm). Cultures without
        antibiotics in the window have ``total_qad`` 0.
    """
    config = config or ASEConfig()

    cultures = prepare_events(blood_cultures[['hospitalization_id', 'collect_dttm']], 'collect_dttm')
    cultures = cultures.drop_duplicates().sort_values(
        ['hospitalization_id', 'collect_dttm'], kind='mergesort'
    ).reset_index(drop=True)
    if cultures.empty:
        return pd.DataFrame({
            'hospitalization_id': pd.Series(dtype='object'),
            'collect_dttm': pd.Series(dtype='datetime64[ns]'),
            'total_qad': pd.Series(dtype='int64'),
        })
    cultures['_culture_row'] = range(len(cultures))
    cultures['_culture_epoch'] = to_epoch_seconds(cultures['collect_dttm'])

    abx = prepare_events(antibiotics[['hospitalization_id', 'admin_dttm']], 'admin_dttm')
    abx['_admin_epoch'] = to_epoch_seconds(abx['admin_dttm'])

    culture_keys = cultures[['_culture_row', 'hospitalization_id', '_culture_epoch']]
    abx_keys = abx[['hospitalization_id', '_admin_epoch']]
    if abx_keys.empty:
        qad = pd.DataFrame({'_culture_row': culture_keys['_culture_row'], 'total_qad': 0})
    else:
        qad = duckdb.sql(f"""
            WITH antibiotic_days AS (
                FROM culture_keys c
                JOIN abx_keys a ON c.hospitalization_id = a.hospitalization_id
                SELECT
                    c._culture_row
                    , FLOOR((a._admin_epoch - c._culture_epoch) / {SECONDS_PER_DAY}) AS relative_day
            )
            FROM culture_keys c
            LEFT JOIN antibiotic_days d
                ON c._culture_row = d._culture_row
                AND d.relative_day BETWEEN {int(config.qad_window_start_day)} AND {int(config.qad_window_end_day)}
            SELECT
                c._culture_row
                , COUNT(DISTINCT d.relative_day) AS total_qad
            GROUP BY c._culture_row
        """).df()

    out = cultures.merge(qad, on='_culture_row', how='left')
    out['total_qad'] = out['total_qad'].fillna(0).astype('int64')
    return out[['hospitalization_id', 'collect_dttm', 'total_qad']]


def identify_presumed_infection(
    blood_cultures: pd.DataFrame,
    antibiotics: pd.DataFrame,
    hospitalization: pd.DataFrame,
    patient: Optional[pd.DataFrame] = None,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Identify presumed infection times.

    A blood culture time is a presumed infection time when either

    1. total QAD >= ``config.min_qad`` (default 4), or
    2. total QAD >= 1 and the stay is censored before culture time plus
       ``config.censoring_horizon_days`` (default 6).

    Parameters
    ----------
    blood_cultures : pd.DataFrame
        Columns [hospitalization_id, collect_dttm], already limited to blood cultures.
    antibiotics : pd.DataFrame
        Columns [hospitalization_id, admin_dttm], already limited to qualifying antibiotics.
    hospitalization : pd.DataFrame
        Columns [hospitalization_id, patient_id, discharge_dttm, discharge_category].
    patient : pd.DataFrame, optional
        Columns [patient_id, death_dttm].
    config : ASEConfig, optional

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, presumed_infection_time, total_qad,
        censoring_time, qualified_by], one row per qualifying culture time,
        sorted by hospitalization_id and presumed_infection_time.
    """
    config = config or ASEConfig()

    qad = compute_qad(blood_cultures, antibiotics, config)
    logger.info(f"Distinct blood cultures: {len(qad)}")
    if qad.empty:
        logger.warning("No blood cultures found; no presumed infection possible")
        return pd.DataFrame({
            'hospitalization_id': pd.Series(dtype='object'),
            'presumed_infection_time': pd.Series(dtype='datetime64[ns]'),
            'total_qad': pd.Series(dtype='int64'),
            'censoring_time': pd.Series(dtype='datetime64[ns]'),
            'qualified_by': pd.Series(dtype='object'),
        })

    censoring = compute_censoring_times(hospitalization, patient, config)
    merged = qad.merge(censoring, on='hospitalization_id', how='left')

    horizon = config.censoring_horizon_days * SECONDS_PER_DAY
    censor_delta = to_epoch_seconds(merged['censoring_time']) - to_epoch_seconds(merged['collect_dttm'])
    by_qad = merged['total_qad'] >= config.min_qad
    by_censoring = (
        ~by_qad
        & (merged['total_qad'] >= 1)
        & censor_delta.notna()
        & (censor_delta < horizon)
    )

    merged['qualified_by'] = None
    merged.loc[by_qad, 'qualified_by'] = 'qad'
    merged.loc[by_censoring, 'qualified_by'] = 'censoring'

    presumed = (
        merged.loc[by_qad | by_censoring]
        .rename(columns={'collect_dttm': 'presumed_infection_time'})
        [PRESUMED_INFECTION_COLUMNS]
        .sort_values(['hospitalization_id', 'presumed_infection_time'], kind='mergesort')
        .reset_index(drop=True)
    )

    logger.info(
        f"Presumed infection times: {len(presumed)} "
        f"({int(by_qad.sum())} by QAD, {int(by_censoring.sum())} by censoring) "
        f"across {presumed['hospitalization_id'].nunique()} hospitalizations"
    )
    if presumed.empty:
        logger.warning("No presumed infection identified")
    return presumed
