"""
Sepsis case assembly.

Combines presumed infection times with the organ dysfunction detector outputs
into one ``SepsisCase`` per hospitalization and renders the wide summary.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import pandas as pd

from clifase.schemas import CRITERIA_COLUMN_ORDER, Criterion, SepsisCase, criterion_time_field
from clifase.utils.logging_config import get_logger
from ._utils import DYSFUNCTION_COLUMNS

logger = get_logger('ase.assembler')

HOSPITALIZATION_COLUMNS = [
    'hospitalization_id', 'patient_id', 'admission_dttm', 'discharge_dttm', 'discharge_category',
]

CASE_TIME_COLUMNS = (
    ['presumed_infection_time']
    + [criterion_time_field(c) for c in CRITERIA_COLUMN_ORDER]
    + ['first_sepsis_time', 'first_sepsis_time_no_lactate']
)

CASE_COLUMNS = (
    HOSPITALIZATION_COLUMNS
    + ['presumed_infection_time']
    + [criterion_time_field(c) for c in CRITERIA_COLUMN_ORDER]
    + [
        'first_sepsis_time',
        'first_criterion',
        'first_sepsis_time_no_lactate',
        'first_criterion_no_lactate',
        'sepsis',
        'sepsis_no_lactate',
    ]
)


def _to_python(value):
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).to_pydatetime()


def combine_dysfunction_events(dysfunction_events: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Concatenate detector outputs into one long frame, sorted."""
    frames = [df[DYSFUNCTION_COLUMNS] for df in dysfunction_events if df is not None and not df.empty]
    if not frames:
        return pd.DataFrame({col: pd.Series(dtype='object') for col in DYSFUNCTION_COLUMNS})
    combined = pd.concat(frames, ignore_index=True)
    combined['hospitalization_id'] = combined['hospitalization_id'].astype(str)
    return combined.sort_values(
        ['hospitalization_id', 'dysfunction_time', 'criterion'], kind='mergesort'
    ).reset_index(drop=True)


def build_case_records(
    presumed_infection: pd.DataFrame,
    dysfunction: pd.DataFrame,
) -> Dict[str, SepsisCase]:
    """
    One ``SepsisCase`` per hospitalization with presumed infection.

    Dysfunction events of hospitalizations without presumed infection are
    dropped; repeated events of one criterion keep the earliest time.
    """
    records: Dict[str, SepsisCase] = {}
    if presumed_infection.empty:
        return records

    earliest_anchor = (
        presumed_infection.assign(hospitalization_id=presumed_infection['hospitalization_id'].astype(str))
        .sort_values(['hospitalization_id', 'presumed_infection_time'], kind='mergesort')
        .drop_duplicates('hospitalization_id')
    )
    for row in earliest_anchor.itertuples(index=False):
        records[row.hospitalization_id] = SepsisCase(
            hospitalization_id=row.hospitalization_id,
            presumed_infection_time=_to_python(row.presumed_infection_time),
        )

    for row in dysfunction.itertuples(index=False):
        case = records.get(str(row.hospitalization_id))
        if case is None:
            continue
        field_name = criterion_time_field(Criterion(row.criterion))
        time = _to_python(row.dysfunction_time)
        current = getattr(case, field_name)
        if time is not None and (current is None or time < current):
            setattr(case, field_name, time)

    return records


def cases_to_frame(
    cases: Dict[str, SepsisCase],
    hospitalization: Optional[pd.DataFrame] = None,
    include_lactate: bool = True,
) -> pd.DataFrame:
    """
    Render sepsis cases as the wide per-hospitalization frame.

    Only hospitalizations that are sepsis cases under the active criterion set
    are emitted. Hospitalization attributes are attached when
    ``hospitalization`` is given.
    """
    rows = []
    for hospitalization_id in sorted(cases):
        case = cases[hospitalization_id]
        if not case.is_sepsis(include_lactate):
            continue
        first, first_time = case.first_criterion(include_lactate=True)
        first_nl, first_time_nl = case.first_criterion(include_lactate=False)
        row = case.model_dump()
        row.update({
            'first_sepsis_time': first_time,
            'first_criterion': first.value if first is not None else None,
            'first_sepsis_time_no_lactate': first_time_nl,
            'first_criterion_no_lactate': first_nl.value if first_nl is not None else None,
            'sepsis': case.is_sepsis(include_lactate=True),
            'sepsis_no_lactate': case.is_sepsis(include_lactate=False),
        })
        rows.append(row)

    wide = pd.DataFrame(rows, columns=[c for c in CASE_COLUMNS if c not in HOSPITALIZATION_COLUMNS[1:]])
    wide['hospitalization_id'] = wide['hospitalization_id'].astype(str)

    if hospitalization is not None:
        hosp_cols = [c for c in HOSPITALIZATION_COLUMNS if c in hospitalization.columns]
        hosp = hospitalization[hosp_cols].drop_duplicates('hospitalization_id').copy()
        hosp['hospitalization_id'] = hosp['hospitalization_id'].astype(str)
        wide = wide.merge(hosp, on='hospitalization_id', how='left')
    for col in HOSPITALIZATION_COLUMNS[1:]:
        if col not in wide.columns:
            wide[col] = None

    for col in CASE_TIME_COLUMNS:
        wide[col] = pd.to_datetime(wide[col])
    for col in ('admission_dttm', 'discharge_dttm'):
        wide[col] = pd.to_datetime(wide[col])
    wide['sepsis'] = wide['sepsis'].astype(bool)
    wide['sepsis_no_lactate'] = wide['sepsis_no_lactate'].astype(bool)

    return wide[CASE_COLUMNS].sort_values('hospitalization_id', kind='mergesort').reset_index(drop=True)


def assemble_sepsis_cases(
    presumed_infection: pd.DataFrame,
    dysfunction_events: Iterable[pd.DataFrame],
    hospitalization: Optional[pd.DataFrame] = None,
    include_lactate: bool = True,
) -> pd.DataFrame:
    """
    Assemble the wide Adult Sepsis Event summary.

    Parameters
    ----------
    presumed_infection : pd.DataFrame
        Output of ``identify_presumed_infection``.
    dysfunction_events : iterable of pd.DataFrame
        Detector outputs in the long schema
        [hospitalization_id, criterion, dysfunction_time, presumed_infection_time].
    hospitalization : pd.DataFrame, optional
        Attaches patient_id, admission/discharge times and discharge category.
    include_lactate : bool
        Whether lactate belongs to the active criterion set that decides
        which hospitalizations are emitted.

    Returns
    -------
    pd.DataFrame
        One row per sepsis hospitalization, sorted by hospitalization_id.
        ``first_criterion`` ties at the same timestamp are broken by the
        fixed priority thrombocytopenia, aki, invasive_mechanical_ventilation,
        lactate, vasopressor, hyperbilirubinemia.
    """
    dysfunction = combine_dysfunction_events(dysfunction_events)
    cases = build_case_records(presumed_infection, dysfunction)
    wide = cases_to_frame(cases, hospitalization, include_lactate=include_lactate)

    logger.info(
        f"Sepsis cases: {int(wide['sepsis'].sum())} with lactate, "
        f"{int(wide['sepsis_no_lactate'].sum())} without lactate "
        f"(emitted {len(wide)} of {len(cases)} hospitalizations with presumed infection)"
    )
    if wide.empty:
        logger.warning("No sepsis cases identified")
    return wide
