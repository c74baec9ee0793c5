"""Shared configuration and temporal utilities for ASE adjudication.

This module contains:
- ASEConfig: Configuration dataclass for thresholds, windows and category lists
- flag_within_window: the one windowing rule every organ dysfunction detector uses
- flag_new_episodes: calendar-day change detection for "new" therapy
- reduce_to_earliest: one earliest qualifying time per hospitalization x criterion
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

import duckdb
import numpy as np
import pandas as pd

from clifase.schemas import TERMINAL_DISCHARGE_CATEGORIES

SECONDS_PER_DAY = 86400.0

DYSFUNCTION_COLUMNS = ['hospitalization_id', 'criterion', 'dysfunction_time', 'presumed_infection_time']

VASOPRESSOR_CATEGORIES = (
    'norepinephrine', 'epinephrine', 'phenylephrine', 'vasopressin', 'dopamine', 'angiotensin',
)

ANCHOR_SELECTIONS = ('any', 'first')


@dataclass
class ASEConfig:
    """
    Configuration for Adult Sepsis Event adjudication.

    Defaults follow the CDC ASE surveillance definition.

    Attributes
    ----------
    qad_window_start_day, qad_window_end_day : int
        Inclusive relative-day window around a blood culture for counting
        Qualifying Antimicrobial Days. Default -2 and 6.
    min_qad : int
        QAD needed for presumed infection without censoring. Default 4.
    censoring_horizon_days : float
        A censored stay qualifies with >= 1 QAD if censoring happens before
        culture time + this many days. Default 6.0.
    window_before_days, window_after_days : float
        Organ dysfunction window around a presumed infection time. Default 2.0.
    inclusive_window : bool
        If False (default) both window bounds are strict.
    anchor_selection : str
        'any' (default): an event qualifies near any presumed infection time.
        'first': only the first presumed infection time per hospitalization.
    new_episode_gap_days : int
        A therapy day is a new initiation when the previous day with the same
        therapy is more than this many calendar days earlier. Default 1.
    aki_ratio : float
        Creatinine / baseline ratio for AKI. Default 2.0.
    bilirubin_min, bilirubin_ratio : float
        Absolute (mg/dL) and relative thresholds for hyperbilirubinemia.
    platelet_max, platelet_ratio : float
        Platelets must be below ``platelet_max`` and at most ``platelet_ratio``
        of baseline. Default 100 and 0.5.
    platelet_baseline_min : float or None
        Minimum baseline platelet count for thrombocytopenia. Default 100;
        None drops the requirement.
    lactate_min : float
        Lactate threshold in mmol/L. Default 2.0.
    include_lactate : bool
        Whether lactate counts toward the active criterion set. Default True.
    """

    # Presumed infection
    qad_window_start_day: int = -2
    qad_window_end_day: int = 6
    min_qad: int = 4
    censoring_horizon_days: float = 6.0

    # Dysfunction window around presumed infection
    window_before_days: float = 2.0
    window_after_days: float = 2.0
    inclusive_window: bool = False
    anchor_selection: str = 'any'

    # New therapy detection
    new_episode_gap_days: int = 1

    # Lab thresholds
    aki_ratio: float = 2.0
    bilirubin_min: float = 2.0
    bilirubin_ratio: float = 2.0
    platelet_max: float = 100.0
    platelet_ratio: float = 0.5
    platelet_baseline_min: float | None = 100.0
    lactate_min: float = 2.0
    include_lactate: bool = True

    # Category filters (matched case-insensitively)
    blood_culture_fluid_categories: tuple = ('blood/buffy coat',)
    antibiotic_med_groups: tuple = ('CMS_sepsis_qualifying_antibiotics',)
    vasopressor_categories: tuple = VASOPRESSOR_CATEGORIES
    imv_device_categories: tuple = ('IMV',)
    terminal_discharge_categories: tuple = field(
        default_factory=lambda: tuple(c.value for c in TERMINAL_DISCHARGE_CATEGORIES)
    )

    def __post_init__(self):
        if self.qad_window_start_day > self.qad_window_end_day:
            raise ValueError(
                f"qad_window_start_day ({self.qad_window_start_day}) must not exceed "
                f"qad_window_end_day ({self.qad_window_end_day})"
            )
        if self.min_qad < 1:
            raise ValueError(f"min_qad must be >= 1, got {self.min_qad}")
        if self.window_before_days < 0 or self.window_after_days < 0:
            raise ValueError("window_before_days and window_after_days must be non-negative")
        if self.anchor_selection not in ANCHOR_SELECTIONS:
            raise ValueError(
                f"anchor_selection must be one of {ANCHOR_SELECTIONS}, got '{self.anchor_selection}'"
            )
        if self.new_episode_gap_days < 0:
            raise ValueError("new_episode_gap_days must be non-negative")
        for name in ('blood_culture_fluid_categories', 'antibiotic_med_groups',
                     'vasopressor_categories', 'imv_device_categories',
                     'terminal_discharge_categories'):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            setattr(self, name, tuple(value))

    @classmethod
    def from_dict(cls, overrides: dict[str, Any] | None) -> 'ASEConfig':
        """Build a config from a dict of overrides, e.g. the ``ase`` entry of clif_config.json."""
        overrides = dict(overrides or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown ASE parameters: {unknown}. Known parameters: {sorted(known)}")
        return cls(**overrides)


def _lower_set(values) -> tuple:
    return tuple(sorted({str(v).lower() for v in values}))


def _sql_list(values) -> str:
    """Render values as a SQL IN list of quoted, lowercased literals."""
    return ', '.join("'" + v.replace("'", "''") + "'" for v in _lower_set(values))


def to_epoch_seconds(series: pd.Series) -> pd.Series:
    """Seconds since 1970-01-01 UTC as float; NaT becomes NaN."""
    s = pd.to_datetime(series)
    if isinstance(s.dtype, pd.DatetimeTZDtype):
        s = s.dt.tz_convert('UTC').dt.tz_localize(None)
    return (s - pd.Timestamp('1970-01-01')) / pd.Timedelta(seconds=1)


def to_calendar_day(series: pd.Series) -> pd.Series:
    """Local calendar day (midnight, tz-naive) of each timestamp."""
    s = pd.to_datetime(series)
    if isinstance(s.dtype, pd.DatetimeTZDtype):
        s = s.dt.tz_localize(None)
    return s.dt.normalize()


def prepare_events(df: pd.DataFrame, time_col: str) -> pd.DataFrame:
    """Copy ``df`` with parsed times, string ids and no rows missing id or time."""
    out = df.copy()
    out[time_col] = pd.to_datetime(out[time_col])
    out = out.loc[out['hospitalization_id'].notna() & out[time_col].notna()].copy()
    out['hospitalization_id'] = out['hospitalization_id'].astype(str)
    return out.reset_index(drop=True)


def empty_dysfunction_frame() -> pd.DataFrame:
    return pd.DataFrame({
        'hospitalization_id': pd.Series(dtype='object'),
        'criterion': pd.Series(dtype='object'),
        'dysfunction_time': pd.Series(dtype='datetime64[ns]'),
        'presumed_infection_time': pd.Series(dtype='datetime64[ns]'),
    })


def flag_within_window(
    events: pd.DataFrame,
    anchors: pd.DataFrame,
    time_col: str,
    *,
    before_days: float = 2.0,
    after_days: float = 2.0,
    inclusive: bool = False,
    anchor_selection: str = 'any',
    anchor_col: str = 'presumed_infection_time',
) -> pd.DataFrame:
    """
    Keep events that fall within a window around an anchor of the same hospitalization.

    An event at time t qualifies for anchor a when
    ``a - before_days < t < a + after_days`` (``<=`` when ``inclusive``).
    Each qualifying event is returned once, paired with the earliest anchor
    it qualifies for.

    Parameters
    ----------
    events : pd.DataFrame
        Must contain ``hospitalization_id`` and ``time_col``.
    anchors : pd.DataFrame
        Must contain ``hospitalization_id`` and ``anchor_col``.
    time_col : str
        Event timestamp column.
    before_days, after_days : float
        Window half-widths in days.
    inclusive : bool
        Whether the bounds themselves qualify. Default False (strict).
    anchor_selection : str
        'any' to use every anchor, 'first' to use only the earliest anchor
        of each hospitalization.
    anchor_col : str
        Anchor timestamp column.

    Returns
    -------
    pd.DataFrame
        The qualifying event rows with two added columns: ``anchor_col`` and
        ``days_from_anchor``. Sorted by hospitalization_id, time_col.
    """
    if anchor_selection not in ANCHOR_SELECTIONS:
        raise ValueError(f"anchor_selection must be one of {ANCHOR_SELECTIONS}, got '{anchor_selection}'")

    def _no_matches() -> pd.DataFrame:
        out = events.iloc[0:0].copy()
        out[anchor_col] = pd.Series(dtype='datetime64[ns]')
        out['days_from_anchor'] = pd.Series(dtype='float64')
        return out

    if events.empty or anchors.empty:
        return _no_matches()

    ev = prepare_events(events, time_col)
    ev['_event_row'] = np.arange(len(ev))
    ev['_event_epoch'] = to_epoch_seconds(ev[time_col])

    anc = prepare_events(anchors[['hospitalization_id', anchor_col]], anchor_col)
    anc = anc.drop_duplicates().sort_values(['hospitalization_id', anchor_col], kind='mergesort')
    if anchor_selection == 'first':
        anc = anc.drop_duplicates('hospitalization_id')
    anc = anc.reset_index(drop=True)
    anc['_anchor_row'] = np.arange(len(anc))
    anc['_anchor_epoch'] = to_epoch_seconds(anc[anchor_col])
    if ev.empty or anc.empty:
        return _no_matches()

    lower_op = '>=' if inclusive else '>'
    upper_op = '<=' if inclusive else '<'
    lower = -float(before_days) * SECONDS_PER_DAY
    upper = float(after_days) * SECONDS_PER_DAY

    ev_keys = ev[['_event_row', 'hospitalization_id', '_event_epoch']]
    anc_keys = anc[['_anchor_row', 'hospitalization_id', '_anchor_epoch']]
    matched = duckdb.sql(f"""
        FROM ev_keys e
        JOIN anc_keys a ON e.hospitalization_id = a.hospitalization_id
        SELECT
            e._event_row
            , a._anchor_row
            , (e._event_epoch - a._anchor_epoch) / {SECONDS_PER_DAY} AS days_from_anchor
        WHERE e._event_epoch - a._anchor_epoch {lower_op} {lower}
            AND e._event_epoch - a._anchor_epoch {upper_op} {upper}
        QUALIFY ROW_NUMBER() OVER (
            PARTITION BY e._event_row ORDER BY a._anchor_epoch
        ) = 1
    """).df()

    out = (
        ev.drop(columns=[anchor_col], errors='ignore')
        .merge(matched, on='_event_row', how='inner')
        .merge(anc[['_anchor_row', anchor_col]], on='_anchor_row', how='left')
    )
    out = out.sort_values(['hospitalization_id', time_col, '_event_row'], kind='mergesort')
    return out.drop(columns=['_event_row', '_event_epoch', '_anchor_row']).reset_index(drop=True)


def flag_new_episodes(
    events: pd.DataFrame,
    time_col: str,
    group_cols: list[str],
    gap_days: int = 1,
) -> pd.DataFrame:
    """
    Reduce a therapy stream to its new-episode starts.

    Records are collapsed to the first record of each calendar day per group.
    A day starts a new episode when the group has no earlier day, or its
    previous day is more than ``gap_days`` calendar days before it. So with
    the default gap, therapy on consecutive days is one episode and a day
    without therapy in between starts a second one.

    Returns
    -------
    pd.DataFrame
        One row per episode start (the earliest record of that day), with an
        added ``episode_day`` column.
    """
    if events.empty:
        out = events.iloc[0:0].copy()
        out['episode_day'] = pd.Series(dtype='datetime64[ns]')
        return out

    df = prepare_events(events, time_col)
    df['episode_day'] = to_calendar_day(df[time_col])
    df = df.sort_values(group_cols + [time_col], kind='mergesort')

    first_per_day = df.drop_duplicates(subset=group_cols + ['episode_day'], keep='first')
    prev_day = first_per_day.groupby(group_cols, sort=False)['episode_day'].shift(1)
    gap = (first_per_day['episode_day'] - prev_day).dt.days
    is_new = prev_day.isna() | (gap > gap_days)

    return first_per_day[is_new].reset_index(drop=True)


def reduce_to_earliest(qualifying: pd.DataFrame, time_col: str) -> pd.DataFrame:
    """
    Earliest qualifying time per hospitalization x criterion.

    ``qualifying`` needs ``hospitalization_id``, ``criterion``, ``time_col``
    and ``presumed_infection_time``; the anchor of the earliest event is kept.
    """
    if qualifying.empty:
        return empty_dysfunction_frame()

    ordered = qualifying.sort_values(
        ['hospitalization_id', 'criterion', time_col, 'presumed_infection_time'], kind='mergesort'
    )
    earliest = ordered.drop_duplicates(subset=['hospitalization_id', 'criterion'], keep='first')
    earliest = earliest.rename(columns={time_col: 'dysfunction_time'})
    return earliest[DYSFUNCTION_COLUMNS].reset_index(drop=True)
