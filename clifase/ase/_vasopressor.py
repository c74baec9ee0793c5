"""Vasopressor initiation criterion."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from clifase.schemas import Criterion
from clifase.utils.logging_config import get_logger
from ._utils import (
    ASEConfig,
    _lower_set,
    empty_dysfunction_frame,
    flag_new_episodes,
    flag_within_window,
    reduce_to_earliest,
)

logger = get_logger('ase.vasopressor')


def identify_vasopressor_dysfunction(
    continuous_meds: pd.DataFrame,
    presumed_infection: pd.DataFrame,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Earliest new vasopressor initiation near a presumed infection time.

    An administration counts when its ``med_category`` is a vasopressor and
    ``med_dose`` is positive. It is a new initiation when the same drug was
    not given on the previous calendar day of the same hospitalization. New
    initiations inside the dysfunction window qualify.

    Parameters
    ----------
    continuous_meds : pd.DataFrame
        Columns [hospitalization_id, admin_dttm, med_category, med_dose].
    presumed_infection : pd.DataFrame
        Output of ``identify_presumed_infection``.
    config : ASEConfig, optional

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, criterion, dysfunction_time, presumed_infection_time].
    """
    config = config or ASEConfig()

    meds = continuous_meds[['hospitalization_id', 'admin_dttm', 'med_category', 'med_dose']].copy()
    meds['med_category'] = meds['med_category'].astype('string').str.lower()
    meds['med_dose'] = pd.to_numeric(meds['med_dose'], errors='coerce')
    is_pressor = meds['med_category'].isin(_lower_set(config.vasopressor_categories)).fillna(False).astype(bool)
    meds = meds.loc[is_pressor & (meds['med_dose'] > 0)].copy()
    meds['med_category'] = meds['med_category'].astype(str)
    logger.info(f"Vasopressor administrations with positive dose: {len(meds)}")

    if meds.empty:
        logger.warning("No vasopressor administrations found")
        return empty_dysfunction_frame()

    initiations = flag_new_episodes(
        meds, 'admin_dttm', ['hospitalization_id', 'med_category'],
        gap_days=config.new_episode_gap_days,
    )
    logger.info(f"New vasopressor initiations: {len(initiations)}")

    in_window = flag_within_window(
        initiations,
        presumed_infection,
        'admin_dttm',
        before_days=config.window_before_days,
        after_days=config.window_after_days,
        inclusive=config.inclusive_window,
        anchor_selection=config.anchor_selection,
    )
    in_window['criterion'] = Criterion.VASOPRESSOR.value

    result = reduce_to_earliest(in_window, 'admin_dttm')
    logger.info(f"Vasopressor criterion met: {len(result)} hospitalizations")
    return result
