"""Invasive mechanical ventilation initiation criterion."""

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

logger = get_logger('ase.ventilation')


def identify_ventilation_dysfunction(
    respiratory_support: pd.DataFrame,
    presumed_infection: pd.DataFrame,
    config: Optional[ASEConfig] = None,
) -> pd.DataFrame:
    """
    Earliest new IMV episode near a presumed infection time.

    IMV records are those whose ``device_category`` is an IMV category
    (case-insensitive). A record starts a new episode when the previous IMV
    record of the hospitalization is more than one calendar day earlier.

    Parameters
    ----------
    respiratory_support : pd.DataFrame
        Columns [hospitalization_id, recorded_dttm, device_category].
    presumed_infection : pd.DataFrame
        Output of ``identify_presumed_infection``.
    config : ASEConfig, optional

    Returns
    -------
    pd.DataFrame
        Columns [hospitalization_id, criterion, dysfunction_time, presumed_infection_time].
    """
    config = config or ASEConfig()

    resp = respiratory_support[['hospitalization_id', 'recorded_dttm', 'device_category']].copy()
    device = resp['device_category'].astype('string').str.lower()
    imv = resp.loc[device.isin(_lower_set(config.imv_device_categories)).fillna(False).astype(bool)]
    logger.info(f"IMV records: {len(imv)}")

    if imv.empty:
        logger.warning("No invasive mechanical ventilation records found")
        return empty_dysfunction_frame()

    episodes = flag_new_episodes(
        imv, 'recorded_dttm', ['hospitalization_id'], gap_days=config.new_episode_gap_days
    )
    logger.info(f"New IMV episodes: {len(episodes)}")

    in_window = flag_within_window(
        episodes,
        presumed_infection,
        'recorded_dttm',
        before_days=config.window_before_days,
        after_days=config.window_after_days,
        inclusive=config.inclusive_window,
        anchor_selection=config.anchor_selection,
    )
    in_window['criterion'] = Criterion.INVASIVE_MECHANICAL_VENTILATION.value

    result = reduce_to_earliest(in_window, 'recorded_dttm')
    logger.info(f"IMV criterion met: {len(result)} hospitalizations")
    return result
