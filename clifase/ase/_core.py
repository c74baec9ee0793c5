"""
Adult Sepsis Event (ASE) adjudication entry point.

ASE requires BOTH:
A. Presumed infection (blood culture + qualifying antimicrobial days)
AND
B. Organ dysfunction within (-2, +2) days of the presumed infection time
   (new vasopressor, new invasive mechanical ventilation, AKI,
   hyperbilirubinemia, thrombocytopenia, or elevated lactate)

Reference: https://www.cdc.gov/sepsis/pdfs/sepsis-surveillance-toolkit-mar-2018_508.pdf
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Union

import pandas as pd

from clifase.clif_tables import ClifTables
from clifase.utils.logging_config import get_logger
from ._assembler import assemble_sepsis_cases, combine_dysfunction_events
from ._baseline import compute_baselines
from ._infection import compute_censoring_times, identify_presumed_infection
from ._labs import identify_lab_dysfunction, identify_lactate_dysfunction
from ._utils import ASEConfig, _lower_set
from ._vasopressor import identify_vasopressor_dysfunction
from ._ventilation import identify_ventilation_dysfunction

logger = get_logger('ase.core')


def _filter_category(df: pd.DataFrame, column: str, categories) -> pd.DataFrame:
    values = df[column].astype('string').str.lower()
    return df.loc[values.isin(_lower_set(categories)).fillna(False).astype(bool)].copy()


def compute_ase(
    tables: ClifTables,
    config: Optional[ASEConfig] = None,
    dev: bool = False,
) -> Union[pd.DataFrame, Tuple[pd.DataFrame, Dict[str, pd.DataFrame]]]:
    """
    Adjudicate Adult Sepsis Events for every hospitalization in ``tables``.

    Parameters
    ----------
    tables : ClifTables
        All seven input tables, each non-empty and carrying its required columns.
    config : ASEConfig, optional
        Thresholds, windows and category lists. Default CDC values.
    dev : bool
        If True, also return the intermediate frames.

    Returns
    -------
    pd.DataFrame or (pd.DataFrame, dict)
        The wide case frame: one row per hospitalization that is a sepsis case
        under the active criterion set (``config.include_lactate``), with the
        earliest time of every criterion, first criterion and time with and
        without lactate, and both sepsis flags.

        With ``dev=True`` also a dict with keys 'blood_cultures',
        'antibiotics', 'censoring', 'presumed_infection', 'baselines',
        'dysfunction_events' and one per detector.

    Raises
    ------
    AseInputError
        If any input table is missing, empty or malformed. Nothing is
        computed in that case.
    """
    config = config or ASEConfig()
    tables.validate()

    logger.info("=" * 60)
    logger.info("Adult Sepsis Event adjudication")
    logger.info("=" * 60)

    # Step 1: presumed infection
    logger.info("Step 1: presumed infection")
    blood_cultures = _filter_category(
        tables.microbiology_culture, 'fluid_category', config.blood_culture_fluid_categories
    )
    antibiotics = _filter_category(
        tables.medication_admin_intermittent, 'med_group', config.antibiotic_med_groups
    )
    logger.info(f"Blood cultures: {len(blood_cultures)}, qualifying antibiotic doses: {len(antibiotics)}")
    presumed_infection = identify_presumed_infection(
        blood_cultures, antibiotics, tables.hospitalization, tables.patient, config
    )

    # Step 2: organ dysfunction
    logger.info("Step 2: organ dysfunction")
    baselines = compute_baselines(tables.labs)
    vasopressor = identify_vasopressor_dysfunction(
        tables.medication_admin_continuous, presumed_infection, config
    )
    ventilation = identify_ventilation_dysfunction(
        tables.respiratory_support, presumed_infection, config
    )
    lab = identify_lab_dysfunction(tables.labs, presumed_infection, baselines, config)
    lactate = identify_lactate_dysfunction(tables.labs, presumed_infection, config)

    # Step 3: assemble
    logger.info("Step 3: assemble sepsis cases")
    detector_outputs = [vasopressor, ventilation, lab, lactate]
    cases = assemble_sepsis_cases(
        presumed_infection,
        detector_outputs,
        hospitalization=tables.hospitalization,
        include_lactate=config.include_lactate,
    )

    if dev:
        intermediates = {
            'blood_cultures': blood_cultures,
            'antibiotics': antibiotics,
            'censoring': compute_censoring_times(tables.hospitalization, tables.patient, config),
            'presumed_infection': presumed_infection,
            'baselines': baselines,
            'vasopressor': vasopressor,
            'ventilation': ventilation,
            'lab': lab,
            'lactate': lactate,
            'dysfunction_events': combine_dysfunction_events(detector_outputs),
        }
        return cases, intermediates
    return cases
