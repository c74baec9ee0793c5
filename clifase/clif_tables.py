"""
ClifTables: the registry of CLIF tables consumed by ASE adjudication.

Tables are plain pandas DataFrames held in one explicit dataclass that is
passed to ``compute_ase``.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import pandas as pd

from .utils.io import load_data
from .utils.logging_config import get_logger
from .utils.validator import validate_ase_inputs

logger = get_logger('clif_tables')

# Categories kept when loading from disk; everything else in these tables is
# irrelevant to adjudication.
ASE_LAB_CATEGORIES = ['creatinine', 'bilirubin_total', 'platelet_count', 'lactate']


@dataclass
class ClifTables:
    """
    The seven CLIF tables ASE adjudication reads.

    Attributes:
        hospitalization (pd.DataFrame): hospitalization_id, patient_id, admission/discharge times, discharge_category
        patient (pd.DataFrame): patient_id, death_dttm
        microbiology_culture (pd.DataFrame): hospitalization_id, fluid_category, collect_dttm
        medication_admin_intermittent (pd.DataFrame): hospitalization_id, admin_dttm, med_group
        medication_admin_continuous (pd.DataFrame): hospitalization_id, admin_dttm, med_category, med_dose
        respiratory_support (pd.DataFrame): hospitalization_id, recorded_dttm, device_category
        labs (pd.DataFrame): hospitalization_id, lab_category, lab_value_numeric, lab_result_dttm
    """
    hospitalization: Optional[pd.DataFrame] = None
    patient: Optional[pd.DataFrame] = None
    microbiology_culture: Optional[pd.DataFrame] = None
    medication_admin_intermittent: Optional[pd.DataFrame] = None
    medication_admin_continuous: Optional[pd.DataFrame] = None
    respiratory_support: Optional[pd.DataFrame] = None
    labs: Optional[pd.DataFrame] = None

    @classmethod
    def table_names(cls):
        return [f.name for f in fields(cls)]

    def as_dict(self) -> Dict[str, Optional[pd.DataFrame]]:
        return {name: getattr(self, name) for name in self.table_names()}

    def validate(self) -> None:
        """Raise ``AseInputError`` for the first missing, empty or malformed table."""
        validate_ase_inputs(self.as_dict())

    @classmethod
    def from_files(
        cls,
        data_directory: str,
        filetype: str,
        timezone: Optional[str] = None,
        sample_size: Optional[int] = None,
        filters: Optional[Dict[str, Dict[str, Any]]] = None,
        ase_config: Any = None,
    ) -> 'ClifTables':
        """
        Load all seven tables from a CLIF data directory.

        Parameters:
            data_directory (str): Directory holding ``clif_<table>.<filetype>`` files
            filetype (str): 'csv' or 'parquet'
            timezone (str, optional): Site timezone for datetime columns
            sample_size (int, optional): Row limit per table
            filters (dict, optional): Per-table filters, merged over the defaults
                that keep blood cultures, qualifying antibiotics, vasopressors
                and the four adjudication labs
            ase_config (ASEConfig, optional): Supplies the category lists for
                the default filters

        Returns:
            ClifTables: loaded tables
        """
        from .ase import ASEConfig

        ase_config = ase_config or ASEConfig()
        table_filters = {
            'microbiology_culture': {'fluid_category': list(ase_config.blood_culture_fluid_categories)},
            'medication_admin_intermittent': {'med_group': list(ase_config.antibiotic_med_groups)},
            'medication_admin_continuous': {'med_category': list(ase_config.vasopressor_categories)},
            'labs': {'lab_category': ASE_LAB_CATEGORIES},
        }
        for table_name, table_filter in (filters or {}).items():
            table_filters.setdefault(table_name, {}).update(table_filter)

        loaded = {}
        for table_name in cls.table_names():
            loaded[table_name] = load_data(
                table_name,
                data_directory,
                filetype,
                sample_size=sample_size,
                filters=table_filters.get(table_name),
                site_tz=timezone,
            )
            logger.info(f"Loaded {table_name}: {len(loaded[table_name]):,} rows")
        return cls(**loaded)
