"""
Adult Sepsis Event (ASE) adjudication.

Example
-------
>>> from clifase import ClifTables
>>> from clifase.ase import compute_ase, ASEConfig
>>> tables = ClifTables.from_files('/data/clif', 'parquet', 'US/Central')
>>> cases = compute_ase(tables, ASEConfig(include_lactate=False))
"""

from ._utils import ASEConfig, flag_new_episodes, flag_within_window
from ._baseline import compute_baselines
from ._infection import compute_censoring_times, compute_qad, identify_presumed_infection
from ._vasopressor import identify_vasopressor_dysfunction
from ._ventilation import identify_ventilation_dysfunction
from ._labs import identify_lab_dysfunction, identify_lactate_dysfunction
from ._assembler import assemble_sepsis_cases, build_case_records
from ._summary import summarize_lactate_impact
from ._core import compute_ase

__all__ = [
    'ASEConfig',
    'flag_within_window',
    'flag_new_episodes',
    'compute_baselines',
    'compute_censoring_times',
    'compute_qad',
    'identify_presumed_infection',
    'identify_vasopressor_dysfunction',
    'identify_ventilation_dysfunction',
    'identify_lab_dysfunction',
    'identify_lactate_dysfunction',
    'assemble_sepsis_cases',
    'build_case_records',
    'summarize_lactate_impact',
    'compute_ase',
]
