"""
Configuration file for pytest.
This file contains fixtures shared by the ASE test modules.
"""
import pytest
import os
import sys
from datetime import datetime, timedelta

import pandas as pd

# Add the project root to the path so that imports work correctly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def base_time():
    """Blood culture time used across the synthetic cohorts."""
    return BASE_TIME


def make_antibiotics(hospitalization_id, times):
    return pd.DataFrame({
        'hospitalization_id': [hospitalization_id] * len(times),
        'admin_dttm': times,
        'med_group': ['CMS_sepsis_qualifying_antibiotics'] * len(times),
    })


@pytest.fixture
def ase_tables(base_time):
    """
    Minimal complete CLIF cohort.

    H1 has a blood culture at base_time, antibiotics on days 0-3 and
    norepinephrine started at base_time + 1 day. It is a sepsis case by the
    vasopressor criterion only. H2 has a blood culture but no antibiotics.
    """
    from clifase import ClifTables

    hospitalization = pd.DataFrame({
        'hospitalization_id': ['H1', 'H2'],
        'patient_id': ['P1', 'P2'],
        'admission_dttm': [base_time - timedelta(days=1)] * 2,
        'discharge_dttm': [base_time + timedelta(days=10)] * 2,
        'discharge_category': ['Home', 'Home'],
    })
    patient = pd.DataFrame({
        'patient_id': ['P1', 'P2'],
        'death_dttm': [pd.NaT, pd.NaT],
    })
    microbiology_culture = pd.DataFrame({
        'hospitalization_id': ['H1', 'H2'],
        'fluid_category': ['blood/buffy coat'] * 2,
        'collect_dttm': [base_time, base_time],
    })
    medication_admin_intermittent = make_antibiotics(
        'H1', [base_time + timedelta(days=d, hours=2) for d in range(4)]
    )
    medication_admin_continuous = pd.DataFrame({
        'hospitalization_id': ['H1'],
        'admin_dttm': [base_time + timedelta(days=1)],
        'med_category': ['norepinephrine'],
        'med_dose': [0.05],
    })
    respiratory_support = pd.DataFrame({
        'hospitalization_id': ['H1'],
        'recorded_dttm': [base_time],
        'device_category': ['Nasal Cannula'],
    })
    labs = pd.DataFrame({
        'hospitalization_id': ['H1', 'H1'],
        'lab_category': ['creatinine', 'creatinine'],
        'lab_value_numeric': [1.0, 1.2],
        'lab_result_dttm': [base_time - timedelta(hours=6), base_time + timedelta(hours=6)],
    })
    return ClifTables(
        hospitalization=hospitalization,
        patient=patient,
        microbiology_culture=microbiology_culture,
        medication_admin_intermittent=medication_admin_intermittent,
        medication_admin_continuous=medication_admin_continuous,
        respiratory_support=respiratory_support,
        labs=labs,
    )
