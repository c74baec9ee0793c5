"""
Tests for baseline computation and the lab-based organ dysfunction criteria:
AKI, hyperbilirubinemia, thrombocytopenia and lactate.
"""

import pytest
import pandas as pd
from datetime import datetime, timedelta

from clifase.ase import (
    ASEConfig,
    compute_baselines,
    identify_lab_dysfunction,
    identify_lactate_dysfunction,
)


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_labs(hospitalization_id, category, values):
    """Results every 6 hours starting 12 hours before BASE_TIME."""
    return pd.DataFrame({
        'hospitalization_id': [hospitalization_id] * len(values),
        'lab_category': [category] * len(values),
        'lab_value_numeric': values,
        'lab_result_dttm': [BASE_TIME - timedelta(hours=12) + timedelta(hours=6 * i)
                            for i in range(len(values))],
    })


@pytest.fixture
def presumed_infection():
    return pd.DataFrame({
        'hospitalization_id': ['H1', 'H2'],
        'presumed_infection_time': [BASE_TIME, BASE_TIME],
    })


class TestComputeBaselines:
    """First non-null result per hospitalization and lab category."""

    def test_first_result_is_baseline(self):
        labs = make_labs('H1', 'creatinine', [1.0, 2.5, 0.8])

        result = compute_baselines(labs)

        assert len(result) == 1
        assert result['baseline_value'].iloc[0] == 1.0
        assert result['baseline_dttm'].iloc[0] == BASE_TIME - timedelta(hours=12)

    def test_null_values_skipped(self):
        labs = make_labs('H1', 'creatinine', [None, 1.4])

        result = compute_baselines(labs)

        assert result['baseline_value'].iloc[0] == 1.4

    def test_tie_on_earliest_time_uses_input_order(self):
        labs = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'lab_category': ['platelet_count', 'platelet_count'],
            'lab_value_numeric': [210.0, 180.0],
            'lab_result_dttm': [BASE_TIME, BASE_TIME],
        })

        result = compute_baselines(labs)

        assert result['baseline_value'].iloc[0] == 210.0

    def test_unsorted_input(self):
        labs = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'lab_category': ['bilirubin_total', 'bilirubin_total'],
            'lab_value_numeric': [3.0, 0.7],
            'lab_result_dttm': [BASE_TIME, BASE_TIME - timedelta(days=1)],
        })

        result = compute_baselines(labs)

        assert result['baseline_value'].iloc[0] == 0.7

    def test_one_row_per_category(self):
        labs = pd.concat([
            make_labs('H1', 'creatinine', [1.0, 1.1]),
            make_labs('H1', 'platelet_count', [200.0]),
            make_labs('H2', 'creatinine', [0.9]),
            make_labs('H2', 'lactate', [3.0]),
        ], ignore_index=True)

        result = compute_baselines(labs)

        assert list(zip(result['hospitalization_id'], result['lab_category'])) == [
            ('H1', 'creatinine'), ('H1', 'platelet_count'), ('H2', 'creatinine')
        ]

    def test_category_case_insensitive(self):
        labs = make_labs('H1', 'Creatinine', [1.0])

        result = compute_baselines(labs)

        assert result['lab_category'].iloc[0] == 'creatinine'


class TestAKI:
    """Creatinine >= 2x baseline."""

    def test_doubling_qualifies(self, presumed_infection):
        labs = make_labs('H1', 'creatinine', [1.0, 1.5, 2.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert list(result['criterion']) == ['aki']
        assert result['dysfunction_time'].iloc[0] == BASE_TIME
        assert result['presumed_infection_time'].iloc[0] == BASE_TIME

    def test_below_doubling_does_not_qualify(self, presumed_infection):
        labs = make_labs('H1', 'creatinine', [1.0, 1.9])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_outside_window_does_not_qualify(self, presumed_infection):
        labs = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'lab_category': ['creatinine', 'creatinine'],
            'lab_value_numeric': [1.0, 3.0],
            'lab_result_dttm': [BASE_TIME - timedelta(days=1), BASE_TIME + timedelta(days=3)],
        })

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_zero_baseline_cannot_trigger(self, presumed_infection):
        labs = make_labs('H1', 'creatinine', [0.0, 5.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty


class TestHyperbilirubinemia:
    """Bilirubin >= 2.0 and >= 2x baseline."""

    def test_both_thresholds_met(self, presumed_infection):
        labs = make_labs('H1', 'bilirubin_total', [1.0, 2.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert list(result['criterion']) == ['hyperbilirubinemia']

    def test_ratio_met_but_absolute_not(self, presumed_infection):
        labs = make_labs('H1', 'bilirubin_total', [0.5, 1.5])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_absolute_met_but_ratio_not(self, presumed_infection):
        labs = make_labs('H1', 'bilirubin_total', [2.5, 4.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty


class TestThrombocytopenia:
    """Platelets < 100 and <= 50% of a baseline >= 100."""

    def test_halving_below_100_qualifies(self, presumed_infection):
        labs = make_labs('H1', 'platelet_count', [150.0, 70.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert list(result['criterion']) == ['thrombocytopenia']

    def test_not_halved_does_not_qualify(self, presumed_infection):
        labs = make_labs('H1', 'platelet_count', [150.0, 90.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_low_baseline_does_not_qualify_by_default(self, presumed_infection):
        labs = make_labs('H1', 'platelet_count', [90.0, 40.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_low_baseline_qualifies_without_baseline_floor(self, presumed_infection):
        labs = make_labs('H1', 'platelet_count', [90.0, 40.0])

        result = identify_lab_dysfunction(
            labs, presumed_infection, config=ASEConfig(platelet_baseline_min=None)
        )

        assert list(result['criterion']) == ['thrombocytopenia']


class TestLabDysfunctionGeneral:

    def test_missing_baseline_category_is_not_evaluable(self, presumed_infection):
        # H2 only has lactate, so no relative criterion can be computed
        labs = make_labs('H2', 'lactate', [5.0])

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert result.empty
        assert list(result.columns) == [
            'hospitalization_id', 'criterion', 'dysfunction_time', 'presumed_infection_time'
        ]

    def test_no_presumed_infection_no_dysfunction(self):
        labs = make_labs('H3', 'creatinine', [1.0, 3.0])
        presumed = pd.DataFrame({
            'hospitalization_id': ['H1'],
            'presumed_infection_time': [BASE_TIME],
        })

        result = identify_lab_dysfunction(labs, presumed)

        assert result.empty

    def test_earliest_per_criterion(self, presumed_infection):
        labs = pd.concat([
            make_labs('H1', 'creatinine', [1.0, 2.2, 2.5]),
            make_labs('H1', 'platelet_count', [200.0, 180.0, 90.0]),
        ], ignore_index=True)

        result = identify_lab_dysfunction(labs, presumed_infection)

        assert sorted(result['criterion']) == ['aki', 'thrombocytopenia']
        aki = result[result['criterion'] == 'aki']
        assert aki['dysfunction_time'].iloc[0] == BASE_TIME - timedelta(hours=6)

    def test_precomputed_baselines_are_used(self, presumed_infection):
        labs = make_labs('H1', 'creatinine', [1.0, 1.5])
        baselines = pd.DataFrame({
            'hospitalization_id': ['H1'],
            'lab_category': ['creatinine'],
            'baseline_value': [0.5],
            'baseline_dttm': [BASE_TIME - timedelta(days=30)],
        })

        result = identify_lab_dysfunction(labs, presumed_infection, baselines=baselines)

        assert list(result['criterion']) == ['aki']


class TestLactate:
    """Lactate >= 2.0, absolute only."""

    def test_elevated_lactate_qualifies(self, presumed_infection):
        labs = make_labs('H2', 'lactate', [1.5, 2.0])

        result = identify_lactate_dysfunction(labs, presumed_infection)

        assert list(result['hospitalization_id']) == ['H2']
        assert list(result['criterion']) == ['lactate']
        assert result['dysfunction_time'].iloc[0] == BASE_TIME - timedelta(hours=6)

    def test_normal_lactate(self, presumed_infection):
        labs = make_labs('H2', 'lactate', [1.0, 1.9])

        result = identify_lactate_dysfunction(labs, presumed_infection)

        assert result.empty

    def test_custom_threshold(self, presumed_infection):
        labs = make_labs('H2', 'lactate', [3.0])

        result = identify_lactate_dysfunction(
            labs, presumed_infection, config=ASEConfig(lactate_min=4.0)
        )

        assert result.empty
