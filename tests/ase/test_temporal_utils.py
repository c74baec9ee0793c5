"""
Tests for the shared temporal utilities in clifase.ase._utils:
- flag_within_window (dysfunction window around presumed infection)
- flag_new_episodes (calendar-day new therapy detection)
- reduce_to_earliest
- ASEConfig validation
"""

import pytest
import pandas as pd
from datetime import datetime, timedelta

from clifase.ase import ASEConfig, flag_within_window, flag_new_episodes
from clifase.ase._utils import reduce_to_earliest, to_epoch_seconds


@pytest.fixture
def anchors():
    base_time = datetime(2024, 1, 1, 12, 0, 0)
    return pd.DataFrame({
        'hospitalization_id': ['H1'],
        'presumed_infection_time': [base_time],
    })


class TestFlagWithinWindow:
    """Window membership around presumed infection times."""

    def test_strict_bounds_exclude_exactly_two_days(self, anchors):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1'] * 4,
            'event_dttm': [
                base_time - timedelta(days=2),
                base_time - timedelta(days=2) + timedelta(minutes=1),
                base_time + timedelta(days=2) - timedelta(minutes=1),
                base_time + timedelta(days=2),
            ],
        })

        result = flag_within_window(events, anchors, 'event_dttm')

        assert list(result['event_dttm']) == [
            base_time - timedelta(days=2) + timedelta(minutes=1),
            base_time + timedelta(days=2) - timedelta(minutes=1),
        ]

    def test_inclusive_bounds_keep_exactly_two_days(self, anchors):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'event_dttm': [base_time - timedelta(days=2), base_time + timedelta(days=2)],
        })

        result = flag_within_window(events, anchors, 'event_dttm', inclusive=True)

        assert len(result) == 2
        assert list(result['days_from_anchor']) == [-2.0, 2.0]

    def test_other_hospitalization_not_matched(self, anchors):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H2'],
            'event_dttm': [base_time],
        })

        result = flag_within_window(events, anchors, 'event_dttm')

        assert result.empty
        assert 'presumed_infection_time' in result.columns

    def test_event_paired_with_earliest_matching_anchor(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        anchors = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'presumed_infection_time': [base_time, base_time + timedelta(days=1)],
        })
        events = pd.DataFrame({
            'hospitalization_id': ['H1'],
            'event_dttm': [base_time + timedelta(hours=30)],
        })

        result = flag_within_window(events, anchors, 'event_dttm')

        assert len(result) == 1
        assert result['presumed_infection_time'].iloc[0] == base_time

    def test_first_anchor_selection_ignores_later_anchors(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        anchors = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'presumed_infection_time': [base_time, base_time + timedelta(days=5)],
        })
        events = pd.DataFrame({
            'hospitalization_id': ['H1'],
            'event_dttm': [base_time + timedelta(days=5, hours=1)],
        })

        any_result = flag_within_window(events, anchors, 'event_dttm', anchor_selection='any')
        first_result = flag_within_window(events, anchors, 'event_dttm', anchor_selection='first')

        assert len(any_result) == 1
        assert first_result.empty

    def test_empty_events(self, anchors):
        events = pd.DataFrame(columns=['hospitalization_id', 'event_dttm'])

        result = flag_within_window(events, anchors, 'event_dttm')

        assert result.empty
        assert 'days_from_anchor' in result.columns

    def test_invalid_anchor_selection(self, anchors):
        events = pd.DataFrame({'hospitalization_id': ['H1'], 'event_dttm': [datetime(2024, 1, 1)]})
        with pytest.raises(ValueError, match="anchor_selection"):
            flag_within_window(events, anchors, 'event_dttm', anchor_selection='nearest')

    def test_timezone_aware_times(self):
        base_time = pd.Timestamp('2024-01-01 12:00', tz='US/Central')
        anchors = pd.DataFrame({'hospitalization_id': ['H1'], 'presumed_infection_time': [base_time]})
        events = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'event_dttm': [base_time + pd.Timedelta(hours=3), base_time + pd.Timedelta(days=3)],
        })

        result = flag_within_window(events, anchors, 'event_dttm')

        assert len(result) == 1
        assert result['days_from_anchor'].iloc[0] == pytest.approx(0.125)


class TestFlagNewEpisodes:
    """Calendar-day change detection."""

    def test_consecutive_days_are_one_episode(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1'] * 3,
            'med_category': ['norepinephrine'] * 3,
            'admin_dttm': [base_time + timedelta(days=d) for d in range(3)],
        })

        result = flag_new_episodes(events, 'admin_dttm', ['hospitalization_id', 'med_category'])

        assert list(result['admin_dttm']) == [base_time]

    def test_gap_day_starts_new_episode(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1'] * 3,
            'med_category': ['norepinephrine'] * 3,
            'admin_dttm': [
                base_time,
                base_time + timedelta(days=1),
                base_time + timedelta(days=3),
            ],
        })

        result = flag_new_episodes(events, 'admin_dttm', ['hospitalization_id', 'med_category'])

        assert list(result['admin_dttm']) == [base_time, base_time + timedelta(days=3)]

    def test_same_day_records_collapse_to_earliest(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'admin_dttm': [base_time + timedelta(hours=3), base_time],
        })

        result = flag_new_episodes(events, 'admin_dttm', ['hospitalization_id'])

        assert list(result['admin_dttm']) == [base_time]
        assert result['episode_day'].iloc[0] == pd.Timestamp('2024-01-01')

    def test_groups_are_independent(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        events = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1'],
            'med_category': ['norepinephrine', 'vasopressin'],
            'admin_dttm': [base_time, base_time + timedelta(days=1)],
        })

        result = flag_new_episodes(events, 'admin_dttm', ['hospitalization_id', 'med_category'])

        assert len(result) == 2

    def test_empty_events(self):
        events = pd.DataFrame(columns=['hospitalization_id', 'admin_dttm'])

        result = flag_new_episodes(events, 'admin_dttm', ['hospitalization_id'])

        assert result.empty
        assert 'episode_day' in result.columns


class TestReduceToEarliest:

    def test_keeps_earliest_per_criterion(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)
        qualifying = pd.DataFrame({
            'hospitalization_id': ['H1', 'H1', 'H1'],
            'criterion': ['aki', 'aki', 'lactate'],
            'lab_result_dttm': [base_time + timedelta(hours=5), base_time, base_time],
            'presumed_infection_time': [base_time] * 3,
        })

        result = reduce_to_earliest(qualifying, 'lab_result_dttm')

        assert list(result.columns) == [
            'hospitalization_id', 'criterion', 'dysfunction_time', 'presumed_infection_time'
        ]
        assert len(result) == 2
        assert result.loc[result['criterion'] == 'aki', 'dysfunction_time'].iloc[0] == base_time


class TestASEConfig:

    def test_defaults(self):
        config = ASEConfig()
        assert config.min_qad == 4
        assert (config.qad_window_start_day, config.qad_window_end_day) == (-2, 6)
        assert config.inclusive_window is False
        assert config.platelet_baseline_min == 100.0
        assert 'expired' in [c.lower() for c in config.terminal_discharge_categories]

    def test_from_dict_overrides(self):
        config = ASEConfig.from_dict({'include_lactate': False, 'imv_device_categories': 'IMV'})
        assert config.include_lactate is False
        assert config.imv_device_categories == ('IMV',)

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown ASE parameters"):
            ASEConfig.from_dict({'lactate_threshold': 4.0})

    @pytest.mark.parametrize('kwargs', [
        {'qad_window_start_day': 7},
        {'min_qad': 0},
        {'window_before_days': -1},
        {'anchor_selection': 'nearest'},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ASEConfig(**kwargs)


def test_to_epoch_seconds_naive_and_aware_agree():
    naive = pd.Series([pd.Timestamp('2024-01-01 12:00')])
    aware = pd.Series([pd.Timestamp('2024-01-01 06:00', tz='US/Central')])
    assert to_epoch_seconds(naive).iloc[0] == to_epoch_seconds(aware).iloc[0]
