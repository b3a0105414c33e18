"""
Tests for schedule settings and ScheduleConfig validation.
"""
import datetime

import pytest
import yaml

from engine.config import (
    ScheduleConfig, get_default_settings, load_settings, save_settings, parse_time, parse_day, validate_settings,
)


class TestSettingsFile:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_settings(str(tmp_path / "nope.yaml")) == get_default_settings()

    def test_none_path_gives_defaults(self):
        assert load_settings(None) == get_default_settings()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert load_settings(str(path)) == get_default_settings()

    def test_values_merge_over_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.dump({'rr_rounds': 4, 'start_time': '08:30'}))
        settings = load_settings(str(path))
        assert settings['rr_rounds'] == 4
        assert settings['start_time'] == '08:30'
        assert settings['interval_minutes'] == 8

    def test_non_mapping_is_ignored(self, tmp_path, caplog):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        assert load_settings(str(path)) == get_default_settings()
        assert 'expected a mapping' in caplog.text

    def test_save_then_load(self, tmp_path):
        path = str(tmp_path / "settings.yaml")
        settings = get_default_settings()
        settings['random_seed'] = 11
        save_settings(path, settings)
        assert load_settings(path) == settings


class TestParsing:
    @pytest.mark.parametrize("value,expected", [
        ('09:00', datetime.time(9, 0)),
        ('9:05', datetime.time(9, 5)),
        ('23:59', datetime.time(23, 59)),
    ])
    def test_parse_time(self, value, expected):
        assert parse_time(value) == expected

    @pytest.mark.parametrize("value", ['24:00', '12:60', 'noon', '', '12'])
    def test_parse_time_rejects(self, value):
        with pytest.raises(ValueError):
            parse_time(value)

    def test_parse_day_variants(self):
        day = datetime.date(2025, 3, 15)
        assert parse_day(day) == day
        assert parse_day(datetime.datetime(2025, 3, 15, 10, 0)) == day
        assert parse_day('2025-03-15') == day

    def test_parse_day_defaults_to_today(self):
        assert parse_day(None) == datetime.date.today()

    def test_parse_day_rejects(self):
        with pytest.raises(ValueError):
            parse_day('15/03/2025')


class TestScheduleConfig:
    def test_from_settings(self):
        config = ScheduleConfig.from_settings(get_default_settings(), day='2025-03-15')
        assert config.day == datetime.date(2025, 3, 15)
        assert config.rr_rounds == 2
        assert config.interval_min == 8
        assert config.lunch_duration_min == 60
        assert config.desired_lunch_time == '12:00'

    def test_interval_as_string(self):
        config = ScheduleConfig('2025-03-15', '09:00', 2, '12', 60, '12:00')
        assert config.interval_min == 12

    @pytest.mark.parametrize("kwargs", [
        {'rr_rounds': 0},
        {'interval_min': 0},
        {'interval_min': 'eight'},
        {'lunch_duration_min': -5},
        {'start_time': '9am'},
        {'desired_lunch_time': '25:00'},
    ])
    def test_invalid_values(self, kwargs):
        values = dict(day='2025-03-15', start_time='09:00', rr_rounds=2, interval_min=8,
                      lunch_duration_min=60, desired_lunch_time='12:00')
        values.update(kwargs)
        with pytest.raises(ValueError):
            ScheduleConfig(**values)

    def test_zero_lunch_allowed(self):
        assert ScheduleConfig('2025-03-15', '09:00', 1, 8, 0, '12:00').lunch_duration_min == 0

    def test_repr(self):
        config = ScheduleConfig('2025-03-15', '09:00', 2, 8, 60, '12:00')
        assert repr(config) == ("ScheduleConfig(day=2025-03-15, start_time=09:00, rr_rounds=2, "
                                "interval_min=8, lunch=60@12:00)")


class TestValidateSettings:
    def _settings(self, **overrides):
        settings = get_default_settings()
        settings.update(overrides)
        return settings

    def test_defaults_are_valid(self):
        assert validate_settings(get_default_settings()) == get_default_settings()

    @pytest.mark.parametrize("seed", [None, 0, 42, 'club-day'])
    def test_accepted_seeds(self, seed):
        validate_settings(self._settings(random_seed=seed))

    @pytest.mark.parametrize("seed", [[1, 2], {'a': 1}, 1.5, True])
    def test_rejected_seeds(self, seed):
        with pytest.raises(ValueError, match='random_seed'):
            validate_settings(self._settings(random_seed=seed))

    @pytest.mark.parametrize("overrides", [
        {'playoff_start_time': '2pm'},
        {'playoff_interval_minutes': 0},
        {'playoff_interval_minutes': 'ten'},
        {'num_playoff_alliances': 0},
        {'num_playoff_alliances': 9},
        {'num_playoff_alliances': 'eight'},
        {'rr_rounds': 0},
    ])
    def test_rejected_values(self, overrides):
        with pytest.raises(ValueError):
            validate_settings(self._settings(**overrides))

    def test_numeric_strings_accepted(self):
        validate_settings(self._settings(playoff_interval_minutes='12', num_playoff_alliances='6'))

    def test_unknown_key(self):
        with pytest.raises(ValueError, match='Unknown settings: colour'):
            validate_settings(self._settings(colour='red'))
