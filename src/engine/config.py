"""
Schedule settings: defaults, YAML loading and the validated round-robin config.
"""
import datetime
import logging
import os
import re

import yaml

from .bracket_maps import MIN_ALLIANCES, MAX_ALLIANCES

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def get_default_settings():
    """Return default schedule settings."""
    return {
        'start_time': '09:00',
        'rr_rounds': 2,
        'interval_minutes': 8,
        'lunch_duration_minutes': 60,
        'desired_lunch_time': '12:00',
        'playoff_start_time': '14:00',
        'playoff_interval_minutes': 10,
        'num_playoff_alliances': 8,
        'random_seed': None,
    }


def load_settings(path):
    """Load settings from a YAML file, filling anything missing from the defaults."""
    settings = get_default_settings()
    if not path or not os.path.exists(path):
        return settings
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if data is None:
        return settings
    if not isinstance(data, dict):
        logger.warning(f'Ignoring {path}: expected a mapping, got {type(data).__name__}')
        return settings
    settings.update(data)
    return settings


def save_settings(path, settings):
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False)


def parse_time(time_str):
    """Parse an "HH:MM" string into a datetime.time."""
    match = _TIME_RE.match(str(time_str).strip())
    if not match:
        raise ValueError(f'Invalid time "{time_str}", expected HH:MM')
    return datetime.time(int(match.group(1)), int(match.group(2)))


def parse_day(value):
    if value is None:
        return datetime.date.today()
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f'Invalid day "{value}", expected YYYY-MM-DD')


def _as_int(name, value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be a whole number, got {value!r}')


class ScheduleConfig:
    """Round-robin schedule configuration, validated on construction."""

    def __init__(self, day, start_time, rr_rounds, interval_min, lunch_duration_min, desired_lunch_time):
        self.day = parse_day(day)
        parse_time(start_time)
        parse_time(desired_lunch_time)
        self.start_time = start_time
        self.desired_lunch_time = desired_lunch_time
        self.rr_rounds = _as_int('rr_rounds', rr_rounds)
        # The dashboard form sends the interval as a string
        self.interval_min = _as_int('interval_min', interval_min)
        self.lunch_duration_min = _as_int('lunch_duration_min', lunch_duration_min)

        if self.rr_rounds < 1:
            raise ValueError('rr_rounds must be at least 1')
        if self.interval_min < 1:
            raise ValueError('interval_min must be at least 1 minute')
        if self.lunch_duration_min < 0:
            raise ValueError('lunch_duration_min cannot be negative')

    @classmethod
    def from_settings(cls, settings, day=None):
        return cls(
            day=day,
            start_time=settings['start_time'],
            rr_rounds=settings['rr_rounds'],
            interval_min=settings['interval_minutes'],
            lunch_duration_min=settings['lunch_duration_minutes'],
            desired_lunch_time=settings['desired_lunch_time'],
        )

    def __repr__(self):
        return (f"ScheduleConfig(day={self.day}, start_time={self.start_time}, rr_rounds={self.rr_rounds}, "
                f"interval_min={self.interval_min}, lunch={self.lunch_duration_min}@{self.desired_lunch_time})")


def validate_settings(settings):
    """
    Check a full settings dict, raising ValueError on the first bad value.

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    unknown = set(settings) - set(get_default_settings())
    if unknown:
        raise ValueError(f'Unknown settings: {", ".join(sorted(unknown))}')

    ScheduleConfig.from_settings(settings)

    seed = settings.get('random_seed')
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, (int, str))):
        raise ValueError(f'random_seed must be a whole number, text or null, got {seed!r}')

    parse_time(settings['playoff_start_time'])
    if _as_int('playoff_interval_minutes', settings['playoff_interval_minutes']) < 1:
        raise ValueError('playoff_interval_minutes must be at least 1 minute')
    num_alliances = _as_int('num_playoff_alliances', settings['num_playoff_alliances'])
    if not MIN_ALLIANCES <= num_alliances <= MAX_ALLIANCES:
        raise ValueError(f'num_playoff_alliances must be between {MIN_ALLIANCES} and {MAX_ALLIANCES}')
    return settings
