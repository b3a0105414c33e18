"""
Shared pytest fixtures for the alliance tournament tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips exhaustive optimizer checks)
"""
import datetime
import random
import sys
import os

import pytest
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from engine.config import ScheduleConfig


def make_alliances(count):
    return [{'id': f'a{i}', 'name': f'Alliance {i}'} for i in range(1, count + 1)]


@pytest.fixture
def alliances():
    """Four alliances with stable ids a1..a4."""
    return make_alliances(4)


@pytest.fixture
def event_day():
    return datetime.date(2025, 3, 15)


@pytest.fixture
def schedule_config(event_day):
    return ScheduleConfig(
        day=event_day,
        start_time='09:00',
        rr_rounds=2,
        interval_min=8,
        lunch_duration_min=60,
        desired_lunch_time='12:00',
    )


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the Flask app at an empty temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return data_dir


@pytest.fixture
def client(temp_data_dir):
    """Flask test client backed by a temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def seeded_client(client, temp_data_dir):
    """Test client with eight alliances and a fixed random seed already saved."""
    (temp_data_dir / "alliances.yaml").write_text(yaml.dump(make_alliances(8), default_flow_style=False))
    (temp_data_dir / "settings.yaml").write_text(yaml.dump({'random_seed': 7}, default_flow_style=False))
    return client
