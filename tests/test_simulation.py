"""
Tests for random match results.
"""
import random

from engine.simulation import RP_CHANCES, generate_random_match_data, clear_match_result, simulate_unscored_matches


def _row(**values):
    row = {'id': 'm', 'red_alliance_id': 'a1', 'blue_alliance_id': 'a2'}
    row.update(values)
    return row


class TestGenerateRandomMatchData:
    def test_score_ranges(self):
        rng = random.Random(1)
        for _ in range(200):
            data = generate_random_match_data(rng)
            for side in ('red', 'blue'):
                auto = data[f'{side}_auto_score']
                assert 0 <= auto <= 20
                assert auto + 20 <= data[f'{side}_score'] <= auto + 80

    def test_flags_are_bools(self):
        data = generate_random_match_data(random.Random(5))
        for side in ('red', 'blue'):
            for flag in RP_CHANCES:
                assert isinstance(data[f'{side}_{flag}'], bool)

    def test_same_seed_same_result(self):
        assert generate_random_match_data(random.Random(9)) == generate_random_match_data(random.Random(9))

    def test_flag_rates_follow_chances(self):
        rng = random.Random(42)
        results = [generate_random_match_data(rng) for _ in range(2000)]
        for flag, chance in RP_CHANCES.items():
            rate = sum(r[f'red_{flag}'] for r in results) / len(results)
            assert abs(rate - chance) < 0.05


class TestClearMatchResult:
    def test_clears_in_place(self):
        row = _row(**generate_random_match_data(random.Random(2)))
        assert clear_match_result(row) is row
        assert row['red_score'] is None
        assert row['blue_auto_score'] is None
        assert row['red_coral_rp'] is False
        assert row['blue_barge_rp'] is False
        assert row['red_alliance_id'] == 'a1'


class TestSimulateUnscoredMatches:
    def test_skips_played_matches(self):
        played = _row(red_score=4, blue_score=4)
        half = _row(red_score=10)
        empty = _row()
        updated = simulate_unscored_matches([played, half, empty], random.Random(3))
        assert updated == 2
        assert (played['red_score'], played['blue_score']) == (4, 4)
        assert 'red_auto_score' not in played
        assert half['blue_score'] is not None
        assert empty['red_score'] is not None

    def test_nothing_to_fill(self):
        assert simulate_unscored_matches([_row(red_score=1, blue_score=0)]) == 0
        assert simulate_unscored_matches([]) == 0
