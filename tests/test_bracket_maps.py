"""
Structural checks on the authored double elimination tables.
"""
import pytest

from engine.bracket_maps import MATCH_MAPS, topology_for, supported_alliance_counts
from engine.models import UPPER, LOWER, ELIMINATED, CHAMPION, SIDES, is_seed_ref, seed_rank, is_match_target

COUNTS = [4, 5, 6, 7, 8]
EXPECTED_MATCHES = {4: 7, 5: 9, 6: 11, 7: 13, 8: 15}


def _by_id(n):
    return {m.id: m for m in topology_for(n)}


class TestTopologyFor:
    def test_supported_counts(self):
        assert supported_alliance_counts() == COUNTS

    @pytest.mark.parametrize("n", [0, 1, 2, 3, 9, 16])
    def test_unsupported_count_raises(self, n):
        with pytest.raises(ValueError):
            topology_for(n)

    @pytest.mark.parametrize("n", COUNTS)
    def test_match_count(self, n):
        assert len(topology_for(n)) == EXPECTED_MATCHES[n]

    def test_returns_fresh_objects(self):
        first = topology_for(8)
        first[0].red_advancement['win'] = 99
        assert topology_for(8)[0].red_advancement['win'] == 7

    def test_eight_alliance_first_round_seeding(self):
        matches = _by_id(8)
        pairs = [(seed_rank(matches[i].red_from), seed_rank(matches[i].blue_from)) for i in (1, 2, 3, 4)]
        assert pairs == [(1, 8), (4, 5), (3, 6), (2, 7)]


@pytest.mark.parametrize("n", COUNTS)
class TestTableInvariants:
    def test_ids_unique_and_sequential(self, n):
        ids = [m.id for m in topology_for(n)]
        assert ids == list(range(1, len(ids) + 1))

    def test_every_seed_used_once(self, n):
        ranks = []
        for match in topology_for(n):
            for side in SIDES:
                if is_seed_ref(match.source(side)):
                    ranks.append(seed_rank(match.source(side)))
        assert sorted(ranks) == list(range(1, n + 1))

    def test_targets_are_valid(self, n):
        matches = _by_id(n)
        for match in matches.values():
            for target in match.advancement_targets():
                assert target in (ELIMINATED, CHAMPION) or target in matches, (match.id, target)

    def test_targets_point_forward(self, n):
        """No edge loops back to the same or an earlier match."""
        for match in topology_for(n):
            for target in match.advancement_targets():
                if is_match_target(target):
                    assert target > match.id, (match.id, target)

    def test_targets_list_their_source(self, n):
        matches = _by_id(n)
        for match in matches.values():
            for target in match.advancement_targets():
                if is_match_target(target):
                    assert match.id in (matches[target].red_from, matches[target].blue_from)

    def test_each_match_slot_fed_exactly_once(self, n):
        matches = _by_id(n)
        incoming = {match_id: 0 for match_id in matches}
        for match in matches.values():
            for side in SIDES:
                for outcome in ('win', 'loss'):
                    target = match.advancement(side)[outcome]
                    if is_match_target(target):
                        incoming[target] += 1
        for match in matches.values():
            if match.red_from == match.blue_from:
                # Deciding finals match: winner and loser of the same match fill both slots
                assert incoming[match.id] == 2
                continue
            # Either side of the source can win, so each fed slot has one edge per side
            fed_slots = sum(1 for side in SIDES if not is_seed_ref(match.source(side)))
            assert incoming[match.id] == 2 * fed_slots, match.id

    def test_rounds_never_decrease(self, n):
        rounds = [m.round for m in topology_for(n)]
        assert rounds == sorted(rounds)

    def test_brackets_are_upper_or_lower(self, n):
        assert {m.bracket for m in topology_for(n)} <= {UPPER, LOWER}

    def test_win_paths_terminate(self, n):
        matches = _by_id(n)
        round_one = [m for m in matches.values() if m.round == 1]
        for start in round_one:
            for side in SIDES:
                current, steps = start, 0
                while True:
                    target = current.advancement(side)['win']
                    if not is_match_target(target):
                        assert target in (CHAMPION, ELIMINATED)
                        break
                    current = matches[target]
                    steps += 1
                    assert steps <= len(matches)

    def test_best_of_three_finals(self, n):
        """The second finals match is only reached when the lower champion wins the first."""
        matches = topology_for(n)
        first, second = matches[-2], matches[-1]
        assert first.red_advancement == {'win': CHAMPION, 'loss': second.id}
        assert first.blue_advancement == {'win': second.id, 'loss': ELIMINATED}
        assert second.red_from == first.id and second.blue_from == first.id
        assert CHAMPION in second.advancement_targets()

    def test_exactly_one_upper_champion_path(self, n):
        """Only the two finals matches can crown a champion."""
        champion_matches = [m.id for m in topology_for(n) if CHAMPION in m.advancement_targets()]
        assert len(champion_matches) == 2


def test_map_keys_match_counts():
    assert sorted(MATCH_MAPS) == COUNTS
