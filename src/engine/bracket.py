"""
Mutable double elimination bracket state built on an authored topology table.
"""
import logging
from typing import Dict, List, Optional

from .bracket_maps import topology_for
from .models import (
    BracketMatch, MatchState, RED, BLUE, UPPER, ELIMINATED, CHAMPION,
    is_seed_ref, is_match_target, other_side,
)

logger = logging.getLogger(__name__)


class BracketManager:
    """
    Tracks results for one double elimination bracket.

    Recording a result does not move alliances into the matches it feeds;
    call resolve_match_alliances() on the dependent matches afterwards.
    """

    def __init__(self, num_alliances: int):
        self.num_alliances = num_alliances
        self.matches: Dict[int, BracketMatch] = {}
        self.match_states: Dict[int, MatchState] = {}
        self.rounds: Dict[int, Dict[str, List[int]]] = {}
        self.reverse_adjacency: Dict[int, List[int]] = {}

        for match in topology_for(num_alliances):
            self.matches[match.id] = match
            self.match_states[match.id] = MatchState()

            round_ids = self.rounds.setdefault(match.round, {'upper': [], 'lower': []})
            round_ids['upper' if match.bracket == UPPER else 'lower'].append(match.id)

            for target in match.advancement_targets():
                if not is_match_target(target):
                    continue
                sources = self.reverse_adjacency.setdefault(target, [])
                if match.id not in sources:
                    sources.append(match.id)

        self.initial_matches = [
            match.id for match in self.matches.values()
            if is_seed_ref(match.red_from) and is_seed_ref(match.blue_from)
        ]
        self.final_match = max(self.matches)

    def get_match(self, match_id: int) -> Optional[BracketMatch]:
        return self.matches.get(match_id)

    def get_matches(self) -> List[BracketMatch]:
        return list(self.matches.values())

    def get_match_state(self, match_id: int) -> Optional[MatchState]:
        return self.match_states.get(match_id)

    def get_matches_by_round(self, round_num: int) -> Dict[str, List[int]]:
        return self.rounds.get(round_num, {'upper': [], 'lower': []})

    def get_dependencies(self, match_id: int) -> List[int]:
        """Ids of the matches with any advancement edge into match_id."""
        return self.reverse_adjacency.get(match_id, [])

    def get_next_matches(self, match_id: int) -> Dict[str, Dict]:
        match = self.get_match(match_id)
        if not match:
            return {
                'red_advancement': {'win': ELIMINATED, 'loss': ELIMINATED},
                'blue_advancement': {'win': ELIMINATED, 'loss': ELIMINATED},
            }
        return {'red_advancement': match.red_advancement, 'blue_advancement': match.blue_advancement}

    def is_match_ready(self, match_id: int) -> bool:
        """A match is ready once every match feeding it has been completed."""
        for dep_id in self.get_dependencies(match_id):
            state = self.get_match_state(dep_id)
            if state is None or not state.is_completed:
                return False
        return True

    def get_ready_matches(self) -> List[int]:
        return [match_id for match_id in self.matches if self.is_match_ready(match_id)]

    def update_match_result(self, match_id: int, winner: str, red_alliance_id, blue_alliance_id) -> None:
        state = self.match_states.get(match_id)
        if state is None:
            logger.debug("Ignoring result for unknown bracket match %s", match_id)
            return
        state.winner = winner
        state.red_alliance_id = red_alliance_id
        state.blue_alliance_id = blue_alliance_id
        state.is_completed = True
        logger.debug("Bracket match %s won by %s", match_id, winner)

    def resolve_match_alliances(self, match_id: int) -> Dict[str, Optional[str]]:
        """
        Work out which alliances play in a match from completed earlier matches.

        Seed slots resolve to None: the seeding comes from rankings this class
        does not hold. Match slots resolve to the recorded winner of the source
        match once it is completed, otherwise None.
        """
        match = self.get_match(match_id)
        if not match:
            return {'red_alliance_id': None, 'blue_alliance_id': None}
        return {
            'red_alliance_id': self._resolve_alliance_from_source(match.red_from),
            'blue_alliance_id': self._resolve_alliance_from_source(match.blue_from),
        }

    def _resolve_alliance_from_source(self, source: int) -> Optional[str]:
        if is_seed_ref(source):
            return None
        state = self.get_match_state(source)
        if not state or not state.is_completed or not state.winner:
            return None
        return state.alliance_id(state.winner)

    def get_advancing_alliances(self, match_id: int) -> List[Dict]:
        """
        Slots filled by the winner and loser of a completed match.

        Returns a list of {'match_id', 'side', 'alliance_id'} entries, one per
        edge that points at another match. A target fed twice by the same match
        (the deciding finals match) keeps the colours of its source.
        """
        match = self.get_match(match_id)
        state = self.get_match_state(match_id)
        if not match or not state or not state.is_completed or not state.winner:
            return []

        loser = other_side(state.winner)
        slots = []
        for side, outcome in ((state.winner, 'win'), (loser, 'loss')):
            target_id = match.advancement(side)[outcome]
            target = self.get_match(target_id) if is_match_target(target_id) else None
            if target is None:
                continue
            if target.red_from == match_id and target.blue_from == match_id:
                slot = side
            elif target.red_from == match_id:
                slot = RED
            elif target.blue_from == match_id:
                slot = BLUE
            else:
                logger.warning("Match %s advances to %s but is not one of its sources", match_id, target_id)
                continue
            slots.append({'match_id': target_id, 'side': slot, 'alliance_id': state.alliance_id(side)})
        return slots

    def get_advancement_for_winner(self, match_id: int, winner: str):
        match = self.get_match(match_id)
        if not match:
            return ELIMINATED
        return match.advancement(winner)['win']

    def get_advancement_for_loser(self, match_id: int, loser: str):
        match = self.get_match(match_id)
        if not match:
            return ELIMINATED
        return match.advancement(loser)['loss']

    def is_championship_win(self, match_id: int, winner: str) -> bool:
        return self.get_advancement_for_winner(match_id, winner) == CHAMPION

    def get_match_with_resolved_alliances(self, match_id: int) -> Dict:
        return {
            'match': self.get_match(match_id),
            'state': self.get_match_state(match_id),
            'resolved_alliances': self.resolve_match_alliances(match_id),
        }

    def get_current_champion(self) -> Optional[str]:
        """
        Side that won the championship, or None while the finals are open.

        Scans in table order and returns the first championship win found.
        """
        for match_id, state in self.match_states.items():
            if state.is_completed and state.winner and self.is_championship_win(match_id, state.winner):
                return state.winner
        return None

    def get_advancement_path(self, match_id: int, winner: str) -> Dict:
        advancement = self.get_advancement_for_winner(match_id, winner)
        return {
            'advancement': advancement,
            'is_championship': advancement == CHAMPION,
            'next_match_id': advancement if is_match_target(advancement) else None,
        }

    def get_advancement_path_for_loser(self, match_id: int, loser: str) -> Dict:
        advancement = self.get_advancement_for_loser(match_id, loser)
        return {
            'advancement': advancement,
            'is_eliminated': advancement == ELIMINATED,
            'next_match_id': advancement if is_match_target(advancement) else None,
        }

    def __repr__(self):
        completed = sum(1 for s in self.match_states.values() if s.is_completed)
        return f"BracketManager(num_alliances={self.num_alliances}, completed={completed}/{len(self.matches)})"
