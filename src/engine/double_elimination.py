"""
Double elimination playoff generation.

In double elimination:
- Alliances must lose twice to be eliminated
- Upper bracket: alliances that haven't lost yet
- Lower bracket: alliances that have lost once
- Finals: upper bracket champion vs lower bracket champion, best of 3 with
  the upper bracket champion starting one win up

The bracket shape comes from the authored tables in bracket_maps; this module
turns a table into timed match rows ready to be stored, and groups those rows
into playoff schedule blocks.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .bracket import BracketManager
from .models import UPPER, CHAMPION, is_seed_ref, seed_rank

logger = logging.getLogger(__name__)

PLAYOFF_MATCH_TYPE = 'playoff'


def is_finals_match(match) -> bool:
    """Finals matches are the only ones with a championship edge."""
    return CHAMPION in match.advancement_targets()


def get_round_description(bracket: str, round_num: int, finals: bool = False) -> str:
    """Get the display name for a playoff round."""
    if finals:
        return "Finals"
    side = "Upper" if bracket == UPPER else "Lower"
    return f"{side} Bracket - Round {round_num}"


def _seed_alliance(source: int, seeds: Optional[Sequence]) -> Optional[str]:
    if not seeds or not is_seed_ref(source):
        return None
    rank = seed_rank(source)
    if rank > len(seeds):
        return None
    return seeds[rank - 1]


def generate_double_elimination_bracket(num_alliances: int, start_time: datetime, interval_minutes: int,
                                        seeds: Optional[Sequence] = None) -> Dict[str, List[Dict]]:
    """
    Generate timed match rows for a double elimination bracket.

    Args:
        num_alliances: Number of alliances in the playoffs (the table supports 4-8)
        start_time: When the first playoff match starts
        interval_minutes: Minutes between consecutive matches
        seeds: Alliance ids ordered by rank (seeds[0] is rank 1). Only round 1
            slots are filled from it; every other slot starts as None.

    Returns dict with:
    - 'matches': list of match dicts in table order with id, red_alliance_id,
      blue_alliance_id, scheduled_at, round, match_type, bracket,
      match_number, bracket_match_id, winner_advances_to, loser_advances_to

    Matches are spaced by their position in the table, one after another,
    not by round. winner_advances_to / loser_advances_to stay None until the
    rows are stored and real match ids exist.

    Raises:
        ValueError: fewer than 2 alliances, or a count with no bracket table
    """
    if num_alliances < 2:
        raise ValueError('Need at least 2 alliances for double elimination tournament')

    manager = BracketManager(num_alliances)
    interval = timedelta(minutes=int(interval_minutes))
    matches = []

    for index, bracket_match in enumerate(manager.get_matches()):
        red_alliance_id = None
        blue_alliance_id = None
        if bracket_match.round == 1:
            red_alliance_id = _seed_alliance(bracket_match.red_from, seeds)
            blue_alliance_id = _seed_alliance(bracket_match.blue_from, seeds)

        matches.append({
            'id': str(uuid.uuid4()),
            'red_alliance_id': red_alliance_id,
            'blue_alliance_id': blue_alliance_id,
            'scheduled_at': start_time + index * interval,
            'round': bracket_match.round,
            'match_type': PLAYOFF_MATCH_TYPE,
            'bracket': bracket_match.bracket,
            'match_number': bracket_match.match_number,
            'bracket_match_id': bracket_match.id,
            'winner_advances_to': None,
            'loser_advances_to': None,
        })

    logger.info("Generated %d playoff matches for %d alliances", len(matches), num_alliances)
    return {'matches': matches}


def build_playoff_blocks(matches: List[Dict], interval_minutes: int, num_alliances: Optional[int] = None) -> List[Dict]:
    """
    Group playoff match rows into schedule blocks, one per bracket round.

    Each block is {'start_time', 'duration', 'activity'} where activity is
    {'type': 'playoffs', 'round', 'description', 'matches'}. Finals rows are
    recognised through the bracket table when num_alliances is given.
    """
    finals_ids = set()
    if num_alliances is not None:
        manager = BracketManager(num_alliances)
        finals_ids = {m.id for m in manager.get_matches() if is_finals_match(m)}

    rounds = {}
    for match in sorted(matches, key=lambda m: m['scheduled_at']):
        rounds.setdefault(match['round'], []).append(match)

    blocks = []
    for round_num in sorted(rounds):
        round_matches = rounds[round_num]
        finals = bool(finals_ids) and all(m.get('bracket_match_id') in finals_ids for m in round_matches)
        brackets = {m['bracket'] for m in round_matches}
        if finals:
            description = get_round_description(UPPER, round_num, finals=True)
        elif len(brackets) == 1:
            description = get_round_description(brackets.pop(), round_num)
        else:
            description = f"Round {round_num}"

        blocks.append({
            'start_time': round_matches[0]['scheduled_at'],
            'duration': len(round_matches) * int(interval_minutes),
            'activity': {
                'type': 'playoffs',
                'round': round_num,
                'description': description,
                'matches': round_matches,
            },
        })
    return blocks
