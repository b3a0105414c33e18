"""
Authored double elimination bracket tables for 4 to 8 alliances.

Each row reads:
    (id, bracket, round, red_from, blue_from, win, loss[, blue_win, blue_loss])

red_from / blue_from are seed references (negative rank, see seed_ref) or the
id of the earlier match that feeds the slot. win / loss give where an alliance
goes after winning or losing; the optional blue_* pair is only present for the
first finals match, where red (the upper bracket champion) already holds one
series win.

Finals are best of 3 played as two match ids: the second is only reached
when the lower bracket champion wins the first.

The 4- and 8-alliance tables match the dashboard's earlier bracket maps id
for id. The 5-, 6- and 7-alliance tables were re-authored so every edge
points forward to a match that lists it as a source, and their match counts
changed: 5 alliances now have 9 matches (previously 10) and 6 alliances have
11 (previously 10). Stored bracket_match_id values from the earlier 5-, 6-
and 7-alliance maps do not carry over.
"""
from typing import Dict, List, Tuple

from .models import BracketMatch, UPPER, LOWER, ELIMINATED, CHAMPION, seed_ref

S = seed_ref
U = UPPER
L = LOWER
E = ELIMINATED
C = CHAMPION

MIN_ALLIANCES = 4
MAX_ALLIANCES = 8


EIGHT_ALLIANCE_MAP = (
    # Round 1 - upper bracket
    (1, U, 1, S(1), S(8), 7, 5),
    (2, U, 1, S(4), S(5), 7, 5),
    (3, U, 1, S(3), S(6), 8, 6),
    (4, U, 1, S(2), S(7), 8, 6),
    # Round 2
    (5, L, 2, 1, 2, 10, E),
    (6, L, 2, 3, 4, 9, E),
    (7, U, 2, 1, 2, 12, 9),
    (8, U, 2, 3, 4, 12, 10),
    # Round 3 - upper losers drop in crosswise
    (9, L, 3, 7, 6, 11, E),
    (10, L, 3, 8, 5, 11, E),
    # Round 4
    (11, L, 4, 9, 10, 13, E),
    (12, U, 4, 7, 8, 14, 13),
    # Round 5 - lower final
    (13, L, 5, 11, 12, 14, E),
    # Finals
    (14, U, 6, 12, 13, C, 15, 15, E),
    (15, U, 6, 14, 14, C, E),
)

SEVEN_ALLIANCE_MAP = (
    # Round 1 - alliance 1 has a bye
    (1, U, 1, S(2), S(7), 4, 6),
    (2, U, 1, S(3), S(6), 5, 6),
    (3, U, 1, S(4), S(5), 5, 7),
    # Round 2 - upper
    (4, U, 2, 1, S(1), 8, 7),
    (5, U, 2, 2, 3, 8, 10),
    # Round 3 - lower
    (6, L, 3, 1, 2, 9, E),
    (7, L, 3, 3, 4, 10, E),
    # Round 4 - upper final
    (8, U, 4, 4, 5, 12, 9),
    # Round 5 - lower
    (9, L, 5, 8, 6, 11, E),
    (10, L, 5, 7, 5, 11, E),
    # Round 6 - lower final
    (11, L, 6, 9, 10, 12, E),
    # Finals
    (12, U, 7, 8, 11, C, 13, 13, E),
    (13, U, 7, 12, 12, C, E),
)

SIX_ALLIANCE_MAP = (
    # Round 1 - alliances 1 and 2 have byes
    (1, U, 1, S(3), S(6), 3, 5),
    (2, U, 1, S(4), S(5), 4, 5),
    # Round 2
    (3, U, 2, 1, S(1), 7, 6),
    (4, U, 2, 2, S(2), 7, 6),
    (5, L, 2, 1, 2, 8, E),
    # Round 3
    (6, L, 3, 3, 4, 8, E),
    (7, U, 3, 3, 4, 10, 9),
    # Round 4
    (8, L, 4, 5, 6, 9, E),
    # Round 5 - lower final
    (9, L, 5, 7, 8, 10, E),
    # Finals
    (10, U, 6, 7, 9, C, 11, 11, E),
    (11, U, 6, 10, 10, C, E),
)

FIVE_ALLIANCE_MAP = (
    # Round 1 - alliance 1 has a bye
    (1, U, 1, S(2), S(5), 3, 4),
    (2, U, 1, S(3), S(4), 5, 4),
    # Round 2 - the 3v4 winner waits for the upper final
    (3, U, 2, 1, S(1), 5, 6),
    (4, L, 2, 1, 2, 6, E),
    # Round 3
    (5, U, 3, 3, 2, 8, 7),
    (6, L, 3, 4, 3, 7, E),
    # Round 4 - lower final
    (7, L, 4, 6, 5, 8, E),
    # Finals
    (8, U, 5, 5, 7, C, 9, 9, E),
    (9, U, 5, 8, 8, C, E),
)

FOUR_ALLIANCE_MAP = (
    # Round 1
    (1, U, 1, S(1), S(4), 3, 4),
    (2, U, 1, S(2), S(3), 3, 4),
    # Round 2
    (3, U, 2, 1, 2, 6, 5),
    (4, L, 2, 1, 2, 5, E),
    # Round 3 - lower final
    (5, L, 3, 3, 4, 6, E),
    # Finals
    (6, U, 4, 3, 5, C, 7, 7, E),
    (7, U, 4, 6, 6, C, E),
)

MATCH_MAPS: Dict[int, Tuple] = {
    4: FOUR_ALLIANCE_MAP,
    5: FIVE_ALLIANCE_MAP,
    6: SIX_ALLIANCE_MAP,
    7: SEVEN_ALLIANCE_MAP,
    8: EIGHT_ALLIANCE_MAP,
}


def _build_match(row) -> BracketMatch:
    match_id, bracket, round_num, red_from, blue_from, win, loss = row[:7]
    blue_win, blue_loss = row[7:] if len(row) > 7 else (win, loss)
    return BracketMatch(
        id=match_id,
        bracket=bracket,
        round=round_num,
        match_number=match_id,
        red_from=red_from,
        blue_from=blue_from,
        red_advancement={'win': win, 'loss': loss},
        blue_advancement={'win': blue_win, 'loss': blue_loss},
    )


def supported_alliance_counts() -> List[int]:
    return sorted(MATCH_MAPS)


def topology_for(num_alliances: int) -> List[BracketMatch]:
    """
    Return the bracket matches for the given number of alliances, in table order.

    Raises:
        ValueError: if num_alliances is outside 4..8
    """
    if num_alliances not in MATCH_MAPS:
        raise ValueError(
            f'Number of alliances must be between {MIN_ALLIANCES} and {MAX_ALLIANCES}, got {num_alliances}'
        )
    return [_build_match(row) for row in MATCH_MAPS[num_alliances]]
