"""
Qualification rankings from round-robin results.
"""
from functools import cmp_to_key
from typing import Dict, List

WIN_POINTS = 3
TIE_POINTS = 1
RP_FLAGS = ('coral_rp', 'auto_rp', 'barge_rp')


def is_played(match: Dict) -> bool:
    return match.get('red_score') is not None and match.get('blue_score') is not None


def bonus_ranking_points(match: Dict, side: str) -> int:
    """One ranking point per bonus objective the side achieved."""
    return sum(1 for flag in RP_FLAGS if match.get(f'{side}_{flag}'))


def head_to_head_wins(a_id, b_id, matches: List[Dict]):
    """Return (a_wins, b_wins) over played matches between the two alliances."""
    a_wins = 0
    b_wins = 0
    for match in matches:
        ids = (match.get('red_alliance_id'), match.get('blue_alliance_id'))
        if a_id not in ids or b_id not in ids or not is_played(match):
            continue
        if match['red_score'] > match['blue_score']:
            winner = match['red_alliance_id']
        elif match['blue_score'] > match['red_score']:
            winner = match['blue_alliance_id']
        else:
            continue
        if winner == a_id:
            a_wins += 1
        elif winner == b_id:
            b_wins += 1
    return a_wins, b_wins


def compute_rankings(alliances: List[Dict], matches: List[Dict]) -> List[Dict]:
    """
    Rank alliances from match results.

    A win is worth 3 ranking points and a tie 1 to each side; every bonus
    flag adds 1 more. Matches without both scores are ignored.

    Ranking: avg_rp (desc) -> head-to-head wins -> avg_score (desc) -> name

    Returns: [{'id', 'name', 'emblem_image_url', 'played', 'wins', 'losses',
               'ties', 'avg_rp', 'avg_score', 'rank'}, ...]
    """
    if not alliances:
        return []

    stats = {}
    for alliance in alliances:
        stats[alliance['id']] = {
            'id': alliance['id'],
            'name': alliance['name'],
            'emblem_image_url': alliance.get('emblem_image_url'),
            'played': 0,
            'wins': 0,
            'losses': 0,
            'ties': 0,
            'total_rp': 0,
            'total_score': 0,
        }

    for match in matches:
        red = stats.get(match.get('red_alliance_id'))
        blue = stats.get(match.get('blue_alliance_id'))
        if not red or not blue or not is_played(match):
            continue

        red_score = match['red_score']
        blue_score = match['blue_score']
        red['played'] += 1
        blue['played'] += 1

        if red_score > blue_score:
            red['wins'] += 1
            blue['losses'] += 1
            red['total_rp'] += WIN_POINTS
        elif blue_score > red_score:
            blue['wins'] += 1
            red['losses'] += 1
            blue['total_rp'] += WIN_POINTS
        else:
            red['ties'] += 1
            blue['ties'] += 1
            red['total_rp'] += TIE_POINTS
            blue['total_rp'] += TIE_POINTS

        red['total_rp'] += bonus_ranking_points(match, 'red')
        blue['total_rp'] += bonus_ranking_points(match, 'blue')
        red['total_score'] += red_score
        blue['total_score'] += blue_score

    for row in stats.values():
        played = row['played']
        row['avg_rp'] = row['total_rp'] / played if played else 0.0
        row['avg_score'] = row['total_score'] / played if played else 0.0

    def compare(a, b):
        if a['avg_rp'] != b['avg_rp']:
            return -1 if a['avg_rp'] > b['avg_rp'] else 1
        a_wins, b_wins = head_to_head_wins(a['id'], b['id'], matches)
        if a_wins != b_wins:
            return -1 if a_wins > b_wins else 1
        if a['avg_score'] != b['avg_score']:
            return -1 if a['avg_score'] > b['avg_score'] else 1
        if a['name'] != b['name']:
            return -1 if a['name'] < b['name'] else 1
        return 0

    ranked = sorted(stats.values(), key=cmp_to_key(compare))

    return [
        {
            'id': row['id'],
            'name': row['name'],
            'emblem_image_url': row['emblem_image_url'],
            'played': row['played'],
            'wins': row['wins'],
            'losses': row['losses'],
            'ties': row['ties'],
            'avg_rp': row['avg_rp'],
            'avg_score': row['avg_score'],
            'rank': index + 1,
        }
        for index, row in enumerate(ranked)
    ]
