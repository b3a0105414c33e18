"""
Round-robin qualification schedule generation.

Every round is a complete round robin (each alliance meets every other
alliance once). The same match order is replayed each round with colours
swapped on alternate rounds, and one lunch break is placed at the first
round boundary at or after the desired lunch time.
"""
import logging
import random
import statistics
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .config import ScheduleConfig, parse_time

logger = logging.getLogger(__name__)

ROUND_ROBIN_MATCH_TYPE = 'round_robin'
MAX_IMPROVEMENT_ITERATIONS = 50
NON_ADJACENT_SWAP_EVERY = 5


def to_datetime(day, time_hhmm: str) -> datetime:
    """Combine a date with an "HH:MM" string."""
    return datetime.combine(day, parse_time(time_hhmm))


def add_minutes(dt: datetime, minutes) -> datetime:
    return dt + timedelta(minutes=minutes)


def in_range(dt: datetime, start: datetime, end: datetime) -> bool:
    return start <= dt <= end


def generate_round_robin_pairings(alliances: List[Dict]) -> List[Dict]:
    """
    Generate every pairing of alliances exactly once.

    The first remaining alliance plays everyone after it and is then dropped,
    so n alliances give n*(n-1)/2 pairings in a fixed order.
    """
    pairings = []
    remaining = list(alliances)
    while len(remaining) > 1:
        red = remaining[0]
        for blue in remaining[1:]:
            pairings.append({'red': red, 'blue': blue})
        remaining.pop(0)
    return pairings


def _pairing_ids(pairing: Dict) -> set:
    return {pairing['red']['id'], pairing['blue']['id']}


def optimize_with_greedy_approach(pairings: List[Dict]) -> List[Dict]:
    """Take the first remaining pairing that shares no alliance with the last one placed."""
    remaining = list(pairings)
    result = [remaining.pop(0)]

    while remaining:
        last_ids = _pairing_ids(result[-1])
        best_index = 0
        for i, pairing in enumerate(remaining):
            if not (_pairing_ids(pairing) & last_ids):
                best_index = i
                break
        result.append(remaining.pop(best_index))

    return result


def optimize_with_balanced_approach(pairings: List[Dict]) -> List[Dict]:
    """
    Score each candidate for the next slot and take the lowest.

    A back-to-back costs 100 and avoiding one earns -50. The pairing that
    closes the round is also charged 75 if it shares an alliance with the
    round's opening pairing, since the next round starts with that pairing.
    """
    remaining = list(pairings)
    result = [remaining.pop(0)]
    first_ids = _pairing_ids(result[0])

    while remaining:
        last_ids = _pairing_ids(result[-1])
        closes_round = len(result) == len(pairings) - 1
        best_index = -1
        best_score = float('inf')

        for i, pairing in enumerate(remaining):
            ids = _pairing_ids(pairing)
            score = 100 if ids & last_ids else -50
            if closes_round and ids & first_ids:
                score += 75
            if score < best_score:
                best_score = score
                best_index = i

        result.append(remaining.pop(best_index))

    return result


def optimize_with_random_approach(pairings: List[Dict], rng: Optional[random.Random] = None) -> List[Dict]:
    rng = rng or random.Random()
    shuffled = list(pairings)
    rng.shuffle(shuffled)
    return shuffled


def count_back_to_back(sequence: List[set], alliance_ids) -> Dict:
    """Count, per alliance, how often it appears in two consecutive matches."""
    counts = {alliance_id: 0 for alliance_id in alliance_ids}
    for current, following in zip(sequence, sequence[1:]):
        for alliance_id in current & following:
            counts[alliance_id] = counts.get(alliance_id, 0) + 1
    return counts


def evaluate_multi_round_schedule(pairings: List[Dict], alliances: List[Dict], total_rounds: int) -> float:
    """
    Score an order by replaying it for every round as one continuous timeline.

    Score is variance(back-to-back per alliance) * 1000 + total back-to-backs,
    so an even spread matters more than a small total. Lower is better.
    """
    sequence = [_pairing_ids(p) for p in pairings] * total_rounds
    counts = list(count_back_to_back(sequence, [a['id'] for a in alliances]).values())
    if not counts:
        return 0
    return statistics.pvariance(counts) * 1000 + sum(counts)


def improve_round_robin_order(pairings: List[Dict], alliances: List[Dict], total_rounds: int,
                              max_iterations: int = MAX_IMPROVEMENT_ITERATIONS) -> List[Dict]:
    """
    Hill-climb on the order with first-improvement swaps.

    Adjacent swaps are tried every iteration; when those stall on every fifth
    iteration, any two positions may be swapped. Stops at the first iteration
    that finds nothing better, or after max_iterations.
    """
    current = list(pairings)
    current_score = evaluate_multi_round_schedule(current, alliances, total_rounds)
    improved = True
    iterations = 0

    while improved and iterations < max_iterations:
        improved = False
        iterations += 1

        for i in range(len(current) - 1):
            candidate = list(current)
            candidate[i], candidate[i + 1] = candidate[i + 1], candidate[i]
            score = evaluate_multi_round_schedule(candidate, alliances, total_rounds)
            if score < current_score:
                current, current_score = candidate, score
                improved = True
                break

        if not improved and iterations % NON_ADJACENT_SWAP_EVERY == 0:
            for i in range(len(current) - 2):
                for j in range(i + 2, len(current)):
                    candidate = list(current)
                    candidate[i], candidate[j] = candidate[j], candidate[i]
                    score = evaluate_multi_round_schedule(candidate, alliances, total_rounds)
                    if score < current_score:
                        current, current_score = candidate, score
                        improved = True
                        break
                if improved:
                    break

    logger.debug("Order improvement finished after %d iterations, score %.2f", iterations, current_score)
    return current


def optimize_round_robin_order(base_pairings: List[Dict], alliances: List[Dict], total_rounds: int,
                               rng: Optional[random.Random] = None) -> List[Dict]:
    """Pick the best of the greedy, balanced and shuffled orders, then improve it."""
    if len(base_pairings) <= 1:
        return list(base_pairings)

    candidates = [
        ('greedy', optimize_with_greedy_approach(base_pairings)),
        ('balanced', optimize_with_balanced_approach(base_pairings)),
        ('random', optimize_with_random_approach(base_pairings, rng)),
    ]

    best_name, best_order = candidates[0]
    best_score = evaluate_multi_round_schedule(best_order, alliances, total_rounds)
    for name, order in candidates[1:]:
        score = evaluate_multi_round_schedule(order, alliances, total_rounds)
        if score < best_score:
            best_name, best_order, best_score = name, order, score

    logger.debug("Best starting order: %s (score %.2f)", best_name, best_score)
    return improve_round_robin_order(best_order, alliances, total_rounds)


def _lunch_block(start: datetime, duration: int) -> Dict:
    return {
        'start_time': start,
        'duration': duration,
        'activity': {'type': 'lunch', 'duration': duration},
    }


def generate_schedule(alliances: List[Dict], config: ScheduleConfig,
                      rng: Optional[random.Random] = None) -> List[Dict]:
    """
    Generate round-robin blocks and one lunch break.

    Args:
        alliances: list of {'id', 'name'} dicts
        config: ScheduleConfig
        rng: random source for the shuffled candidate order

    Returns list of blocks {'start_time', 'duration', 'activity'} in time
    order, where activity is either
    {'type': 'matches', 'round': <0-based>, 'matches': [...]} or
    {'type': 'lunch', 'duration': minutes}.

    Even rounds keep each pairing's colours and odd rounds swap them, so over
    an even number of rounds every alliance plays red and blue equally often
    against each opponent. With an odd number of rounds that cannot hold.

    Raises:
        ValueError: fewer than 2 alliances
    """
    if len(alliances) < 2:
        raise ValueError('Need at least 2 alliances.')

    base_pairings = generate_round_robin_pairings(alliances)
    ordered = optimize_round_robin_order(base_pairings, alliances, config.rr_rounds, rng)

    desired_lunch = to_datetime(config.day, config.desired_lunch_time)
    current_time = to_datetime(config.day, config.start_time)
    interval = config.interval_min
    blocks = []
    lunch_inserted = False

    for round_index in range(config.rr_rounds):
        if not lunch_inserted and current_time >= desired_lunch:
            blocks.append(_lunch_block(current_time, config.lunch_duration_min))
            lunch_inserted = True
            current_time = add_minutes(current_time, config.lunch_duration_min)

        round_start = current_time
        round_matches = []
        for pairing in ordered:
            if round_index % 2 == 0:
                red, blue = pairing['red'], pairing['blue']
            else:
                red, blue = pairing['blue'], pairing['red']
            round_matches.append({
                'id': str(uuid.uuid4()),
                'red_alliance_id': red['id'],
                'blue_alliance_id': blue['id'],
                'scheduled_at': current_time,
                'round': round_index + 1,
                'match_type': ROUND_ROBIN_MATCH_TYPE,
            })
            current_time = add_minutes(current_time, interval)

        blocks.append({
            'start_time': round_start,
            'duration': len(ordered) * interval,
            'activity': {'type': 'matches', 'round': round_index, 'matches': round_matches},
        })

    if not lunch_inserted:
        blocks.append(_lunch_block(current_time, config.lunch_duration_min))

    logger.info("Generated %d rounds of %d matches for %d alliances",
                config.rr_rounds, len(ordered), len(alliances))
    return blocks


def flatten_schedule_matches(blocks: List[Dict]) -> List[Dict]:
    """All match rows from the round blocks, in time order."""
    matches = []
    for block in blocks:
        if block['activity']['type'] in ('matches', 'playoffs'):
            matches.extend(block['activity']['matches'])
    return sorted(matches, key=lambda m: m['scheduled_at'])


def _lunch_overlap_minutes(start: datetime, end: datetime, blocks: Optional[List[Dict]]) -> float:
    overlap = 0.0
    for block in blocks or []:
        if block['activity']['type'] != 'lunch':
            continue
        lunch_start = block['start_time']
        lunch_end = add_minutes(lunch_start, block['duration'])
        if in_range(lunch_start, start, end) or in_range(start, lunch_start, lunch_end):
            overlap += (min(end, lunch_end) - max(start, lunch_start)).total_seconds() / 60
    return overlap


def calculate_schedule_stats(matches: List[Dict], alliances: List[Dict],
                             blocks: Optional[List[Dict]] = None) -> Optional[Dict]:
    """
    Per-alliance statistics for a generated schedule.

    Turnaround gaps are minutes between consecutive match start times with any
    lunch overlap taken out. Back-to-back counts are measured on the actual
    time-sorted matches, not on the optimizer's score.

    Returns None for an empty schedule, otherwise
    {'rows': [...], 'total_matches', 'total_rounds', 'avg_matches_per_alliance'}.
    """
    if not matches:
        return None

    match_counts = {}
    red_counts = {}
    blue_counts = {}
    times_by_alliance = {}

    for match in matches:
        red_id = match.get('red_alliance_id')
        blue_id = match.get('blue_alliance_id')
        if red_id is None or blue_id is None:
            continue
        match_counts[red_id] = match_counts.get(red_id, 0) + 1
        match_counts[blue_id] = match_counts.get(blue_id, 0) + 1
        red_counts[red_id] = red_counts.get(red_id, 0) + 1
        blue_counts[blue_id] = blue_counts.get(blue_id, 0) + 1
        if match.get('scheduled_at') is not None:
            times_by_alliance.setdefault(red_id, []).append(match['scheduled_at'])
            times_by_alliance.setdefault(blue_id, []).append(match['scheduled_at'])

    ordered = sorted(matches, key=lambda m: m.get('scheduled_at') or datetime.min)
    sequence = [{m.get('red_alliance_id'), m.get('blue_alliance_id')} - {None} for m in ordered]
    back_to_back = count_back_to_back(sequence, [a['id'] for a in alliances])

    rows = []
    for alliance in alliances:
        times = sorted(times_by_alliance.get(alliance['id'], []))
        gaps = []
        for previous, current in zip(times, times[1:]):
            gap = (current - previous).total_seconds() / 60
            gaps.append(gap - _lunch_overlap_minutes(previous, current, blocks))

        rows.append({
            'id': alliance['id'],
            'name': alliance['name'],
            'matches': match_counts.get(alliance['id'], 0),
            'red_matches': red_counts.get(alliance['id'], 0),
            'blue_matches': blue_counts.get(alliance['id'], 0),
            'avg_minutes': round(sum(gaps) / len(gaps), 1) if gaps else 0,
            'min_minutes': round(min(gaps), 1) if gaps else 0,
            'max_minutes': round(max(gaps), 1) if gaps else 0,
            'back_to_back_matches': back_to_back.get(alliance['id'], 0),
        })

    total_matches = len(matches)
    return {
        'rows': rows,
        'total_matches': total_matches,
        'total_rounds': max((m.get('round') or 0 for m in matches), default=0),
        'avg_matches_per_alliance': round(total_matches * 2 / len(rows), 2) if rows else 0,
    }
