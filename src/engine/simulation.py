"""
Random match results for dry runs of a tournament day.
"""
import random
from typing import Dict, List, Optional

from .models import SIDES
from .rankings import RP_FLAGS, is_played

# Chance of each bonus objective being achieved in a simulated match
RP_CHANCES = {'coral_rp': 0.3, 'auto_rp': 0.4, 'barge_rp': 0.25}


def generate_random_match_data(rng: Optional[random.Random] = None) -> Dict:
    """
    Scores and ranking-point flags for one simulated match.

    Auto scores fall in 0-20 and totals add another 20-80 on top of auto.
    """
    rng = rng or random.Random()
    data = {}
    for side in SIDES:
        auto_score = rng.randint(0, 20)
        data[f'{side}_auto_score'] = auto_score
        data[f'{side}_score'] = auto_score + rng.randint(20, 80)
    for side in SIDES:
        for flag in RP_FLAGS:
            data[f'{side}_{flag}'] = rng.random() < RP_CHANCES[flag]
    return data


def clear_match_result(match: Dict) -> Dict:
    """Remove scores and bonus flags from a match row in place."""
    for side in SIDES:
        match[f'{side}_score'] = None
        match[f'{side}_auto_score'] = None
        for flag in RP_FLAGS:
            match[f'{side}_{flag}'] = False
    return match


def simulate_unscored_matches(matches: List[Dict], rng: Optional[random.Random] = None) -> int:
    """Fill every unscored match with random results. Returns how many were filled."""
    rng = rng or random.Random()
    updated = 0
    for match in matches:
        if is_played(match):
            continue
        match.update(generate_random_match_data(rng))
        updated += 1
    return updated
