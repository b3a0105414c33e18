# Command line entry point: print a qualification schedule and playoff bracket

import argparse
import logging
import os
import random

import yaml

from engine.config import ScheduleConfig, load_settings, parse_day, validate_settings
from engine.double_elimination import generate_double_elimination_bracket, build_playoff_blocks
from engine.models import Alliance
from engine.round_robin import generate_schedule, flatten_schedule_matches, calculate_schedule_stats, to_datetime


def load_alliances(file_path):
    """Alliances file holds either a list of {id, name} mappings or a list of names."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    alliances = []
    for entry in data:
        if isinstance(entry, dict):
            alliances.append(Alliance.from_dict(entry).to_dict())
        else:
            alliances.append(Alliance(id=str(entry), name=str(entry)).to_dict())
    return alliances


def print_schedule(blocks, names):
    print("\n--- Qualification Schedule ---")
    for block in blocks:
        activity = block['activity']
        start = block['start_time'].strftime('%H:%M')
        if activity['type'] == 'lunch':
            print(f"\n{start}  Lunch ({activity['duration']} min)")
            continue
        print(f"\n{start}  Round {activity['round'] + 1}")
        for match in activity['matches']:
            print(f"  {match['scheduled_at'].strftime('%H:%M')}: "
                  f"{names[match['red_alliance_id']]} (red) vs {names[match['blue_alliance_id']]} (blue)")


def print_stats(stats):
    if not stats:
        print("No matches scheduled.")
        return
    print("\n--- Statistics ---")
    print(f"Total matches: {stats['total_matches']}, rounds: {stats['total_rounds']}, "
          f"matches per alliance: {stats['avg_matches_per_alliance']}")
    for row in stats['rows']:
        print(f"  {row['name']}: {row['matches']} matches ({row['red_matches']} red / {row['blue_matches']} blue), "
              f"turnaround avg {row['avg_minutes']} min, min {row['min_minutes']}, max {row['max_minutes']}, "
              f"back-to-back {row['back_to_back_matches']}")


def print_playoffs(blocks, names):
    print("\n--- Playoffs ---")
    for block in blocks:
        activity = block['activity']
        print(f"\n{block['start_time'].strftime('%H:%M')}  {activity['description']}")
        for match in activity['matches']:
            red = names.get(match['red_alliance_id'], 'TBD')
            blue = names.get(match['blue_alliance_id'], 'TBD')
            print(f"  M{match['bracket_match_id']} {match['scheduled_at'].strftime('%H:%M')}: {red} vs {blue}")


def build_parser():
    parser = argparse.ArgumentParser(description="Generate a round-robin schedule and playoff bracket.")
    parser.add_argument('alliances', help="YAML file listing the alliances")
    parser.add_argument('--settings', help="YAML settings file (defaults are used for anything missing)")
    parser.add_argument('--day', help="Event day as YYYY-MM-DD (default: today)")
    parser.add_argument('--playoffs', type=int, metavar='N',
                        help="Also print an N-alliance playoff bracket seeded in list order")
    parser.add_argument('-v', '--verbose', action='store_true', help="Show debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    if not os.path.exists(args.alliances):
        print(f"Alliances file not found: {args.alliances}")
        return 1

    alliances = load_alliances(args.alliances)
    settings = load_settings(args.settings)
    names = {a['id']: a['name'] for a in alliances}

    try:
        validate_settings(settings)
        config = ScheduleConfig.from_settings(settings, day=args.day)
        seed = settings.get('random_seed')
        rng = random.Random(seed) if seed is not None else random.Random()
        blocks = generate_schedule(alliances, config, rng=rng)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    matches = flatten_schedule_matches(blocks)
    print_schedule(blocks, names)
    print_stats(calculate_schedule_stats(matches, alliances, blocks))

    if args.playoffs:
        if args.playoffs > len(alliances):
            print(f"Error: {args.playoffs} playoff alliances requested but only {len(alliances)} loaded")
            return 1
        seeds = [a['id'] for a in alliances[:args.playoffs]]
        start = to_datetime(parse_day(args.day), settings['playoff_start_time'])
        interval = int(settings['playoff_interval_minutes'])
        try:
            bracket = generate_double_elimination_bracket(args.playoffs, start, interval, seeds=seeds)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
        print_playoffs(build_playoff_blocks(bracket['matches'], interval, args.playoffs), names)

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
