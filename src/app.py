"""
Flask JSON API for the alliance tournament engine.

Stores alliances, settings, the round-robin schedule, match scores and
playoff bracket state as YAML files in the data directory. Writes are
serialised with a file lock so two result submissions for the same
tournament cannot interleave.
"""
import os
import random
from datetime import date, datetime

import yaml
from filelock import FileLock, Timeout
from flask import Flask, jsonify, request

from engine.bracket import BracketManager
from engine.config import ScheduleConfig, load_settings, save_settings, parse_day, validate_settings
from engine.double_elimination import PLAYOFF_MATCH_TYPE, generate_double_elimination_bracket, build_playoff_blocks
from engine.models import Alliance, SIDES, RED, BLUE, is_seed_ref, seed_rank
from engine.rankings import compute_rankings, is_played, RP_FLAGS
from engine.round_robin import (
    ROUND_ROBIN_MATCH_TYPE, generate_schedule, flatten_schedule_matches, calculate_schedule_stats, to_datetime,
)
from engine.simulation import generate_random_match_data, clear_match_result, simulate_unscored_matches

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT_SECONDS = 10


def _file_path(filename: str) -> str:
    return os.path.join(DATA_DIR, filename)


def _data_lock() -> FileLock:
    os.makedirs(DATA_DIR, exist_ok=True)
    return FileLock(_file_path('.lock'), timeout=LOCK_TIMEOUT_SECONDS)


def _load_yaml(filename, default):
    path = _file_path(filename)
    if not os.path.exists(path):
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return default
    return data if data is not None else default


def _save_yaml(filename, data):
    os.makedirs(DATA_DIR, exist_ok=True)
    with open(_file_path(filename), 'w', encoding='utf-8') as f:
        yaml.dump(_convert_to_serializable(data), f, default_flow_style=False, sort_keys=False)


def _convert_to_serializable(obj):
    """Convert tuples to lists recursively for YAML serialization."""
    if isinstance(obj, dict):
        return {k: _convert_to_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_convert_to_serializable(item) for item in obj]
    else:
        return obj


def _to_json(obj):
    """Like _convert_to_serializable, with datetimes rendered as ISO strings."""
    if isinstance(obj, dict):
        return {str(k): _to_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_to_json(item) for item in obj]
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    else:
        return obj


def load_alliances():
    """Load alliances as a list of {'id', 'name', 'emblem_image_url'} dicts."""
    data = _load_yaml('alliances.yaml', [])
    return [Alliance.from_dict(a).to_dict() for a in data]


def save_alliances(alliances):
    _save_yaml('alliances.yaml', alliances)


def load_settings_file():
    return load_settings(_file_path('settings.yaml'))


def load_schedule():
    """Load saved schedule blocks and stats."""
    data = _load_yaml('schedule.yaml', {})
    return data.get('blocks'), data.get('stats')


def save_schedule(blocks, stats):
    _save_yaml('schedule.yaml', {'blocks': blocks, 'stats': stats})


def load_matches():
    return _load_yaml('matches.yaml', [])


def save_matches(matches):
    _save_yaml('matches.yaml', matches)


def load_bracket():
    return _load_yaml('bracket.yaml', None)


def save_bracket(bracket_data):
    _save_yaml('bracket.yaml', bracket_data)


def _rng_from_settings(settings):
    seed = settings.get('random_seed')
    return random.Random(seed) if seed is not None else random.Random()


def build_bracket_manager(bracket_data) -> BracketManager:
    """Rebuild a BracketManager by replaying the stored completed results."""
    manager = BracketManager(bracket_data['num_alliances'])
    for match_id, state in (bracket_data.get('states') or {}).items():
        if state.get('is_completed'):
            manager.update_match_result(int(match_id), state['winner'],
                                        state.get('red_alliance_id'), state.get('blue_alliance_id'))
    return manager


def _initial_slots(manager, seeds):
    """Fill every seed slot in the bracket from the ranked seed list."""
    slots = {}
    for match in manager.get_matches():
        resolved = _resolve_with_seeds(manager, match, seeds)
        slots[match.id] = {side: resolved[f'{side}_alliance_id'] for side in SIDES}
    return slots


def _champion_alliance(manager):
    for match_id, state in manager.match_states.items():
        if state.is_completed and state.winner and manager.is_championship_win(match_id, state.winner):
            return state.alliance_id(state.winner)
    return None


def _resolve_with_seeds(manager, match, seeds):
    """Resolved alliances for a match, with seed references looked up in the seed list."""
    resolved = manager.resolve_match_alliances(match.id)
    for side in SIDES:
        source = match.source(side)
        if is_seed_ref(source) and seed_rank(source) <= len(seeds):
            resolved[f'{side}_alliance_id'] = seeds[seed_rank(source) - 1]
    return resolved


def describe_bracket(bracket_data):
    manager = build_bracket_manager(bracket_data)
    slots = bracket_data.get('slots') or {}
    seeds = bracket_data.get('seeds') or []
    matches = []
    for match in manager.get_matches():
        matches.append({
            'id': match.id,
            'bracket': match.bracket,
            'round': match.round,
            'match_number': match.match_number,
            'red_from': match.red_from,
            'blue_from': match.blue_from,
            'red_advancement': match.red_advancement,
            'blue_advancement': match.blue_advancement,
            'state': manager.get_match_state(match.id).to_dict(),
            'slots': slots.get(match.id, {'red': None, 'blue': None}),
            'resolved_alliances': _resolve_with_seeds(manager, match, seeds),
            'is_ready': manager.is_match_ready(match.id),
        })
    return {
        'num_alliances': bracket_data['num_alliances'],
        'seeds': bracket_data.get('seeds', []),
        'matches': matches,
        'ready_matches': manager.get_ready_matches(),
        'champion': manager.get_current_champion(),
        'champion_alliance_id': _champion_alliance(manager),
    }


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


@app.errorhandler(ValueError)
def handle_value_error(e):
    app.logger.warning(f'Rejected request to {request.path}: {e}')
    return _error(str(e), 400)


@app.errorhandler(Timeout)
def handle_lock_timeout(e):
    app.logger.error(f'Data lock busy for {request.path}: {e}')
    return _error('Another update is in progress, try again', 409)


@app.route('/api/alliances', methods=['GET'])
def api_get_alliances():
    return jsonify({'success': True, 'alliances': load_alliances()})


@app.route('/api/alliances', methods=['POST'])
def api_save_alliances():
    """Replace the alliance list. Body: {'alliances': [{'id', 'name'}, ...]}."""
    data = request.get_json(silent=True) or {}
    raw = data.get('alliances')
    if not isinstance(raw, list):
        return _error('alliances must be a list', 400)
    try:
        alliances = [Alliance.from_dict(a).to_dict() for a in raw]
    except (KeyError, TypeError):
        return _error('Each alliance needs an id and a name', 400)
    ids = [a['id'] for a in alliances]
    if len(set(ids)) != len(ids):
        return _error('Alliance ids must be unique', 400)
    with _data_lock():
        save_alliances(alliances)
    return jsonify({'success': True, 'alliances': alliances})


@app.route('/api/settings', methods=['GET'])
def api_get_settings():
    return jsonify({'success': True, 'settings': load_settings_file()})


@app.route('/api/settings', methods=['POST'])
def api_update_settings():
    data = request.get_json(silent=True) or {}
    with _data_lock():
        settings = load_settings_file()
        settings.update(data)
        validate_settings(settings)
        save_settings(_file_path('settings.yaml'), settings)
    return jsonify({'success': True, 'settings': settings})


@app.route('/api/schedule/generate', methods=['POST'])
def api_generate_schedule():
    """Generate the round-robin schedule for the stored alliances. Body: {'day': 'YYYY-MM-DD'}."""
    data = request.get_json(silent=True) or {}
    settings = validate_settings(load_settings_file())
    config = ScheduleConfig.from_settings(settings, day=data.get('day'))
    alliances = load_alliances()

    blocks = generate_schedule(alliances, config, rng=_rng_from_settings(settings))
    matches = flatten_schedule_matches(blocks)
    stats = calculate_schedule_stats(matches, alliances, blocks)

    with _data_lock():
        save_schedule(blocks, stats)
        save_matches(matches)
    app.logger.info(f'Generated schedule with {len(matches)} matches for {len(alliances)} alliances')
    return jsonify({'success': True, 'blocks': _to_json(blocks), 'stats': stats})


@app.route('/api/schedule', methods=['GET'])
def api_get_schedule():
    blocks, stats = load_schedule()
    return jsonify({'success': True, 'blocks': _to_json(blocks or []), 'stats': stats})


@app.route('/api/matches', methods=['GET'])
def api_get_matches():
    return jsonify({'success': True, 'matches': _to_json(load_matches())})


@app.route('/api/matches/<match_id>/score', methods=['POST'])
def api_record_score(match_id):
    """Record scores and ranking-point flags for a round-robin match."""
    data = request.get_json(silent=True) or {}
    red_score = data.get('red_score')
    blue_score = data.get('blue_score')
    for score in (red_score, blue_score):
        if not isinstance(score, int) or isinstance(score, bool) or score < 0:
            return _error('Scores must be non-negative integers', 400)

    with _data_lock():
        matches = load_matches()
        match = next((m for m in matches if m.get('id') == match_id), None)
        if match is None:
            return _error('Match not found', 404)
        match['red_score'] = red_score
        match['blue_score'] = blue_score
        for side in SIDES:
            for flag in RP_FLAGS:
                key = f'{side}_{flag}'
                match[key] = bool(data.get(key, False))
        save_matches(matches)
    return jsonify({'success': True, 'match': _to_json(match)})


@app.route('/api/rankings', methods=['GET'])
def api_rankings():
    return jsonify({'success': True, 'rankings': compute_rankings(load_alliances(), load_matches())})


@app.route('/api/playoffs/initialize', methods=['POST'])
def api_initialize_playoffs():
    """
    Seed the top ranked alliances into a fresh double elimination bracket.

    Body: {'num_alliances': n, 'day': 'YYYY-MM-DD', 'reset': bool}; all optional.
    A bracket that already has results is only replaced when reset is true.
    """
    data = request.get_json(silent=True) or {}
    with _data_lock():
        existing = load_bracket()
        if existing and _completed_playoff_matches(existing) and data.get('reset') is not True:
            return _error('Playoff results have already been recorded; pass reset to start over', 409)

        settings = load_settings_file()
        num_alliances = int(data.get('num_alliances') or settings['num_playoff_alliances'])
        rankings = compute_rankings(load_alliances(), load_matches())
        if len(rankings) < num_alliances:
            return _error(f'Need {num_alliances} ranked alliances, have {len(rankings)}', 400)

        seeds = [row['id'] for row in rankings[:num_alliances]]
        start_time = to_datetime(parse_day(data.get('day')), settings['playoff_start_time'])
        interval = int(settings['playoff_interval_minutes'])
        generated = generate_double_elimination_bracket(num_alliances, start_time, interval, seeds=seeds)
        manager = BracketManager(num_alliances)

        bracket_data = {
            'num_alliances': num_alliances,
            'seeds': seeds,
            'interval_minutes': interval,
            'matches': generated['matches'],
            'slots': _initial_slots(manager, seeds),
        }
        _sync_playoff_rows(bracket_data, manager)
        save_bracket(bracket_data)
    app.logger.info(f'Initialized {num_alliances}-alliance playoffs')
    return jsonify({'success': True, 'bracket': _to_json(describe_bracket(bracket_data)),
                    'blocks': _to_json(bracket_data['blocks'])})


@app.route('/api/playoffs', methods=['GET'])
def api_get_playoffs():
    bracket_data = load_bracket()
    if not bracket_data:
        return _error('Playoffs have not been initialized', 404)
    return jsonify({'success': True, 'bracket': _to_json(describe_bracket(bracket_data)),
                    'blocks': _to_json(bracket_data.get('blocks') or [])})


def _completed_playoff_matches(bracket_data):
    return [match_id for match_id, state in (bracket_data.get('states') or {}).items()
            if state.get('is_completed')]


def _sync_playoff_rows(bracket_data, manager):
    """Copy slot assignments onto the playoff rows and rebuild states and blocks."""
    for row in bracket_data['matches']:
        slot = bracket_data['slots'].get(row['bracket_match_id'], {})
        row['red_alliance_id'] = slot.get('red')
        row['blue_alliance_id'] = slot.get('blue')
    bracket_data['blocks'] = build_playoff_blocks(bracket_data['matches'], bracket_data['interval_minutes'],
                                                  bracket_data['num_alliances'])
    bracket_data['states'] = {match_id: state.to_dict() for match_id, state in manager.match_states.items()}


def _record_playoff_result(bracket_data, manager, bracket_match_id, winner):
    """
    Record a playoff winner and move both alliances on.

    Returns an (error message, status) pair when the result cannot be taken,
    otherwise None. The caller holds the data lock and saves.
    """
    if manager.get_match(bracket_match_id) is None:
        return 'Bracket match not found', 404
    if manager.get_match_state(bracket_match_id).is_completed:
        return 'Result already recorded', 409
    if not manager.is_match_ready(bracket_match_id):
        return 'Earlier matches feeding this one are not complete', 409

    slots = bracket_data['slots'].setdefault(bracket_match_id, {'red': None, 'blue': None})
    if not slots.get('red') or not slots.get('blue'):
        return 'Both alliances must be known before recording a result', 400

    manager.update_match_result(bracket_match_id, winner, slots['red'], slots['blue'])
    for advance in manager.get_advancing_alliances(bracket_match_id):
        target = bracket_data['slots'].setdefault(advance['match_id'], {'red': None, 'blue': None})
        target[advance['side']] = advance['alliance_id']

    if manager.is_championship_win(bracket_match_id, winner):
        app.logger.info(f'Alliance {slots[winner]} won the championship in match {bracket_match_id}')
    return None


@app.route('/api/playoffs/<int:bracket_match_id>/result', methods=['POST'])
def api_record_playoff_result(bracket_match_id):
    """
    Record the winner of a playoff match. Body: {'winner': 'red' | 'blue'}.

    The alliances come from the match's filled slots. After recording, the
    winner and loser are placed into the matches they advance to.
    """
    data = request.get_json(silent=True) or {}
    winner = data.get('winner')
    if winner not in SIDES:
        return _error("winner must be 'red' or 'blue'", 400)

    with _data_lock():
        bracket_data = load_bracket()
        if not bracket_data:
            return _error('Playoffs have not been initialized', 404)
        manager = build_bracket_manager(bracket_data)
        failure = _record_playoff_result(bracket_data, manager, bracket_match_id, winner)
        if failure:
            return _error(*failure)
        _sync_playoff_rows(bracket_data, manager)
        save_bracket(bracket_data)

    path = manager.get_advancement_path(bracket_match_id, winner)
    return jsonify({'success': True, 'advancement': path, 'bracket': _to_json(describe_bracket(bracket_data))})


def _match_type_from_request(data):
    match_type = data.get('match_type')
    if match_type not in (ROUND_ROBIN_MATCH_TYPE, PLAYOFF_MATCH_TYPE):
        raise ValueError(f"match_type must be '{ROUND_ROBIN_MATCH_TYPE}' or '{PLAYOFF_MATCH_TYPE}'")
    return match_type


def _simulate_playoffs(bracket_data, rng):
    """Play every open playoff match with random scores until the bracket stops moving."""
    manager = build_bracket_manager(bracket_data)
    rows = {row['bracket_match_id']: row for row in bracket_data['matches']}
    played = 0
    progressed = True
    while progressed:
        progressed = False
        for match in manager.get_matches():
            if manager.get_match_state(match.id).is_completed or manager.get_current_champion():
                continue
            slots = bracket_data['slots'].get(match.id) or {}
            if not manager.is_match_ready(match.id) or not slots.get('red') or not slots.get('blue'):
                continue
            result = generate_random_match_data(rng)
            if result['red_score'] == result['blue_score']:
                # Playoff matches cannot end level
                result['red_score'] += 1
            winner = RED if result['red_score'] > result['blue_score'] else BLUE
            rows[match.id].update(result)
            _record_playoff_result(bracket_data, manager, match.id, winner)
            played += 1
            progressed = True
    _sync_playoff_rows(bracket_data, manager)
    return played


@app.route('/api/matches/simulate', methods=['POST'])
def api_simulate_matches():
    """
    Fill unscored matches with random results. Body: {'match_type': 'round_robin' | 'playoff'}.

    Playoff simulation plays the bracket forward, so later matches are filled
    once their alliances are known.
    """
    data = request.get_json(silent=True) or {}
    match_type = _match_type_from_request(data)
    rng = _rng_from_settings(validate_settings(load_settings_file()))

    with _data_lock():
        if match_type == ROUND_ROBIN_MATCH_TYPE:
            matches = load_matches()
            updated = simulate_unscored_matches(
                [m for m in matches if m.get('match_type') == ROUND_ROBIN_MATCH_TYPE], rng)
            if updated:
                save_matches(matches)
        else:
            bracket_data = load_bracket()
            if not bracket_data:
                return _error('Playoffs have not been initialized', 404)
            updated = _simulate_playoffs(bracket_data, rng)
            if updated:
                save_bracket(bracket_data)

    if not updated:
        return _error(f"No unscored {match_type.replace('_', ' ')} matches found", 400)
    app.logger.info(f'Simulated {updated} {match_type} matches')
    return jsonify({'success': True, 'match_type': match_type, 'updated_count': updated})


@app.route('/api/matches/reset', methods=['POST'])
def api_reset_matches():
    """
    Clear results for one match type. Body: {'match_type': 'round_robin' | 'playoff'}.

    Resetting playoffs also clears every alliance placed by a result, leaving
    only the seeded slots.
    """
    data = request.get_json(silent=True) or {}
    match_type = _match_type_from_request(data)

    with _data_lock():
        if match_type == ROUND_ROBIN_MATCH_TYPE:
            matches = load_matches()
            for match in matches:
                if match.get('match_type') == ROUND_ROBIN_MATCH_TYPE:
                    clear_match_result(match)
            save_matches(matches)
        else:
            bracket_data = load_bracket()
            if not bracket_data:
                return _error('Playoffs have not been initialized', 404)
            manager = BracketManager(bracket_data['num_alliances'])
            bracket_data['slots'] = _initial_slots(manager, bracket_data.get('seeds') or [])
            for row in bracket_data['matches']:
                clear_match_result(row)
            _sync_playoff_rows(bracket_data, manager)
            save_bracket(bracket_data)

    app.logger.info(f'Reset {match_type} matches')
    return jsonify({'success': True, 'match_type': match_type})


@app.route('/api/status', methods=['GET'])
def api_status():
    """Progress of the event: whether qualification is done and playoffs can start."""
    round_robin = [m for m in load_matches() if m.get('match_type') == ROUND_ROBIN_MATCH_TYPE]
    played = sum(1 for m in round_robin if is_played(m))
    round_robin_complete = bool(round_robin) and played == len(round_robin)

    bracket_data = load_bracket()
    playoffs_initialized = bool(bracket_data)
    champion_alliance_id = None
    playoff_completed = 0
    playoff_total = 0
    if playoffs_initialized:
        manager = build_bracket_manager(bracket_data)
        champion_alliance_id = _champion_alliance(manager)
        playoff_completed = len(_completed_playoff_matches(bracket_data))
        playoff_total = len(manager.matches)

    return jsonify({
        'success': True,
        'round_robin_complete': round_robin_complete,
        'round_robin_played': played,
        'round_robin_total': len(round_robin),
        'playoffs_initialized': playoffs_initialized,
        'should_initialize_playoffs': round_robin_complete and not playoffs_initialized,
        'playoff_completed': playoff_completed,
        'playoff_total': playoff_total,
        'champion_alliance_id': champion_alliance_id,
    })


if __name__ == '__main__':
    app.run(debug=True, port=5000)
