"""
Flask JSON API for league and event tournaments.
"""
import os
import logging
import yaml
from datetime import timedelta
from functools import wraps
from flask import Flask, request, jsonify, session
from brackets.collaborators import EloRatingEngine, RoleAuthZ, YamlPointLedger, YamlRealMatchStore
from brackets.errors import TournamentError
from brackets.models import TournamentStatus
from brackets.service import TournamentService
from brackets.settings import load_settings
from brackets.storage import DataStore
from brackets.validation import parse_scope

app = Flask(__name__)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))

app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=3650)


def _settings_file() -> str:
    return os.path.join(DATA_DIR, 'settings.yaml')


def _users_file() -> str:
    return os.path.join(DATA_DIR, 'users.yaml')


def load_users() -> list:
    """Load user registry from YAML."""
    users_file = _users_file()
    if not os.path.exists(users_file):
        return []
    try:
        with open(users_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data.get('users', []) if data else []
    except Exception as e:
        app.logger.warning(f'Failed to parse {users_file}: {e}')
        return []


def authenticate_user(username: str, password: str) -> bool:
    """Check username/password. Returns True if valid."""
    from werkzeug.security import check_password_hash
    users = load_users()
    for u in users:
        if u['username'] == username.lower().strip():
            return check_password_hash(u['password_hash'], password)
    return False


def login_required(f):
    """Reject the request with 401 if the user is not authenticated."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def get_service() -> TournamentService:
    """Build a service wired to the YAML-backed collaborators in DATA_DIR."""
    settings = load_settings(_settings_file())
    store = DataStore(DATA_DIR, lock_timeout=settings['lock_timeout_seconds'])
    return TournamentService(
        store,
        authz=RoleAuthZ(store),
        real_matches=YamlRealMatchStore(store),
        ratings=EloRatingEngine(store, settings['elo']),
        ledger=YamlPointLedger(store),
        settings=settings,
    )


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    if error.status_code >= 500:
        app.logger.error(f'{type(error).__name__}: {error.message}')
    return jsonify(error.to_dict()), error.status_code


# ============================================================================
# Session
# ============================================================================

@app.route('/api/login', methods=['POST'])
def api_login():
    """Start a session for a registered user."""
    data = _json_body()
    username = data.get('username', '').strip()
    password = data.get('password', '')
    if not username or not password:
        return jsonify({'error': 'Username and password are required'}), 400
    if not authenticate_user(username, password):
        return jsonify({'error': 'Invalid username or password'}), 401
    session.permanent = True
    session['user'] = username.lower()
    return jsonify({'success': True, 'user': session['user']})


@app.route('/api/logout', methods=['POST'])
def api_logout():
    session.pop('user', None)
    return jsonify({'success': True})


# ============================================================================
# Tournaments
# ============================================================================

@app.route('/api/tournaments', methods=['GET'])
@login_required
def api_list_tournaments():
    """List tournaments of a league or event, optionally filtered by status."""
    scope = parse_scope(request.args)
    statuses = [s for s in request.args.getlist('status') if s in TournamentStatus.ALL]
    tournaments = get_service().list_tournaments(scope, statuses or None)
    return jsonify({'tournaments': tournaments})


@app.route('/api/tournaments', methods=['POST'])
@login_required
def api_create_tournament():
    data = get_service().create_tournament(session['user'], _json_body())
    return jsonify(data), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
@login_required
def api_get_tournament(tournament_id):
    return jsonify(get_service().get_tournament(tournament_id))


@app.route('/api/tournaments/<tournament_id>', methods=['PATCH'])
@login_required
def api_update_tournament(tournament_id):
    return jsonify(get_service().update_tournament(session['user'], tournament_id, _json_body()))


@app.route('/api/tournaments/<tournament_id>', methods=['DELETE'])
@login_required
def api_delete_tournament(tournament_id):
    get_service().delete_tournament(session['user'], tournament_id)
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/participants', methods=['POST'])
@login_required
def api_add_participant(tournament_id):
    participant = get_service().add_participant(session['user'], tournament_id, _json_body())
    return jsonify(participant), 201


@app.route('/api/tournaments/<tournament_id>/participants/<participant_id>', methods=['DELETE'])
@login_required
def api_remove_participant(tournament_id, participant_id):
    get_service().remove_participant(session['user'], tournament_id, participant_id)
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/seeds', methods=['POST'])
@login_required
def api_set_seeds(tournament_id):
    participants = get_service().set_manual_seeds(session['user'], tournament_id, _json_body())
    return jsonify({'participants': participants})


@app.route('/api/tournaments/<tournament_id>/generate', methods=['POST'])
@login_required
def api_generate_bracket(tournament_id):
    data = get_service().generate_bracket(session['user'], tournament_id)
    app.logger.info(f"Bracket generated for tournament {tournament_id} by {session['user']}")
    return jsonify(data)


@app.route('/api/tournaments/<tournament_id>/reseed', methods=['POST'])
@login_required
def api_reseed(tournament_id):
    data = get_service().reseed_tournament(session['user'], tournament_id)
    app.logger.info(f"Tournament {tournament_id} re-seeded by {session['user']}")
    return jsonify(data)


@app.route('/api/tournaments/<tournament_id>/revert-to-draft', methods=['POST'])
@login_required
def api_revert_to_draft(tournament_id):
    return jsonify(get_service().revert_to_draft(session['user'], tournament_id))


@app.route('/api/tournaments/<tournament_id>/swiss/next-round', methods=['POST'])
@login_required
def api_next_swiss_round(tournament_id):
    return jsonify(get_service().generate_next_swiss_round(session['user'], tournament_id))


@app.route('/api/tournaments/<tournament_id>/swiss/round-one', methods=['POST'])
@login_required
def api_manual_swiss_round_one(tournament_id):
    """Start a Swiss tournament with hand-made round 1 pairings."""
    return jsonify(get_service().manual_swiss_round_one(session['user'], tournament_id, _json_body()))


@app.route('/api/tournaments/<tournament_id>/swiss/rounds/<int:round_num>', methods=['PUT'])
@login_required
def api_update_swiss_round(tournament_id, round_num):
    return jsonify(get_service().update_swiss_round_pairings(
        session['user'], tournament_id, round_num, _json_body()))


@app.route('/api/tournaments/<tournament_id>/swiss/current-round', methods=['DELETE'])
@login_required
def api_delete_swiss_round(tournament_id):
    return jsonify(get_service().delete_swiss_current_round(session['user'], tournament_id))


@app.route('/api/tournaments/<tournament_id>/standings', methods=['GET'])
@login_required
def api_standings(tournament_id):
    return jsonify({'standings': get_service().get_standings(tournament_id)})


# ============================================================================
# Matches
# ============================================================================

@app.route('/api/matches/<match_id>/result', methods=['POST'])
@login_required
def api_record_result(match_id):
    return jsonify(get_service().record_match_result(session['user'], match_id, _json_body()))


@app.route('/api/matches/<match_id>/forfeit', methods=['POST'])
@login_required
def api_forfeit(match_id):
    return jsonify(get_service().forfeit_match(session['user'], match_id, _json_body()))


@app.route('/api/matches/<match_id>/undo', methods=['POST'])
@login_required
def api_undo(match_id):
    return jsonify(get_service().undo_match_result(session['user'], match_id))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000)
