"""
Shared pytest fixtures for tournament engine tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.collaborators import EloRatingEngine, RoleAuthZ, YamlPointLedger, YamlRealMatchStore
from brackets.models import ScopeContext
from brackets.service import TournamentService
from brackets.settings import get_default_settings
from brackets.storage import DataStore

PLAYERS = ['alice', 'bob', 'carol', 'dave', 'erin', 'frank', 'gina', 'hank']

MEMBERS = {
    'scopes': {
        'league:L1': dict({'testuser': 'manager', 'owner1': 'owner', 'mallory': 'member'},
                          **{name: 'member' for name in PLAYERS}),
        'event:E1': dict({'testuser': 'manager'}, **{name: 'member' for name in PLAYERS}),
    },
    'teams': {
        'red': ['alice', 'bob'],
        'blue': ['carol', 'dave'],
        'green': ['erin', 'frank'],
    },
    'suspended': {
        'league:L1': ['mallory'],
    },
}


def write_members(data_dir, members=None):
    with open(os.path.join(str(data_dir), 'members.yaml'), 'w', encoding='utf-8') as f:
        yaml.dump(members or MEMBERS, f, default_flow_style=False)


@pytest.fixture
def data_dir(tmp_path):
    """Temporary data directory with a members.yaml for league L1 and event E1."""
    write_members(tmp_path)
    return tmp_path


@pytest.fixture
def store(data_dir):
    return DataStore(str(data_dir))


@pytest.fixture
def settings():
    return get_default_settings()


@pytest.fixture
def service(store, settings):
    """Service wired to the YAML collaborators with a deterministic RNG."""
    return TournamentService(
        store,
        authz=RoleAuthZ(store),
        real_matches=YamlRealMatchStore(store),
        ratings=EloRatingEngine(store, settings['elo']),
        ledger=YamlPointLedger(store),
        settings=settings,
        rng=random.Random(42),
    )


@pytest.fixture
def league():
    return ScopeContext(ScopeContext.LEAGUE, 'L1')


@pytest.fixture
def make_tournament(service):
    """Factory: create a tournament in league L1 and add the first N players."""
    def _make(count, **fields):
        data = {'name': fields.pop('name', f'Cup {count}'), 'game_type_id': 'chess',
                'scope_kind': 'league', 'scope_id': 'L1'}
        data.update(fields)
        tournament = service.create_tournament('testuser', data)['tournament']
        participants = [
            service.add_participant('testuser', tournament['id'], {'user_id': name})
            for name in PLAYERS[:count]
        ]
        return tournament, participants
    return _make


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the Flask app at a temporary data directory."""
    import app as app_module

    write_members(tmp_path)
    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    return tmp_path


@pytest.fixture
def client(temp_data_dir):
    """Create an authenticated test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'testuser'
        yield client
