"""
Services the bracket engine relies on but does not own: permissions,
league-wide match records, ratings and the point ledger.

Each has a small base class describing the contract and a YAML-backed
implementation on top of ``brackets.storage.DataStore``. Methods that take a
``uow`` write inside the caller's unit of work so they commit or roll back
together with the bracket.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from brackets.models import CompetitorRef, ScopeContext
from brackets.storage import DataStore

logger = logging.getLogger(__name__)


class Action:
    MANAGE_TOURNAMENTS = 'manage_tournaments'
    RECORD_MATCHES = 'record_matches'
    RECORD_FOR_OTHERS = 'record_for_others'


ROLE_PERMISSIONS = {
    'owner': {Action.MANAGE_TOURNAMENTS, Action.RECORD_MATCHES, Action.RECORD_FOR_OTHERS},
    'manager': {Action.MANAGE_TOURNAMENTS, Action.RECORD_MATCHES, Action.RECORD_FOR_OTHERS},
    'member': {Action.RECORD_MATCHES},
}


class AuthZ:
    def get_role(self, actor_id, scope: ScopeContext) -> Optional[str]:
        raise NotImplementedError

    def is_suspended(self, actor_id, scope: ScopeContext) -> bool:
        return False

    def can_manage(self, actor_role, action) -> bool:
        raise NotImplementedError

    def is_participant(self, actor_id, match_participants: Iterable[CompetitorRef]) -> bool:
        raise NotImplementedError


class RoleAuthZ(AuthZ):
    """Roles, suspensions and team rosters read from members.yaml."""

    def __init__(self, store: DataStore, role_permissions: Dict = None):
        self.store = store
        self.role_permissions = role_permissions or ROLE_PERMISSIONS

    def get_role(self, actor_id, scope):
        members = self.store.read('members')
        return members['scopes'].get(scope.key, {}).get(actor_id)

    def is_suspended(self, actor_id, scope):
        members = self.store.read('members')
        return actor_id in members['suspended'].get(scope.key, [])

    def can_manage(self, actor_role, action):
        return action in self.role_permissions.get(actor_role, set())

    def is_participant(self, actor_id, match_participants):
        teams = None
        for competitor in match_participants:
            if competitor.kind == CompetitorRef.USER and competitor.id == actor_id:
                return True
            if competitor.kind == CompetitorRef.TEAM:
                if teams is None:
                    teams = self.store.read('members')['teams']
                if actor_id in teams.get(competitor.id, []):
                    return True
        return False


class RealMatchStore:
    def create(self, uow, scope, game_type_id, played_at, side_assignments: List[Dict],
               recorder_id=None) -> str:
        raise NotImplementedError

    def delete(self, uow, match_id):
        raise NotImplementedError

    def get(self, match_id) -> Optional[Dict]:
        raise NotImplementedError


class YamlRealMatchStore(RealMatchStore):
    def __init__(self, store: DataStore):
        self.store = store

    def create(self, uow, scope, game_type_id, played_at, side_assignments, recorder_id=None):
        match_id = uuid.uuid4().hex
        uow.document('matches')['matches'][match_id] = {
            'id': match_id,
            'scope': scope.to_dict(),
            'game_type_id': game_type_id,
            'status': 'completed',
            'played_at': played_at,
            'recorder_id': recorder_id,
            'participants': side_assignments,
            'created_at': datetime.now().isoformat(),
        }
        return match_id

    def delete(self, uow, match_id):
        uow.document('matches')['matches'].pop(match_id, None)

    def get(self, match_id):
        return self.store.read('matches')['matches'].get(match_id)


class RatingEngine:
    def apply_match_result(self, match_id) -> bool:
        raise NotImplementedError

    def revert_match_result(self, match_id) -> bool:
        raise NotImplementedError


def expected_score(rating_a: float, rating_b: float) -> float:
    return 1.0 / (1.0 + 10.0 ** ((rating_b - rating_a) / 400.0))


RESULT_SCORES = {'win': 1.0, 'draw': 0.5, 'loss': 0.0}


class EloRatingEngine(RatingEngine):
    """
    Head-to-head Elo per game type. Applying or reverting the same match twice
    is a no-op; each applied delta is kept so a revert restores ratings exactly.
    """

    def __init__(self, store: DataStore, elo_settings: Dict):
        self.store = store
        self.starting_rating = elo_settings['starting_rating']
        self.k_factor = elo_settings['k_factor']
        self.provisional_k_factor = elo_settings['provisional_k_factor']
        self.provisional_threshold = elo_settings['provisional_match_threshold']

    def _k_factor(self, matches_played: int) -> float:
        if matches_played < self.provisional_threshold:
            return self.provisional_k_factor
        return self.k_factor

    def rating(self, game_type_id, competitor: CompetitorRef) -> float:
        ratings = self.store.read('ratings')['ratings']
        entry = ratings.get(f'{game_type_id}|{competitor.key}')
        return entry['rating'] if entry else self.starting_rating

    def apply_match_result(self, match_id):
        with self.store.transaction() as uow:
            match = uow.document('matches')['matches'].get(match_id)
            doc = uow.document('ratings')
            if match is None or match_id in doc['applied'] or len(match['participants']) != 2:
                return False

            rows = []
            for side in match['participants']:
                key = f"{match['game_type_id']}|{CompetitorRef.from_dict(side['competitor']).key}"
                entry = doc['ratings'].setdefault(
                    key, {'rating': self.starting_rating, 'matches_played': 0})
                rows.append((key, entry, RESULT_SCORES.get(side['result'], 0.0)))

            (key_a, a, score_a), (key_b, b, score_b) = rows
            delta_a = self._k_factor(a['matches_played']) * (score_a - expected_score(a['rating'], b['rating']))
            delta_b = self._k_factor(b['matches_played']) * (score_b - expected_score(b['rating'], a['rating']))
            for entry, delta in ((a, delta_a), (b, delta_b)):
                entry['rating'] = entry['rating'] + delta
                entry['matches_played'] += 1
            doc['applied'][match_id] = {key_a: delta_a, key_b: delta_b}
        logger.debug('Rating update for match %s: %+.1f / %+.1f', match_id, delta_a, delta_b)
        return True

    def revert_match_result(self, match_id):
        with self.store.transaction() as uow:
            doc = uow.document('ratings')
            deltas = doc['applied'].pop(match_id, None)
            if deltas is None:
                return False
            for key, delta in deltas.items():
                entry = doc['ratings'][key]
                entry['rating'] = entry['rating'] - delta
                entry['matches_played'] = max(0, entry['matches_played'] - 1)
        logger.debug('Reverted rating update for match %s', match_id)
        return True


class PointLedger:
    def insert_many(self, uow, entries: List[Dict]):
        raise NotImplementedError

    def delete_by_tournament(self, uow, tournament_id) -> int:
        raise NotImplementedError


class YamlPointLedger(PointLedger):
    def __init__(self, store: DataStore):
        self.store = store

    def insert_many(self, uow, entries):
        uow.document('points')['entries'].extend(entries)

    def delete_by_tournament(self, uow, tournament_id):
        doc = uow.document('points')
        kept = [e for e in doc['entries'] if e.get('tournament_id') != tournament_id]
        removed = len(doc['entries']) - len(kept)
        doc['entries'] = kept
        return removed

    def entries_for(self, tournament_id) -> List[Dict]:
        return [e for e in self.store.read('points')['entries']
                if e.get('tournament_id') == tournament_id]
