"""
YAML-backed persistence with transaction-scoped units of work.

Each document (``tournaments``, ``matches``, ``points``, ``ratings``,
``members``) lives in ``<data_dir>/<name>.yaml``. Writers go through
``DataStore.transaction()``, which holds an exclusive file lock for the whole
operation and writes every touched document only when the block exits
cleanly. Readers use ``DataStore.read()`` without locking; documents are
replaced atomically so a reader always sees a committed version.
"""
import copy
import logging
import os
import tempfile
from contextlib import contextmanager

import yaml
from filelock import FileLock

from brackets.models import Participant, RoundMatch, Tournament

logger = logging.getLogger(__name__)


DOCUMENT_DEFAULTS = {
    'tournaments': {'tournaments': {}, 'participants': {}, 'round_matches': {}},
    'matches': {'matches': {}, 'rating_outbox': []},
    'points': {'entries': []},
    'ratings': {'ratings': {}, 'applied': {}},
    'members': {'scopes': {}, 'teams': {}, 'suspended': {}},
}


def _empty_document(name: str) -> dict:
    return copy.deepcopy(DOCUMENT_DEFAULTS.get(name, {}))


class DataStore:
    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    def path(self, name: str) -> str:
        return os.path.join(self.data_dir, f'{name}.yaml')

    def read(self, name: str) -> dict:
        """Return the last committed content of a document."""
        path = self.path(name)
        if not os.path.exists(path):
            return _empty_document(name)
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data:
            return _empty_document(name)
        for key, value in _empty_document(name).items():
            data.setdefault(key, value)
        return data

    @staticmethod
    def dump(data: dict) -> str:
        # Row order is meaningful (participants keep their entry order).
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)

    def read_text(self, name: str):
        """Raw committed text of a document, or None when it was never written."""
        path = self.path(name)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def write_text(self, name: str, text):
        """Atomically replace a document with ``text``; None removes it."""
        if text is None:
            if os.path.exists(self.path(name)):
                os.remove(self.path(name))
            return
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f'.{name}-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.replace(tmp_path, self.path(name))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def write(self, name: str, data: dict):
        """Atomically replace a document on disk."""
        self.write_text(name, self.dump(data))

    def view(self) -> 'UnitOfWork':
        """Lock-free read view over the committed documents; never written back."""
        return UnitOfWork(self)

    @contextmanager
    def transaction(self):
        """All-or-nothing unit of work over the store's documents."""
        with self._lock:
            uow = UnitOfWork(self)
            yield uow
            uow.commit()
        uow.run_after_commit()


class UnitOfWork:
    def __init__(self, store: DataStore):
        self.store = store
        self._documents = {}
        self._after_commit = []
        self.committed = False

    def document(self, name: str) -> dict:
        """Private working copy of a document; written back on commit."""
        if name not in self._documents:
            self._documents[name] = self.store.read(name)
        return self._documents[name]

    def after_commit(self, callback):
        self._after_commit.append(callback)

    def commit(self):
        """
        Write every touched document, or none of them.

        All documents are serialized before the first file is replaced. If a
        later write fails, the documents already replaced are restored to
        their previous committed text before the error propagates.
        """
        staged = {name: self.store.dump(data) for name, data in self._documents.items()}
        previous = {name: self.store.read_text(name) for name in staged}
        written = []
        try:
            for name, text in staged.items():
                self.store.write_text(name, text)
                written.append(name)
        except Exception:
            logger.error('Commit failed after writing %s; restoring previous versions',
                         ', '.join(written) or 'nothing')
            for name in reversed(written):
                self.store.write_text(name, previous[name])
            raise
        self.committed = True
        logger.debug('Committed documents: %s', ', '.join(sorted(self._documents)))

    def run_after_commit(self):
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            callback()


class TournamentRepository:
    """Row-level access to tournaments, participants and round matches inside a unit of work."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.doc = uow.document('tournaments')

    # Tournaments

    def get_tournament(self, tournament_id):
        data = self.doc['tournaments'].get(tournament_id)
        return Tournament.from_dict(data) if data else None

    def list_tournaments(self, scope=None, statuses=None):
        tournaments = [Tournament.from_dict(d) for d in self.doc['tournaments'].values()]
        if scope is not None:
            tournaments = [t for t in tournaments if t.scope == scope]
        if statuses:
            tournaments = [t for t in tournaments if t.status in statuses]
        return sorted(tournaments, key=lambda t: (t.created_at or '', t.name))

    def name_exists(self, scope, name, exclude_id=None) -> bool:
        lowered = name.strip().lower()
        return any(
            t.name.strip().lower() == lowered and t.id != exclude_id
            for t in self.list_tournaments(scope)
        )

    def save_tournament(self, tournament):
        self.doc['tournaments'][tournament.id] = tournament.to_dict()

    def delete_tournament(self, tournament_id):
        self.doc['tournaments'].pop(tournament_id, None)
        for table in ('participants', 'round_matches'):
            rows = self.doc[table]
            for row_id in [k for k, v in rows.items() if v['tournament_id'] == tournament_id]:
                del rows[row_id]

    # Participants

    def get_participant(self, participant_id):
        data = self.doc['participants'].get(participant_id)
        return Participant.from_dict(data) if data else None

    def participants_for(self, tournament_id):
        return [Participant.from_dict(d) for d in self.doc['participants'].values()
                if d['tournament_id'] == tournament_id]

    def save_participant(self, participant):
        self.doc['participants'][participant.id] = participant.to_dict()

    def delete_participant(self, participant_id):
        self.doc['participants'].pop(participant_id, None)

    # Round matches

    def get_round_match(self, match_id):
        data = self.doc['round_matches'].get(match_id)
        return RoundMatch.from_dict(data) if data else None

    def round_matches_for(self, tournament_id):
        matches = [RoundMatch.from_dict(d) for d in self.doc['round_matches'].values()
                   if d['tournament_id'] == tournament_id]
        return sorted(matches, key=lambda m: (m.round, m.position))

    def save_round_match(self, match):
        self.doc['round_matches'][match.id] = match.to_dict()

    def delete_round_matches(self, tournament_id, round_num=None):
        """Delete a tournament's bracket rows, or only those of one round."""
        rows = self.doc['round_matches']
        doomed = [k for k, v in rows.items() if v['tournament_id'] == tournament_id
                  and (round_num is None or v['round'] == round_num)]
        for row_id in doomed:
            del rows[row_id]
        return len(doomed)

    def save_all(self, participants=(), matches=()):
        for participant in participants:
            self.save_participant(participant)
        for match in matches:
            self.save_round_match(match)
