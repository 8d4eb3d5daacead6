"""
Domain records for tournaments, participants and bracket nodes.

Records are plain objects that round-trip through dicts so they can be stored
in the YAML documents managed by ``brackets.storage``.
"""
from typing import Dict, List, Optional


class TournamentStatus:
    DRAFT = 'draft'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'

    ALL = (DRAFT, IN_PROGRESS, COMPLETED)


class TournamentType:
    SINGLE_ELIMINATION = 'single_elimination'
    SWISS = 'swiss'

    ALL = (SINGLE_ELIMINATION, SWISS)


class ParticipantType:
    INDIVIDUAL = 'individual'
    TEAM = 'team'

    ALL = (INDIVIDUAL, TEAM)


class SeedingType:
    RANDOM = 'random'
    MANUAL = 'manual'

    ALL = (RANDOM, MANUAL)


class ScoringType:
    WIN_LOSS = 'win_loss'
    SCORE_BASED = 'score_based'

    ALL = (WIN_LOSS, SCORE_BASED)


class CompetitorRef:
    """Reference to whoever actually competes: a user, a team or a placeholder member."""

    USER = 'user'
    TEAM = 'team'
    PLACEHOLDER = 'placeholder'
    KINDS = (USER, TEAM, PLACEHOLDER)

    def __init__(self, kind, id):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown competitor kind: {kind}")
        self.kind = kind
        self.id = id

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    def to_dict(self) -> Dict:
        return {'kind': self.kind, 'id': self.id}

    @classmethod
    def from_dict(cls, data: Dict) -> 'CompetitorRef':
        return cls(data['kind'], data['id'])

    def __eq__(self, other):
        return isinstance(other, CompetitorRef) and self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"CompetitorRef(kind={self.kind}, id={self.id})"


class ScopeContext:
    """The league or event a tournament belongs to."""

    LEAGUE = 'league'
    EVENT = 'event'
    KINDS = (LEAGUE, EVENT)

    def __init__(self, kind, id):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown scope kind: {kind}")
        self.kind = kind
        self.id = id

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    def to_dict(self) -> Dict:
        return {'kind': self.kind, 'id': self.id}

    @classmethod
    def from_dict(cls, data: Dict) -> 'ScopeContext':
        return cls(data['kind'], data['id'])

    def __eq__(self, other):
        return isinstance(other, ScopeContext) and self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"ScopeContext(kind={self.kind}, id={self.id})"


class Tournament:
    def __init__(self, id, scope, name, game_type_id,
                 tournament_type=TournamentType.SINGLE_ELIMINATION,
                 status=TournamentStatus.DRAFT,
                 participant_type=ParticipantType.INDIVIDUAL,
                 seeding_type=SeedingType.RANDOM,
                 scoring_type=ScoringType.WIN_LOSS,
                 description=None, total_rounds=None, swiss_rounds=None,
                 start_date=None, completed_at=None,
                 placement_point_config=None, best_of=1, round_best_of=None,
                 created_by=None, created_at=None):
        self.id = id
        self.scope = scope
        self.name = name
        self.game_type_id = game_type_id
        self.tournament_type = tournament_type
        self.status = status
        self.participant_type = participant_type
        self.seeding_type = seeding_type
        self.scoring_type = scoring_type
        self.description = description
        self.total_rounds = total_rounds
        self.swiss_rounds = swiss_rounds
        self.start_date = start_date
        self.completed_at = completed_at
        self.placement_point_config = placement_point_config
        self.best_of = best_of
        self.round_best_of = round_best_of
        self.created_by = created_by
        self.created_at = created_at

    @property
    def is_swiss(self) -> bool:
        return self.tournament_type == TournamentType.SWISS

    def best_of_for_round(self, round_num: int) -> int:
        """Series length for a round: the per-round override, else ``best_of``."""
        value = (self.round_best_of or {}).get(str(round_num))
        if isinstance(value, int) and value >= 1:
            return value
        return self.best_of or 1

    def wins_needed(self, round_num: int) -> int:
        return (self.best_of_for_round(round_num) + 1) // 2

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'scope': self.scope.to_dict(),
            'name': self.name,
            'game_type_id': self.game_type_id,
            'tournament_type': self.tournament_type,
            'status': self.status,
            'participant_type': self.participant_type,
            'seeding_type': self.seeding_type,
            'scoring_type': self.scoring_type,
            'description': self.description,
            'total_rounds': self.total_rounds,
            'swiss_rounds': self.swiss_rounds,
            'start_date': self.start_date,
            'completed_at': self.completed_at,
            'placement_point_config': self.placement_point_config,
            'best_of': self.best_of,
            'round_best_of': self.round_best_of,
            'created_by': self.created_by,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        fields = dict(data)
        fields['scope'] = ScopeContext.from_dict(data['scope'])
        return cls(**fields)

    def __repr__(self):
        return f"Tournament(id={self.id}, name={self.name}, status={self.status})"


class Participant:
    def __init__(self, id, tournament_id, competitor, display_name=None, seed=None,
                 is_eliminated=False, eliminated_in_round=None, final_placement=None,
                 entry_number=None):
        self.id = id
        self.tournament_id = tournament_id
        self.competitor = competitor
        self.display_name = display_name or competitor.id
        self.seed = seed
        self.is_eliminated = is_eliminated
        self.eliminated_in_round = eliminated_in_round
        self.final_placement = final_placement
        self.entry_number = entry_number

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'competitor': self.competitor.to_dict(),
            'display_name': self.display_name,
            'seed': self.seed,
            'is_eliminated': self.is_eliminated,
            'eliminated_in_round': self.eliminated_in_round,
            'final_placement': self.final_placement,
            'entry_number': self.entry_number,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        fields = dict(data)
        fields['competitor'] = CompetitorRef.from_dict(data['competitor'])
        return cls(**fields)

    def __repr__(self):
        return f"Participant(id={self.id}, name={self.display_name}, seed={self.seed})"


class RoundMatch:
    """One node of the bracket, identified by (tournament, round, position)."""

    def __init__(self, id, tournament_id, round, position,
                 participant1_id=None, participant2_id=None, winner_id=None,
                 is_bye=False, is_forfeit=False, is_draw=False,
                 participant1_score=None, participant2_score=None,
                 next_match_id=None, next_match_slot=None, real_match_id=None,
                 participant1_wins=0, participant2_wins=0, games=None):
        self.id = id
        self.tournament_id = tournament_id
        self.round = round
        self.position = position
        self.participant1_id = participant1_id
        self.participant2_id = participant2_id
        self.winner_id = winner_id
        self.is_bye = is_bye
        self.is_forfeit = is_forfeit
        self.is_draw = is_draw
        self.participant1_score = participant1_score
        self.participant2_score = participant2_score
        self.next_match_id = next_match_id
        self.next_match_slot = next_match_slot
        self.real_match_id = real_match_id
        self.participant1_wins = participant1_wins
        self.participant2_wins = participant2_wins
        # one entry per recorded game of a series: real_match_id, winner_slot and scores
        self.games = games or []

    @property
    def is_resolved(self) -> bool:
        return self.winner_id is not None or self.is_draw

    @property
    def is_final(self) -> bool:
        return self.next_match_id is None

    @property
    def is_played(self) -> bool:
        """A non-bye match with a result, a recorded game or a linked real match."""
        if self.is_bye:
            return False
        return self.is_resolved or self.real_match_id is not None or bool(self.games)

    @property
    def participant_ids(self) -> List[str]:
        return [pid for pid in (self.participant1_id, self.participant2_id) if pid]

    def has_both_participants(self) -> bool:
        return self.participant1_id is not None and self.participant2_id is not None

    def slot_of(self, participant_id) -> Optional[int]:
        if participant_id is None:
            return None
        if participant_id == self.participant1_id:
            return 1
        if participant_id == self.participant2_id:
            return 2
        return None

    def opponent_of(self, participant_id) -> Optional[str]:
        slot = self.slot_of(participant_id)
        if slot == 1:
            return self.participant2_id
        if slot == 2:
            return self.participant1_id
        return None

    def get_slot(self, slot: int) -> Optional[str]:
        return self.participant1_id if slot == 1 else self.participant2_id

    def set_slot(self, slot: int, participant_id):
        if slot == 1:
            self.participant1_id = participant_id
        elif slot == 2:
            self.participant2_id = participant_id
        else:
            raise ValueError(f"Invalid bracket slot: {slot}")

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'position': self.position,
            'participant1_id': self.participant1_id,
            'participant2_id': self.participant2_id,
            'winner_id': self.winner_id,
            'is_bye': self.is_bye,
            'is_forfeit': self.is_forfeit,
            'is_draw': self.is_draw,
            'participant1_score': self.participant1_score,
            'participant2_score': self.participant2_score,
            'next_match_id': self.next_match_id,
            'next_match_slot': self.next_match_slot,
            'real_match_id': self.real_match_id,
            'participant1_wins': self.participant1_wins,
            'participant2_wins': self.participant2_wins,
            'games': self.games,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'RoundMatch':
        return cls(**data)

    def __repr__(self):
        return (f"RoundMatch(round={self.round}, position={self.position}, "
                f"p1={self.participant1_id}, p2={self.participant2_id}, winner={self.winner_id})")


class Standing:
    """Computed Swiss standing; never persisted."""

    def __init__(self, participant_id, name=None):
        self.participant_id = participant_id
        self.name = name
        self.points = 0.0
        self.wins = 0
        self.draws = 0
        self.losses = 0
        self.buchholz = 0.0
        self.bye_received = False
        self.opponent_ids = []

    def to_dict(self) -> Dict:
        return {
            'participant_id': self.participant_id,
            'name': self.name,
            'points': self.points,
            'wins': self.wins,
            'draws': self.draws,
            'losses': self.losses,
            'buchholz': self.buchholz,
            'bye_received': self.bye_received,
        }

    def __repr__(self):
        return (f"Standing(participant_id={self.participant_id}, points={self.points}, "
                f"buchholz={self.buchholz})")
