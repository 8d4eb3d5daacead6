"""
Tournament service: the operations exposed to the web layer.

Every mutating operation runs inside one ``DataStore.transaction()``; bracket
rows, league-wide match records, point-ledger entries and the rating outbox
commit together or not at all. Rating updates are applied from the outbox
after the commit.
"""
import logging
import random
import uuid
from datetime import datetime
from typing import Callable, Dict, List

from brackets import advancement, lifecycle, placement, seeding, swiss, validation
from brackets.collaborators import Action, AuthZ, PointLedger, RatingEngine, RealMatchStore
from brackets.elimination import (build_round_matches, calculate_total_rounds,
                                  get_elimination_bracket_display)
from brackets.errors import AuthorizationError, NotFound, StateConflict, ValidationError
from brackets.models import (CompetitorRef, Participant, ParticipantType, RoundMatch,
                             ScopeContext, SeedingType, Standing, Tournament, TournamentStatus)
from brackets.settings import forfeit_creates_match, get_default_settings
from brackets.storage import DataStore, TournamentRepository

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (TournamentStatus.DRAFT, TournamentStatus.IN_PROGRESS)

INDIVIDUAL_KINDS = (CompetitorRef.USER, CompetitorRef.PLACEHOLDER)


def _new_id() -> str:
    return uuid.uuid4().hex


class TournamentService:
    def __init__(self, store: DataStore, authz: AuthZ, real_matches: RealMatchStore,
                 ratings: RatingEngine, ledger: PointLedger, settings: Dict = None,
                 rng: random.Random = None, pairing: swiss.PairingStrategy = None,
                 new_id: Callable[[], str] = None):
        self.store = store
        self.authz = authz
        self.real_matches = real_matches
        self.ratings = ratings
        self.ledger = ledger
        self.settings = settings or get_default_settings()
        self.rng = rng
        self.pairing = pairing or swiss.RankOrderPairing()
        self.new_id = new_id or _new_id

    # Authorization

    def _require_action(self, actor_id, scope: ScopeContext, action: str):
        if self.authz.is_suspended(actor_id, scope):
            raise AuthorizationError("Suspended members cannot perform this action")
        role = self.authz.get_role(actor_id, scope)
        if role is None or not self.authz.can_manage(role, action):
            raise AuthorizationError("You do not have permission to perform this action")
        return role

    def _require_match_access(self, actor_id, tournament: Tournament, match: RoundMatch,
                              participants: Dict[str, Participant], undo: bool = False):
        """
        Managers and record-for-others roles may act on any match; others only
        on their own. Undoing a team tournament result is reserved for the
        privileged roles.
        """
        role = self._require_action(actor_id, tournament.scope, Action.RECORD_MATCHES)
        if self.authz.can_manage(role, Action.MANAGE_TOURNAMENTS) or \
                self.authz.can_manage(role, Action.RECORD_FOR_OTHERS):
            return
        if undo and tournament.participant_type == ParticipantType.TEAM:
            raise AuthorizationError("Only organizers can undo team tournament match results")
        competitors = [participants[pid].competitor for pid in match.participant_ids]
        if not self.authz.is_participant(actor_id, competitors):
            if undo:
                raise AuthorizationError("You can only undo results for matches you're involved in")
            raise AuthorizationError("You can only record results for matches you are playing in")

    def _require_swiss(self, tournament: Tournament):
        if not tournament.is_swiss:
            raise StateConflict("This action is only for Swiss tournaments")

    def _require_minimum(self, participants: List[Participant]):
        minimum = max(2, self.settings['min_participants'])
        if len(participants) < minimum:
            raise StateConflict(f"Need at least {minimum} participants to generate a bracket")

    # Loading helpers

    def _load_tournament(self, repo: TournamentRepository, tournament_id) -> Tournament:
        tournament = repo.get_tournament(tournament_id)
        if tournament is None:
            raise NotFound("Tournament not found")
        return tournament

    def _load_match(self, repo: TournamentRepository, match_id):
        """Return (tournament, participants, matches, match) for a round match id."""
        row = repo.get_round_match(match_id)
        if row is None:
            raise NotFound("Tournament match not found")
        tournament = self._load_tournament(repo, row.tournament_id)
        participants = repo.participants_for(tournament.id)
        matches = repo.round_matches_for(tournament.id)
        match = next(m for m in matches if m.id == match_id)
        return tournament, participants, matches, match

    def _payload(self, tournament: Tournament, participants: List[Participant],
                 matches: List[RoundMatch]) -> Dict:
        ordered = sorted(participants, key=lambda p: (p.seed is None, p.seed or 0, p.display_name))
        data = {
            'tournament': tournament.to_dict(),
            'participants': [p.to_dict() for p in ordered],
            'matches': [m.to_dict() for m in sorted(matches, key=lambda m: (m.round, m.position))],
        }
        if tournament.is_swiss:
            data['standings'] = [s.to_dict() for s in self._swiss_ranking(ordered, matches)]
        else:
            data['bracket'] = get_elimination_bracket_display(matches, ordered)
        return data

    # Tournament CRUD

    def create_tournament(self, actor_id, data) -> Dict:
        fields = validation.validate_tournament_create(data, self.settings)
        scope = fields.pop('scope')
        self._require_action(actor_id, scope, Action.MANAGE_TOURNAMENTS)

        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            limit = self.settings['max_tournaments_per_scope']
            if len(repo.list_tournaments(scope, ACTIVE_STATUSES)) >= limit:
                raise StateConflict(f"Maximum of {limit} active tournaments reached")
            if repo.name_exists(scope, fields['name']):
                raise ValidationError("A tournament with this name already exists",
                                      {'name': 'Already in use'})
            tournament = Tournament(id=self.new_id(), scope=scope, created_by=actor_id,
                                    created_at=datetime.now().isoformat(), **fields)
            repo.save_tournament(tournament)

        logger.info('Created tournament %s (%s) in %s', tournament.id, tournament.name, scope.key)
        return self._payload(tournament, [], [])

    def update_tournament(self, actor_id, tournament_id, data) -> Dict:
        fields = validation.validate_tournament_update(data, self.settings)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'update_details')
            if set(fields) - {'name', 'description'}:
                lifecycle.require(tournament, 'update_draft_fields')
            if 'name' in fields and repo.name_exists(tournament.scope, fields['name'], tournament.id):
                raise ValidationError("A tournament with this name already exists",
                                      {'name': 'Already in use'})
            for key, value in fields.items():
                setattr(tournament, key, value)
            if tournament.is_swiss:
                tournament.best_of = 1
                tournament.round_best_of = None
            repo.save_tournament(tournament)
            participants = repo.participants_for(tournament.id)
            matches = repo.round_matches_for(tournament.id)
        return self._payload(tournament, participants, matches)

    def delete_tournament(self, actor_id, tournament_id):
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'delete')
            repo.delete_tournament(tournament.id)
        logger.info('Deleted tournament %s', tournament_id)

    def get_tournament(self, tournament_id) -> Dict:
        repo = TournamentRepository(self.store.view())
        tournament = self._load_tournament(repo, tournament_id)
        return self._payload(tournament, repo.participants_for(tournament.id),
                             repo.round_matches_for(tournament.id))

    def list_tournaments(self, scope: ScopeContext, statuses=None) -> List[Dict]:
        repo = TournamentRepository(self.store.view())
        return [t.to_dict() for t in repo.list_tournaments(scope, statuses)]

    # Participants

    def add_participant(self, actor_id, tournament_id, data) -> Dict:
        competitor, display_name = validation.validate_participant(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'add_participant')

            if tournament.participant_type == ParticipantType.TEAM and \
                    competitor.kind != CompetitorRef.TEAM:
                raise ValidationError("Team tournaments only accept teams")
            if tournament.participant_type == ParticipantType.INDIVIDUAL and \
                    competitor.kind not in INDIVIDUAL_KINDS:
                raise ValidationError("Individual tournaments only accept players")

            participants = repo.participants_for(tournament.id)
            if any(p.competitor == competitor for p in participants):
                raise ValidationError("This participant is already in the tournament")
            limit = self.settings['max_participants']
            if len(participants) >= limit:
                raise StateConflict(f"Tournament is full (maximum {limit} participants)")

            entry_number = max((p.entry_number or 0 for p in participants), default=0) + 1
            participant = Participant(id=self.new_id(), tournament_id=tournament.id,
                                      competitor=competitor, display_name=display_name,
                                      entry_number=entry_number)
            repo.save_participant(participant)
        return participant.to_dict()

    def remove_participant(self, actor_id, tournament_id, participant_id):
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'remove_participant')
            participant = repo.get_participant(participant_id)
            if participant is None or participant.tournament_id != tournament.id:
                raise NotFound("Participant not found in this tournament")
            repo.delete_participant(participant.id)

    # Seeding and generation

    def set_manual_seeds(self, actor_id, tournament_id, data) -> List[Dict]:
        assignments = validation.validate_seed_assignments(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'set_seeds')
            if tournament.seeding_type != SeedingType.MANUAL:
                raise StateConflict("Tournament does not use manual seeding")

            participants = repo.participants_for(tournament.id)
            mapping = seeding.validate_manual_seeds(participants, assignments)
            ordered = seeding.apply_seeds(participants, mapping)
            repo.save_all(participants=ordered)
        return [p.to_dict() for p in ordered]

    def _seed(self, tournament: Tournament, participants: List[Participant]) -> List[Participant]:
        if tournament.seeding_type == SeedingType.MANUAL:
            return seeding.check_seeds_complete(participants)
        return seeding.assign_random_seeds(participants, self.rng)

    def generate_bracket(self, actor_id, tournament_id) -> Dict:
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'generate_bracket')

            participants = repo.participants_for(tournament.id)
            self._require_minimum(participants)

            ordered = self._seed(tournament, participants)
            matches, total_rounds = self._build_first_round(tournament, ordered)
            lifecycle.start(tournament, total_rounds)
            repo.save_all(ordered, matches)
            repo.save_tournament(tournament)

        logger.info('Generated %s bracket for tournament %s: %d participants, %d rounds',
                    tournament.tournament_type, tournament.id, len(ordered), total_rounds)
        return self._payload(tournament, ordered, matches)

    def _build_first_round(self, tournament: Tournament, ordered: List[Participant]):
        """Return (matches, total_rounds) for participants already in seed order."""
        if tournament.is_swiss:
            pairing = self.pairing.pair_first_round(ordered)
            matches = swiss.build_round(tournament.id, 1, pairing, self.new_id)
            return matches, tournament.swiss_rounds or swiss.default_round_count(len(ordered))
        matches = build_round_matches(tournament.id, ordered, self.new_id)
        advancement.resolve_byes(advancement.BracketArena(tournament, ordered, matches))
        return matches, calculate_total_rounds(len(ordered))

    @staticmethod
    def _reset_participants(participants: List[Participant]):
        for participant in participants:
            participant.is_eliminated = False
            participant.eliminated_in_round = None
            participant.final_placement = None

    def reseed_tournament(self, actor_id, tournament_id) -> Dict:
        """
        Throw away an unplayed bracket and build it again from a fresh random
        seed order.
        """
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'reseed')
            if any(m.is_played for m in repo.round_matches_for(tournament.id)):
                raise StateConflict("Cannot re-seed after matches have been played")

            participants = repo.participants_for(tournament.id)
            repo.delete_round_matches(tournament.id)
            self._reset_participants(participants)
            ordered = seeding.assign_random_seeds(participants, self.rng)
            matches, total_rounds = self._build_first_round(tournament, ordered)
            tournament.total_rounds = total_rounds
            repo.save_all(ordered, matches)
            repo.save_tournament(tournament)

        logger.info('Re-seeded tournament %s', tournament.id)
        return self._payload(tournament, ordered, matches)

    def revert_to_draft(self, actor_id, tournament_id) -> Dict:
        """Delete an unplayed bracket and reopen the tournament for editing."""
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'revert_to_draft')
            if any(m.is_played for m in repo.round_matches_for(tournament.id)):
                raise StateConflict("Cannot revert to draft after matches have been played")

            participants = repo.participants_for(tournament.id)
            repo.delete_round_matches(tournament.id)
            self._reset_participants(participants)
            if tournament.seeding_type == SeedingType.RANDOM:
                for participant in participants:
                    participant.seed = None
            lifecycle.revert_to_draft(tournament)
            repo.save_all(participants)
            repo.save_tournament(tournament)

        logger.info('Reverted tournament %s to draft', tournament.id)
        return self._payload(tournament, participants, [])

    # Results

    def _side_assignments(self, match: RoundMatch, participants: Dict[str, Participant],
                          winner_id, is_draw: bool, scores=(None, None)) -> List[Dict]:
        sides = []
        for side, (pid, score) in enumerate(zip((match.participant1_id, match.participant2_id),
                                                scores), start=1):
            if is_draw:
                result = 'draw'
            else:
                result = 'win' if pid == winner_id else 'loss'
            sides.append({'competitor': participants[pid].competitor.to_dict(),
                          'side': side, 'score': score, 'result': result})
        return sides

    def _queue_rating(self, uow, match_id, action: str):
        uow.document('matches')['rating_outbox'].append({
            'id': self.new_id(),
            'match_id': match_id,
            'action': action,
            'queued_at': datetime.now().isoformat(),
        })
        uow.after_commit(self.flush_rating_outbox)

    def _complete_if_final(self, uow, tournament, participants, outcome: Dict):
        if outcome.get('completed'):
            placement.award_placement_points(self.ledger, uow, tournament, participants)

    def record_match_result(self, actor_id, match_id, data) -> Dict:
        outcome = validation.validate_match_result(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament, participants, matches, match = self._load_match(repo, match_id)
            lifecycle.require(tournament, 'record_result')
            by_id = {p.id: p for p in participants}
            advancement.check_can_record(match)
            self._require_match_access(actor_id, tournament, match, by_id)

            winner_id, is_draw = advancement.determine_winner(
                match, outcome, tournament.scoring_type, allow_draw=tournament.is_swiss)
            scores = (outcome['side1_score'], outcome['side2_score'])
            real_match_id = self.real_matches.create(
                uow, tournament.scope, tournament.game_type_id, outcome['played_at'],
                self._side_assignments(match, by_id, winner_id, is_draw, scores),
                recorder_id=actor_id)

            if tournament.is_swiss:
                swiss.record_swiss_result(match, winner_id, is_draw, scores[0], scores[1],
                                          real_match_id=real_match_id)
                matches = self._after_swiss_result(uow, tournament, participants, matches)
            else:
                arena = advancement.BracketArena(tournament, participants, matches)
                result = advancement.record_game(arena, match.id, winner_id, scores[0], scores[1],
                                                 real_match_id=real_match_id,
                                                 wins_needed=tournament.wins_needed(match.round))
                self._complete_if_final(uow, tournament, participants, result)

            self._queue_rating(uow, real_match_id, 'apply')
            repo.save_all(participants, matches)
            repo.save_tournament(tournament)

        return self._payload(tournament, participants, matches)

    def forfeit_match(self, actor_id, match_id, data) -> Dict:
        forfeiting_id = validation.validate_forfeit(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament, participants, matches, match = self._load_match(repo, match_id)
            lifecycle.require(tournament, 'forfeit')
            by_id = {p.id: p for p in participants}
            winner_id = advancement.check_can_forfeit(match, forfeiting_id)
            self._require_match_access(actor_id, tournament, match, by_id)

            real_match_id = None
            if forfeit_creates_match(self.settings, tournament.scope.kind):
                real_match_id = self.real_matches.create(
                    uow, tournament.scope, tournament.game_type_id, datetime.now().isoformat(),
                    self._side_assignments(match, by_id, winner_id, False), recorder_id=actor_id)

            if tournament.is_swiss:
                swiss.record_swiss_result(match, winner_id, is_forfeit=True,
                                          real_match_id=real_match_id)
                matches = self._after_swiss_result(uow, tournament, participants, matches)
            else:
                arena = advancement.BracketArena(tournament, participants, matches)
                result = advancement.forfeit(arena, match.id, forfeiting_id, real_match_id,
                                             wins_needed=tournament.wins_needed(match.round))
                self._complete_if_final(uow, tournament, participants, result)

            if real_match_id:
                self._queue_rating(uow, real_match_id, 'apply')
            repo.save_all(participants, matches)
            repo.save_tournament(tournament)

        logger.info('Match %s forfeited by %s', match_id, forfeiting_id)
        return self._payload(tournament, participants, matches)

    def undo_match_result(self, actor_id, match_id) -> Dict:
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament, participants, matches, match = self._load_match(repo, match_id)
            self._require_match_access(actor_id, tournament, match,
                                       {p.id: p for p in participants}, undo=True)
            lifecycle.require(tournament, 'undo_result')

            if tournament.is_swiss:
                swiss.check_can_undo_swiss(match, matches)
                real_match_id = swiss.undo_swiss_result(match)
                if tournament.status == TournamentStatus.COMPLETED:
                    for participant in participants:
                        participant.final_placement = None
                    lifecycle.reopen(tournament)
                    placement.revoke_placement_points(self.ledger, uow, tournament)
            else:
                arena = advancement.BracketArena(tournament, participants, matches)
                result = advancement.undo(arena, match.id)
                real_match_id = result['real_match_id']
                if result['reopened']:
                    placement.revoke_placement_points(self.ledger, uow, tournament)

            if real_match_id:
                self.real_matches.delete(uow, real_match_id)
                self._queue_rating(uow, real_match_id, 'revert')
            repo.save_all(participants, matches)
            repo.save_tournament(tournament)

        logger.info('Undid result of match %s in tournament %s', match_id, tournament.id)
        return self._payload(tournament, participants, matches)

    # Swiss rounds

    def _swiss_ranking(self, participants: List[Participant],
                       matches: List[RoundMatch]) -> List[Standing]:
        """Standings with remaining ties in the order participants were entered."""
        entry_order = sorted(participants, key=lambda p: (p.entry_number is None, p.entry_number or 0))
        records = [swiss.SwissMatchRecord.from_round_match(m) for m in matches]
        return swiss.compute_swiss_standings(entry_order, records)

    def _advance_swiss(self, uow, tournament: Tournament, participants: List[Participant],
                       matches: List[RoundMatch]) -> List[RoundMatch]:
        """Pair the next round, or finish the tournament after its last round."""
        round_num = swiss.current_round(matches)
        ranking = self._swiss_ranking(participants, matches)
        if round_num >= tournament.total_rounds:
            swiss.assign_final_placements(participants, ranking)
            lifecycle.complete(tournament)
            placement.award_placement_points(self.ledger, uow, tournament, participants)
            return matches

        pairing = self.pairing.pair_next_round(ranking)
        new_matches = swiss.build_round(tournament.id, round_num + 1, pairing, self.new_id)
        logger.info('Paired Swiss round %d of tournament %s', round_num + 1, tournament.id)
        return matches + new_matches

    def _after_swiss_result(self, uow, tournament, participants, matches) -> List[RoundMatch]:
        round_num = swiss.current_round(matches)
        if not swiss.is_round_complete(matches, round_num):
            return matches
        if round_num < tournament.total_rounds and not self.settings['swiss_auto_pair']:
            return matches
        return self._advance_swiss(uow, tournament, participants, matches)

    def generate_next_swiss_round(self, actor_id, tournament_id) -> Dict:
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)
            lifecycle.require(tournament, 'next_swiss_round')
            if not tournament.is_swiss:
                raise StateConflict("Only Swiss tournaments have rounds to generate")

            participants = repo.participants_for(tournament.id)
            matches = repo.round_matches_for(tournament.id)
            round_num = swiss.current_round(matches)
            if not swiss.is_round_complete(matches, round_num):
                raise StateConflict(f"Round {round_num} is not complete yet")

            matches = self._advance_swiss(uow, tournament, participants, matches)
            repo.save_all(participants, matches)
            repo.save_tournament(tournament)
        return self._payload(tournament, participants, matches)

    def update_swiss_round_pairings(self, actor_id, tournament_id, round_num: int, data) -> Dict:
        """Replace the pairings of the current round before any of it is played."""
        rows = validation.validate_pairings(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_swiss(tournament)
            lifecycle.require(tournament, 'edit_swiss_round')
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)

            participants = repo.participants_for(tournament.id)
            matches = repo.round_matches_for(tournament.id)
            swiss.check_round_editable(matches, round_num)
            pairing = swiss.check_pairings([p.id for p in participants], rows)

            repo.delete_round_matches(tournament.id, round_num)
            new_matches = swiss.build_round(tournament.id, round_num, pairing, self.new_id)
            repo.save_all(matches=new_matches)
            matches = [m for m in matches if m.round != round_num] + new_matches

        logger.info('Replaced pairings of Swiss round %d in tournament %s', round_num, tournament.id)
        return self._payload(tournament, participants, matches)

    def delete_swiss_current_round(self, actor_id, tournament_id) -> Dict:
        """Drop the latest, unplayed Swiss round so it can be paired again."""
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_swiss(tournament)
            lifecycle.require(tournament, 'edit_swiss_round')
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)

            participants = repo.participants_for(tournament.id)
            matches = repo.round_matches_for(tournament.id)
            round_num = swiss.current_round(matches)
            if matches and round_num <= 1:
                raise StateConflict("Cannot delete the first round")
            swiss.check_round_editable(matches, round_num, action='delete')

            repo.delete_round_matches(tournament.id, round_num)
            matches = [m for m in matches if m.round != round_num]

        logger.info('Deleted Swiss round %d of tournament %s', round_num, tournament.id)
        return self._payload(tournament, participants, matches)

    def manual_swiss_round_one(self, actor_id, tournament_id, data) -> Dict:
        """Start a draft Swiss tournament with organizer-chosen round 1 pairings."""
        rows = validation.validate_pairings(data)
        with self.store.transaction() as uow:
            repo = TournamentRepository(uow)
            tournament = self._load_tournament(repo, tournament_id)
            self._require_swiss(tournament)
            lifecycle.require(tournament, 'manual_swiss_setup')
            self._require_action(actor_id, tournament.scope, Action.MANAGE_TOURNAMENTS)

            participants = repo.participants_for(tournament.id)
            self._require_minimum(participants)
            pairing = swiss.check_pairings([p.id for p in participants], rows)
            matches = swiss.build_round(tournament.id, 1, pairing, self.new_id)
            total_rounds = tournament.swiss_rounds or swiss.default_round_count(len(participants))

            lifecycle.start(tournament, total_rounds)
            repo.save_all(participants, matches)
            repo.save_tournament(tournament)

        logger.info('Started Swiss tournament %s with manual round 1 pairings', tournament.id)
        return self._payload(tournament, participants, matches)

    @staticmethod
    def compute_swiss_standings(participants, match_records) -> List[Standing]:
        return swiss.compute_swiss_standings(participants, match_records)

    def get_standings(self, tournament_id) -> List[Dict]:
        repo = TournamentRepository(self.store.view())
        tournament = self._load_tournament(repo, tournament_id)
        if not tournament.is_swiss:
            raise StateConflict("Standings are only available for Swiss tournaments")
        ranking = self._swiss_ranking(repo.participants_for(tournament.id),
                                      repo.round_matches_for(tournament.id))
        return [s.to_dict() for s in ranking]

    # Ratings

    def flush_rating_outbox(self) -> Dict:
        """
        Apply queued rating updates in order, stopping at the first failure.

        Returns dict with the number of entries applied and still pending.
        """
        pending = self.store.read('matches')['rating_outbox']
        done = set()
        for entry in pending:
            try:
                if entry['action'] == 'revert':
                    self.ratings.revert_match_result(entry['match_id'])
                else:
                    self.ratings.apply_match_result(entry['match_id'])
            except Exception as e:
                logger.warning('Rating %s for match %s failed, left queued: %s',
                               entry['action'], entry['match_id'], e)
                break
            done.add(entry['id'])

        if done:
            with self.store.transaction() as uow:
                doc = uow.document('matches')
                doc['rating_outbox'] = [e for e in doc['rating_outbox'] if e['id'] not in done]
        return {'applied': len(done), 'pending': len(pending) - len(done)}
