"""
Bracket advancement: recording results, forfeits and undo on a single
elimination bracket.

All functions mutate an in-memory ``BracketArena``; the caller persists the
arena inside the same unit of work, so a failure at any step leaves the stored
bracket untouched.
"""
import logging
from typing import Dict, List, Optional

from brackets import lifecycle
from brackets.errors import NotFound, StateConflict, ValidationError
from brackets.models import Participant, RoundMatch, ScoringType, Tournament, TournamentStatus

logger = logging.getLogger(__name__)


class BracketArena:
    """Bracket nodes of one tournament indexed by id and by (round, position)."""

    def __init__(self, tournament: Tournament, participants: List[Participant],
                 matches: List[RoundMatch]):
        self.tournament = tournament
        self.participants = {p.id: p for p in participants}
        self.matches = {m.id: m for m in matches}
        self.by_position = {(m.round, m.position): m for m in matches}
        self._feeders = {}
        for match in matches:
            if match.next_match_id:
                self._feeders.setdefault(match.next_match_id, {})[match.next_match_slot] = match

    def get(self, match_id) -> RoundMatch:
        match = self.matches.get(match_id)
        if match is None:
            raise NotFound("Tournament match not found")
        return match

    def at(self, round_num: int, position: int) -> Optional[RoundMatch]:
        return self.by_position.get((round_num, position))

    def parent(self, match: RoundMatch) -> Optional[RoundMatch]:
        if match.next_match_id is None:
            return None
        return self.matches[match.next_match_id]

    def feeder(self, match: RoundMatch, slot: int) -> Optional[RoundMatch]:
        return self._feeders.get(match.id, {}).get(slot)

    def participant(self, participant_id) -> Participant:
        participant = self.participants.get(participant_id)
        if participant is None:
            raise NotFound("Participant not found")
        return participant

    def ordered_matches(self) -> List[RoundMatch]:
        return sorted(self.matches.values(), key=lambda m: (m.round, m.position))

    def ordered_participants(self) -> List[Participant]:
        return list(self.participants.values())

    def rounds(self, round_num: int) -> List[RoundMatch]:
        return [m for m in self.ordered_matches() if m.round == round_num]

    def final(self) -> Optional[RoundMatch]:
        finals = [m for m in self.matches.values() if m.next_match_id is None]
        return finals[0] if len(finals) == 1 else None


def determine_winner(match: RoundMatch, outcome: Dict, scoring_type: str,
                     allow_draw: bool = False):
    """
    Work out the winner of ``match`` from a submitted outcome.

    ``outcome`` holds either 'winning_side' ('side1', 'side2' or 'draw') or
    'side1_score' and 'side2_score'. Returns (winner_id, is_draw).
    """
    if scoring_type == ScoringType.SCORE_BASED:
        side1 = outcome.get('side1_score')
        side2 = outcome.get('side2_score')
        if side1 is None or side2 is None:
            raise ValidationError("Scores are required for this game type",
                                  {'side1_score': 'Required', 'side2_score': 'Required'})
        if side1 == side2:
            if not allow_draw:
                raise StateConflict("Tournament matches cannot end in a draw")
            return None, True
        return (match.participant1_id if side1 > side2 else match.participant2_id), False

    winning_side = outcome.get('winning_side')
    if not winning_side:
        raise ValidationError("Winner selection is required", {'winning_side': 'Required'})
    if winning_side == 'draw':
        if not allow_draw:
            raise StateConflict("Draws are not allowed in this tournament type")
        return None, True
    if winning_side == 'side1':
        return match.participant1_id, False
    if winning_side == 'side2':
        return match.participant2_id, False
    raise ValidationError("Invalid winning side", {'winning_side': 'Must be side1, side2 or draw'})


def _subtree_is_empty(arena: BracketArena, match: Optional[RoundMatch]) -> bool:
    """True when no participant can ever arrive through ``match``."""
    if match is None:
        return True
    if match.participant_ids or match.winner_id:
        return False
    return _subtree_is_empty(arena, arena.feeder(match, 1)) and \
        _subtree_is_empty(arena, arena.feeder(match, 2))


def _is_walkover(arena: BracketArena, match: RoundMatch) -> bool:
    """A node holding one participant whose other side can never be filled."""
    if match.is_resolved or len(match.participant_ids) != 1:
        return False
    empty_slot = 2 if match.participant1_id else 1
    return _subtree_is_empty(arena, arena.feeder(match, empty_slot))


def resolve_byes(arena: BracketArena) -> List[RoundMatch]:
    """
    Resolve every bye and propagate its participant until nothing changes.

    Returns the matches resolved automatically, in resolution order.
    """
    pending = [m for m in arena.ordered_matches() if m.is_bye and not m.is_resolved]
    resolved = []
    while pending:
        match = pending.pop(0)
        winner_id = match.participant1_id or match.participant2_id
        if winner_id is None:
            continue
        match.winner_id = winner_id
        resolved.append(match)
        logger.debug('Bye: %s advances from round %d position %d',
                     winner_id, match.round, match.position)

        parent = arena.parent(match)
        if parent is None:
            continue
        parent.set_slot(match.next_match_slot, winner_id)
        if _is_walkover(arena, parent):
            parent.is_bye = True
            pending.append(parent)
    return resolved


def check_can_record(match: RoundMatch):
    if match.is_bye:
        raise StateConflict("Bye matches do not have a result to record")
    if match.is_resolved:
        raise StateConflict("This match already has a result")
    if not match.has_both_participants():
        raise StateConflict("Both participants must be set before recording a result")


def record_result(arena: BracketArena, match_id, winner_id, side1_score=None,
                  side2_score=None, is_forfeit: bool = False, real_match_id=None) -> Dict:
    """
    Resolve a pending match and push its effects through the bracket.

    The loser is eliminated in the match's round and the winner moves into the
    parent's slot. Resolving the final sets placements 1 and 2 and completes
    the tournament.

    Returns dict with winner_id, loser_id and completed.
    """
    match = arena.get(match_id)
    check_can_record(match)
    if match.slot_of(winner_id) is None:
        raise ValidationError("Winner must be one of the match participants")

    loser_id = match.opponent_of(winner_id)
    match.winner_id = winner_id
    match.participant1_score = side1_score
    match.participant2_score = side2_score
    match.is_forfeit = is_forfeit
    match.real_match_id = real_match_id

    loser = arena.participant(loser_id)
    loser.is_eliminated = True
    loser.eliminated_in_round = match.round

    parent = arena.parent(match)
    completed = False
    if parent is not None:
        parent.set_slot(match.next_match_slot, winner_id)
    else:
        arena.participant(winner_id).final_placement = 1
        loser.final_placement = 2
        lifecycle.complete(arena.tournament)
        completed = True

    return {'winner_id': winner_id, 'loser_id': loser_id, 'completed': completed}


def record_game(arena: BracketArena, match_id, winner_id, side1_score=None,
                side2_score=None, real_match_id=None, wins_needed: int = 1) -> Dict:
    """
    Record one game of a best-of series.

    The game is added to the match's series; once either side reaches
    ``wins_needed`` the match resolves through ``record_result``.

    Returns dict with series_complete, participant1_wins, participant2_wins
    and completed.
    """
    match = arena.get(match_id)
    check_can_record(match)
    slot = match.slot_of(winner_id)
    if slot is None:
        raise ValidationError("Winner must be one of the match participants")

    match.games.append({'real_match_id': real_match_id, 'winner_slot': slot,
                        'side1_score': side1_score, 'side2_score': side2_score})
    _count_series_wins(match)

    result = {'series_complete': False, 'completed': False}
    if max(match.participant1_wins, match.participant2_wins) >= wins_needed:
        result.update(record_result(arena, match.id, winner_id, side1_score, side2_score,
                                    real_match_id=real_match_id))
        result['series_complete'] = True
    else:
        match.participant1_score = side1_score
        match.participant2_score = side2_score
        match.real_match_id = real_match_id
        logger.debug('Series game recorded in round %d position %d: %d-%d',
                     match.round, match.position,
                     match.participant1_wins, match.participant2_wins)

    result['participant1_wins'] = match.participant1_wins
    result['participant2_wins'] = match.participant2_wins
    return result


def _count_series_wins(match: RoundMatch):
    match.participant1_wins = sum(1 for g in match.games if g['winner_slot'] == 1)
    match.participant2_wins = sum(1 for g in match.games if g['winner_slot'] == 2)


def check_can_forfeit(match: RoundMatch, forfeiting_participant_id) -> str:
    """Return the participant who wins by the forfeit."""
    if match.is_bye:
        raise StateConflict("Bye matches cannot be forfeited")
    if match.is_resolved:
        raise StateConflict("This match already has a result")
    if match.slot_of(forfeiting_participant_id) is None:
        raise ValidationError("Forfeit participant must be one of the match participants")
    winner_id = match.opponent_of(forfeiting_participant_id)
    if winner_id is None:
        raise StateConflict("Cannot forfeit when the other participant slot is empty")
    return winner_id


def forfeit(arena: BracketArena, match_id, forfeiting_participant_id, real_match_id=None,
            wins_needed: int = 1) -> Dict:
    """
    Resolve a pending match in favour of the participant who did not forfeit.

    In a series the winner is credited with the wins the round needs; games
    already played stay recorded.
    """
    match = arena.get(match_id)
    winner_id = check_can_forfeit(match, forfeiting_participant_id)
    if match.slot_of(winner_id) == 1:
        match.participant1_wins = max(match.participant1_wins, wins_needed)
    else:
        match.participant2_wins = max(match.participant2_wins, wins_needed)
    return record_result(arena, match_id, winner_id, is_forfeit=True, real_match_id=real_match_id)


def check_can_undo(arena: BracketArena, match: RoundMatch):
    if match.is_bye:
        raise StateConflict("Bye matches cannot be undone")
    if match.winner_id is None and not match.games:
        raise StateConflict("This match does not have a result to undo")
    parent = arena.parent(match)
    if match.winner_id is not None and parent is not None and parent.is_resolved:
        raise StateConflict(
            "Cannot undo this match because the winner has already played in a subsequent round")


def undo(arena: BracketArena, match_id) -> Dict:
    """
    Reverse the latest recorded game or forfeit of a match.

    When that game decided the match, every effect of the resolution is
    reversed too. Earlier games of a series stay recorded.

    Returns dict with the real_match_id that must be deleted and whether the
    tournament was reopened (placements cleared) by undoing its final.
    """
    match = arena.get(match_id)
    check_can_undo(arena, match)

    winner_id = match.winner_id
    loser_id = match.opponent_of(winner_id) if winner_id else None
    reopened = False

    if winner_id is not None:
        parent = arena.parent(match)
        if parent is not None:
            parent.set_slot(match.next_match_slot, None)
        elif arena.tournament.status == TournamentStatus.COMPLETED:
            arena.participant(winner_id).final_placement = None
            if loser_id:
                arena.participant(loser_id).final_placement = None
            lifecycle.reopen(arena.tournament)
            reopened = True

        if loser_id:
            loser = arena.participant(loser_id)
            loser.is_eliminated = False
            loser.eliminated_in_round = None

    if match.is_forfeit or not match.games:
        real_match_id = match.real_match_id
    else:
        real_match_id = match.games.pop()['real_match_id']

    match.winner_id = None
    match.is_forfeit = False
    _count_series_wins(match)
    latest = match.games[-1] if match.games else {}
    match.participant1_score = latest.get('side1_score')
    match.participant2_score = latest.get('side2_score')
    match.real_match_id = latest.get('real_match_id')

    return {'winner_id': winner_id, 'loser_id': loser_id,
            'real_match_id': real_match_id, 'reopened': reopened}
