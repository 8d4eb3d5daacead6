"""
Swiss-system standings and round pairing.

Standings are always recomputed from the full match history; nothing here
keeps incremental state.
"""
import math
from typing import Callable, Dict, Iterable, List, Optional

from brackets.errors import StateConflict, ValidationError
from brackets.models import Participant, RoundMatch, Standing

WIN_POINTS = 1.0
DRAW_POINTS = 0.5
BYE_POINTS = 1.0


class SwissMatchRecord:
    """The minimal view of a played Swiss match that standings need."""

    def __init__(self, participant1_id, participant2_id, winner_id=None,
                 is_draw=False, is_bye=False, is_forfeit=False):
        self.participant1_id = participant1_id
        self.participant2_id = participant2_id
        self.winner_id = winner_id
        self.is_draw = is_draw
        self.is_bye = is_bye
        self.is_forfeit = is_forfeit

    @classmethod
    def from_round_match(cls, match: RoundMatch) -> 'SwissMatchRecord':
        return cls(match.participant1_id, match.participant2_id, match.winner_id,
                   match.is_draw, match.is_bye, match.is_forfeit)

    def __repr__(self):
        return (f"SwissMatchRecord(p1={self.participant1_id}, p2={self.participant2_id}, "
                f"winner={self.winner_id}, draw={self.is_draw}, bye={self.is_bye})")


def compute_swiss_standings(participants: Iterable[Participant],
                            match_records: Iterable[SwissMatchRecord]) -> List[Standing]:
    """
    Compute standings for every participant from the played matches.

    Win and bye score 1 point, draw 0.5 each, loss 0. A bye counts as a win but
    adds no opponent. Buchholz is the sum of the current points of every
    opponent actually played.

    Ranked by points then Buchholz (both descending); remaining ties keep the
    participants' input order.
    """
    standings = {}
    for participant in participants:
        standings[participant.id] = Standing(participant.id, participant.display_name)

    for record in match_records:
        if record.is_bye:
            bye_id = record.participant1_id or record.participant2_id
            standing = standings.get(bye_id)
            if standing:
                standing.points += BYE_POINTS
                standing.wins += 1
                standing.bye_received = True
            continue

        if not record.participant1_id or not record.participant2_id:
            continue
        s1 = standings.get(record.participant1_id)
        s2 = standings.get(record.participant2_id)
        if s1 is None or s2 is None:
            continue
        if not record.is_draw and record.winner_id is None:
            continue

        s1.opponent_ids.append(s2.participant_id)
        s2.opponent_ids.append(s1.participant_id)

        if record.is_draw:
            s1.points += DRAW_POINTS
            s2.points += DRAW_POINTS
            s1.draws += 1
            s2.draws += 1
        elif record.winner_id == s1.participant_id:
            s1.points += WIN_POINTS
            s1.wins += 1
            s2.losses += 1
        elif record.winner_id == s2.participant_id:
            s2.points += WIN_POINTS
            s2.wins += 1
            s1.losses += 1

    for standing in standings.values():
        standing.buchholz = sum(standings[opp].points for opp in standing.opponent_ids)

    return sorted(standings.values(), key=lambda s: (-s.points, -s.buchholz))


def default_round_count(participant_count: int) -> int:
    return max(1, math.ceil(math.log2(participant_count))) if participant_count > 1 else 1


class PairingStrategy:
    """
    Extension point for producing Swiss pairings.

    ``pair_first_round`` receives participants in listing order;
    ``pair_next_round`` receives the current standings ranking. Both return
    dict with 'pairings' (list of (participant1_id, participant2_id)) and
    'bye' (participant id or None).
    """

    def pair_first_round(self, participants: List[Participant]) -> Dict:
        raise NotImplementedError

    def pair_next_round(self, ranking: List[Standing]) -> Dict:
        raise NotImplementedError


class RankOrderPairing(PairingStrategy):
    """
    Pair neighbours in ranking order, skipping rematches where an unpaired
    alternative exists. The bye goes to the lowest-ranked participant who has
    not had one yet.

    Round 1 pairs in seed order (1v2, 3v4, ...) with the bye to the last
    seed. Seeds are already shuffled or chosen by the organizer, so no name
    ordering is applied on top of them.
    """

    def pair_first_round(self, participants: List[Participant]) -> Dict:
        ids = [p.id for p in participants]
        bye = ids.pop() if len(ids) % 2 else None
        pairings = [(ids[i], ids[i + 1]) for i in range(0, len(ids), 2)]
        return {'pairings': pairings, 'bye': bye}

    def pair_next_round(self, ranking: List[Standing]) -> Dict:
        available = list(ranking)
        bye = None
        if len(available) % 2:
            for i in range(len(available) - 1, -1, -1):
                if not available[i].bye_received:
                    bye = available.pop(i).participant_id
                    break
            if bye is None:
                bye = available.pop().participant_id

        pairings = []
        paired = set()
        for i, standing in enumerate(available):
            if standing.participant_id in paired:
                continue
            candidates = [s for s in available[i + 1:] if s.participant_id not in paired]
            if not candidates:
                continue
            fresh = [s for s in candidates if s.participant_id not in standing.opponent_ids]
            opponent = (fresh or candidates)[0]
            pairings.append((standing.participant_id, opponent.participant_id))
            paired.update((standing.participant_id, opponent.participant_id))
        return {'pairings': pairings, 'bye': bye}


def build_round(tournament_id: str, round_num: int, pairing: Dict,
                new_id: Callable[[], str]) -> List[RoundMatch]:
    """Create the RoundMatch rows of one Swiss round; the bye row is pre-resolved."""
    matches = []
    for position, (p1, p2) in enumerate(pairing['pairings'], start=1):
        matches.append(RoundMatch(id=new_id(), tournament_id=tournament_id,
                                  round=round_num, position=position,
                                  participant1_id=p1, participant2_id=p2))
    if pairing.get('bye'):
        matches.append(RoundMatch(id=new_id(), tournament_id=tournament_id,
                                  round=round_num, position=len(matches) + 1,
                                  participant1_id=pairing['bye'],
                                  winner_id=pairing['bye'], is_bye=True))
    return matches


def current_round(matches: List[RoundMatch]) -> int:
    return max((m.round for m in matches), default=0)


def is_round_complete(matches: List[RoundMatch], round_num: int) -> bool:
    round_matches = [m for m in matches if m.round == round_num]
    return bool(round_matches) and all(m.is_resolved for m in round_matches)


def record_swiss_result(match: RoundMatch, winner_id: Optional[str], is_draw: bool = False,
                        side1_score=None, side2_score=None, is_forfeit: bool = False,
                        real_match_id=None):
    if match.is_bye:
        raise StateConflict("Bye matches do not have a result to record")
    if match.is_resolved:
        raise StateConflict("This match already has a result")
    if not match.has_both_participants():
        raise StateConflict("Both participants must be set before recording a result")
    match.winner_id = None if is_draw else winner_id
    match.is_draw = is_draw
    match.is_forfeit = is_forfeit
    match.participant1_score = side1_score
    match.participant2_score = side2_score
    match.real_match_id = real_match_id


def check_can_undo_swiss(match: RoundMatch, matches: List[RoundMatch]):
    if match.is_bye:
        raise StateConflict("Bye matches cannot be undone")
    if not match.is_resolved:
        raise StateConflict("This match does not have a result to undo")
    if current_round(matches) > match.round:
        raise StateConflict(
            "Cannot undo this match because a later round has already been generated")


def undo_swiss_result(match: RoundMatch) -> Optional[str]:
    """Clear a Swiss result; returns the real match id to delete."""
    real_match_id = match.real_match_id
    match.winner_id = None
    match.is_draw = False
    match.is_forfeit = False
    match.participant1_score = None
    match.participant2_score = None
    match.real_match_id = None
    return real_match_id


def assign_final_placements(participants: List[Participant], ranking: List[Standing]):
    by_id = {p.id: p for p in participants}
    for placement, standing in enumerate(ranking, start=1):
        by_id[standing.participant_id].final_placement = placement


def check_pairings(participant_ids: List[str], rows: List[Dict]) -> Dict:
    """
    Check organizer-supplied pairings for a whole round.

    ``rows`` hold participant1_id, participant2_id and is_bye. Every
    participant must appear exactly once, and there is exactly one bye when
    the field is odd. Returns the pairing dict ``build_round`` expects.
    """
    valid = set(participant_ids)
    seen = []
    pairings = []
    byes = []
    for row in rows:
        if row['participant1_id'] not in valid:
            raise ValidationError("Invalid participant ID in pairings")
        seen.append(row['participant1_id'])
        if row['is_bye']:
            if row['participant2_id'] is not None:
                raise ValidationError("Bye matches must not have a second participant")
            byes.append(row['participant1_id'])
            continue
        if row['participant2_id'] is None:
            raise ValidationError("Non-bye matches must have two participants")
        if row['participant2_id'] not in valid:
            raise ValidationError("Invalid participant ID in pairings")
        seen.append(row['participant2_id'])
        pairings.append((row['participant1_id'], row['participant2_id']))

    if len(seen) != len(set(seen)):
        raise ValidationError("Each participant must appear exactly once in pairings")
    if len(seen) != len(valid):
        raise ValidationError("Pairings must include all tournament participants")
    if len(valid) % 2 == 0 and byes:
        raise ValidationError("No byes should exist with an even number of participants")
    if len(valid) % 2 == 1 and len(byes) != 1:
        raise ValidationError("Exactly one bye is required with an odd number of participants")
    return {'pairings': pairings, 'bye': byes[0] if byes else None}


def check_round_editable(matches: List[RoundMatch], round_num: int, action: str = 'edit'):
    """The round must be the latest one and hold no played match."""
    if not matches:
        raise StateConflict("No rounds exist yet")
    if round_num != current_round(matches):
        raise StateConflict("Can only edit pairings for the current round")
    if any(m.is_played for m in matches if m.round == round_num):
        if action == 'delete':
            raise StateConflict("Cannot delete round with recorded matches")
        raise StateConflict("Cannot edit pairings after matches have been recorded")
