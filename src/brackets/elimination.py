"""
Single elimination bracket generation.
"""
import math
from typing import Callable, Dict, List, Optional

from brackets.models import Participant, RoundMatch


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of competitors it starts with."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_participants <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_participants))


def calculate_total_rounds(num_participants: int) -> int:
    if num_participants < 2:
        return 0
    return int(math.log2(calculate_bracket_size(num_participants)))


def calculate_byes(num_participants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_participants) - num_participants


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 participants: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Final: 1v2 (if chalk)
    """
    if bracket_size <= 1:
        return [1]
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = _generate_bracket_order(half_size)

    # Pair each upper seed with its complement in the doubled bracket
    result = []
    for seed in upper_half:
        result.extend([seed, bracket_size + 1 - seed])

    return result


def _next_position(round_num: int, position: int, total_rounds: int) -> Optional[Dict]:
    if round_num >= total_rounds:
        return None
    return {
        'round': round_num + 1,
        'position': math.ceil(position / 2),
        'slot': 1 if position % 2 == 1 else 2,
    }


def generate_single_elimination_bracket(participant_count: int) -> List[Dict]:
    """
    Build the slot descriptors of a single elimination bracket.

    Returns list of slot dicts ordered by round then position:
    - round, position: 1-indexed coordinates
    - seed1, seed2: seeds placed in the slot (round 1 only, None for a bye side)
    - is_bye: True when only one seed is present
    - next_position: {'round', 'position', 'slot'} the winner feeds, None for the final
    """
    if participant_count < 2:
        raise ValueError("At least 2 participants are required")

    bracket_size = calculate_bracket_size(participant_count)
    total_rounds = int(math.log2(bracket_size))
    bracket_order = _generate_bracket_order(bracket_size)

    slots = []
    for i in range(0, len(bracket_order), 2):
        seed1 = bracket_order[i]
        seed2 = bracket_order[i + 1]
        position = i // 2 + 1
        seed1 = seed1 if seed1 <= participant_count else None
        seed2 = seed2 if seed2 <= participant_count else None
        slots.append({
            'round': 1,
            'position': position,
            'seed1': seed1,
            'seed2': seed2,
            'is_bye': seed1 is None or seed2 is None,
            'next_position': _next_position(1, position, total_rounds),
        })

    matches_in_round = bracket_size // 2
    for round_num in range(2, total_rounds + 1):
        matches_in_round //= 2
        for position in range(1, matches_in_round + 1):
            slots.append({
                'round': round_num,
                'position': position,
                'seed1': None,
                'seed2': None,
                'is_bye': False,
                'next_position': _next_position(round_num, position, total_rounds),
            })

    return slots


def build_round_matches(tournament_id: str, seeded_participants: List[Participant],
                        new_id: Callable[[], str]) -> List[RoundMatch]:
    """
    Turn slot descriptors into linked RoundMatch rows.

    ``seeded_participants`` must carry seeds forming 1..N. Nodes are created in an
    arena keyed by (round, position) and linked through next_match_id before any
    row leaves this function.
    """
    slots = generate_single_elimination_bracket(len(seeded_participants))
    seed_to_participant = {p.seed: p for p in seeded_participants}

    arena = {}
    for slot in slots:
        p1 = seed_to_participant.get(slot['seed1'])
        p2 = seed_to_participant.get(slot['seed2'])
        arena[(slot['round'], slot['position'])] = RoundMatch(
            id=new_id(),
            tournament_id=tournament_id,
            round=slot['round'],
            position=slot['position'],
            participant1_id=p1.id if p1 else None,
            participant2_id=p2.id if p2 else None,
            is_bye=slot['is_bye'],
        )

    for slot in slots:
        nxt = slot['next_position']
        if nxt:
            match = arena[(slot['round'], slot['position'])]
            match.next_match_id = arena[(nxt['round'], nxt['position'])].id
            match.next_match_slot = nxt['slot']

    return [arena[(s['round'], s['position'])] for s in slots]


def get_elimination_bracket_display(matches: List[RoundMatch],
                                    participants: List[Participant]) -> Dict:
    """
    Get bracket data formatted for display.

    Returns dict with rounds keyed by round name (in play order), total rounds,
    first-round byes, non-bye matches per round and the champion's name.
    """
    names = {p.id: p.display_name for p in participants}
    if not matches:
        return {
            'rounds': {},
            'total_rounds': 0,
            'total_participants': len(participants),
            'byes': 0,
            'matches_per_round': {},
            'champion': None,
        }

    total_rounds = max(m.round for m in matches)
    rounds = {}
    matches_per_round = {}
    for round_num in range(1, total_rounds + 1):
        round_matches = sorted((m for m in matches if m.round == round_num),
                               key=lambda m: m.position)
        round_name = get_round_name(2 ** (total_rounds - round_num + 1))
        rounds[round_name] = [{
            'id': m.id,
            'round': m.round,
            'position': m.position,
            'participants': (names.get(m.participant1_id), names.get(m.participant2_id)),
            'winner': names.get(m.winner_id),
            'is_bye': m.is_bye,
            'is_forfeit': m.is_forfeit,
            'is_playable': not m.is_bye and not m.is_resolved and m.has_both_participants(),
            'scores': (m.participant1_score, m.participant2_score),
        } for m in round_matches]
        matches_per_round[round_name] = sum(1 for m in round_matches if not m.is_bye)

    final = next((m for m in matches if m.round == total_rounds), None)
    return {
        'rounds': rounds,
        'total_rounds': total_rounds,
        'total_participants': len(participants),
        'byes': sum(1 for m in matches if m.round == 1 and m.is_bye),
        'matches_per_round': matches_per_round,
        'champion': names.get(final.winner_id) if final else None,
    }
