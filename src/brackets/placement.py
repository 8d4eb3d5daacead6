"""
Placement points: turn final placements into point-ledger entries.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, List

from brackets.models import Participant, Tournament

logger = logging.getLogger(__name__)


def placement_points_table(tournament: Tournament) -> Dict[int, float]:
    """Map placement -> points from the tournament's config (empty when absent)."""
    config = tournament.placement_point_config or []
    return {int(entry['placement']): entry['points'] for entry in config}


def build_placement_entries(tournament: Tournament, participants: List[Participant]) -> List[Dict]:
    """
    One ledger entry per placed participant that has a matching config row.

    Participants without a placement, or whose placement has no configured
    points, are skipped.
    """
    table = placement_points_table(tournament)
    if not table:
        return []

    created_at = datetime.now().isoformat()
    entries = []
    placed = [p for p in participants if p.final_placement is not None]
    for participant in sorted(placed, key=lambda p: p.final_placement):
        points = table.get(participant.final_placement)
        if points is None:
            continue
        entries.append({
            'id': uuid.uuid4().hex,
            'scope': tournament.scope.to_dict(),
            'tournament_id': tournament.id,
            'participant_id': participant.id,
            'competitor': participant.competitor.to_dict(),
            'category': 'tournament',
            'outcome': 'placement',
            'placement': participant.final_placement,
            'points': points,
            'created_at': created_at,
        })
    return entries


def award_placement_points(ledger, uow, tournament: Tournament,
                           participants: List[Participant]) -> List[Dict]:
    entries = build_placement_entries(tournament, participants)
    if entries:
        ledger.insert_many(uow, entries)
        logger.info('Awarded placement points to %d participants of tournament %s',
                    len(entries), tournament.id)
    return entries


def revoke_placement_points(ledger, uow, tournament: Tournament) -> int:
    removed = ledger.delete_by_tournament(uow, tournament.id)
    if removed:
        logger.info('Removed %d placement point entries of tournament %s', removed, tournament.id)
    return removed
