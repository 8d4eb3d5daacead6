"""
Tournament lifecycle: which operations are legal in which status, and which
status changes are allowed.

    draft --generate--> in_progress --final result--> completed
      ^                    |  ^                          |
      +--revert (unplayed)-+  +-------undo final---------+
"""
import logging
from datetime import datetime

from brackets.errors import StateConflict
from brackets.models import Tournament, TournamentStatus

logger = logging.getLogger(__name__)

DRAFT = TournamentStatus.DRAFT
IN_PROGRESS = TournamentStatus.IN_PROGRESS
COMPLETED = TournamentStatus.COMPLETED

ALLOWED_STATUSES = {
    'update_details': {DRAFT, IN_PROGRESS, COMPLETED},
    'update_draft_fields': {DRAFT},
    'delete': {DRAFT},
    'add_participant': {DRAFT},
    'remove_participant': {DRAFT},
    'set_seeds': {DRAFT},
    'generate_bracket': {DRAFT},
    'record_result': {IN_PROGRESS},
    'forfeit': {IN_PROGRESS},
    'undo_result': {IN_PROGRESS, COMPLETED},
    'next_swiss_round': {IN_PROGRESS},
    'edit_swiss_round': {IN_PROGRESS},
    'manual_swiss_setup': {DRAFT},
    'reseed': {IN_PROGRESS},
    'revert_to_draft': {IN_PROGRESS},
}

MESSAGES = {
    'update_draft_fields': "Only name and description can be edited after the tournament has started",
    'delete': "Only draft tournaments can be deleted",
    'add_participant': "Can only add participants to tournaments in draft status",
    'remove_participant': "Can only remove participants from tournaments in draft status",
    'set_seeds': "Can only set seeds for tournaments in draft status",
    'generate_bracket': "Bracket can only be generated for draft tournaments",
    'record_result': "Tournament is not in progress",
    'forfeit': "Tournament is not in progress",
    'undo_result': "Tournament has not started",
    'next_swiss_round': "Tournament is not in progress",
    'edit_swiss_round': "Tournament is not in progress",
    'manual_swiss_setup': "Tournament must be in draft status",
    'reseed': "Tournament must be in progress to re-seed",
    'revert_to_draft': "Tournament must be in progress to revert to draft",
}

TRANSITIONS = {
    DRAFT: {IN_PROGRESS},
    IN_PROGRESS: {COMPLETED, DRAFT},
    COMPLETED: {IN_PROGRESS},
}


def is_allowed(tournament: Tournament, operation: str) -> bool:
    return tournament.status in ALLOWED_STATUSES[operation]


def require(tournament: Tournament, operation: str):
    """Raise StateConflict unless ``operation`` is legal in the tournament's status."""
    if not is_allowed(tournament, operation):
        raise StateConflict(MESSAGES.get(operation, f"Cannot {operation} in status {tournament.status}"))


def transition(tournament: Tournament, new_status: str):
    if new_status not in TRANSITIONS.get(tournament.status, set()):
        raise StateConflict(f"Cannot move tournament from {tournament.status} to {new_status}")
    logger.info('Tournament %s: %s -> %s', tournament.id, tournament.status, new_status)
    tournament.status = new_status
    if new_status == COMPLETED:
        tournament.completed_at = datetime.now().isoformat()
    elif new_status == IN_PROGRESS:
        tournament.completed_at = None


def start(tournament: Tournament, total_rounds: int):
    tournament.total_rounds = total_rounds
    transition(tournament, IN_PROGRESS)


def complete(tournament: Tournament):
    transition(tournament, COMPLETED)


def reopen(tournament: Tournament):
    transition(tournament, IN_PROGRESS)


def revert_to_draft(tournament: Tournament):
    transition(tournament, DRAFT)
    tournament.total_rounds = None
