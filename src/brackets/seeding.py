"""
Seed assignment: random shuffles or manager-supplied permutations.
"""
import random
from typing import Dict, List, Optional

from brackets.errors import SeedingIncomplete, ValidationError
from brackets.models import Participant


def assign_random_seeds(participants: List[Participant],
                        rng: Optional[random.Random] = None) -> List[Participant]:
    """
    Give participants a uniformly random permutation of seeds 1..N.

    Returns the participants ordered by their new seed.
    """
    rng = rng or random.Random()
    shuffled = list(participants)
    rng.shuffle(shuffled)
    for seed, participant in enumerate(shuffled, start=1):
        participant.seed = seed
    return shuffled


def validate_manual_seeds(participants: List[Participant],
                          assignments: List[Dict]) -> Dict[str, int]:
    """
    Check a manual seed assignment against the current participants.

    ``assignments`` is a list of {'participant_id', 'seed'} dicts. Returns a
    participant_id -> seed mapping when the seeds are exactly {1..N} with one
    seed per participant.
    """
    count = len(participants)
    if len(assignments) != count:
        raise SeedingIncomplete(f"Must assign seeds to all {count} participants")

    known_ids = {p.id for p in participants}
    mapping = {}
    for assignment in assignments:
        participant_id = assignment['participant_id']
        if participant_id not in known_ids:
            raise ValidationError("Invalid participant ID in seed assignments")
        if participant_id in mapping:
            raise ValidationError("Each participant can only be seeded once")
        mapping[participant_id] = assignment['seed']

    if sorted(mapping.values()) != list(range(1, count + 1)):
        raise SeedingIncomplete(f"Seeds must be unique values from 1 to {count}")

    return mapping


def apply_seeds(participants: List[Participant], mapping: Dict[str, int]) -> List[Participant]:
    for participant in participants:
        participant.seed = mapping[participant.id]
    return sorted(participants, key=lambda p: p.seed)


def check_seeds_complete(participants: List[Participant]) -> List[Participant]:
    """Return participants in seed order, or fail if manual seeding is incomplete."""
    if any(p.seed is None for p in participants):
        raise SeedingIncomplete("All participants must have seeds assigned")
    seeds = sorted(p.seed for p in participants)
    if seeds != list(range(1, len(participants) + 1)):
        raise SeedingIncomplete(f"Seeds must be unique values from 1 to {len(participants)}")
    return sorted(participants, key=lambda p: p.seed)
