"""
Request payload parsing for tournament operations.

Each validator takes the raw JSON dict and returns cleaned values, or raises
ValidationError with per-field messages.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from brackets.errors import ValidationError
from brackets.models import (CompetitorRef, ParticipantType, ScopeContext, ScoringType,
                             SeedingType, TournamentType)

UPDATABLE_FIELDS = ('name', 'description', 'game_type_id', 'tournament_type',
                    'participant_type', 'seeding_type', 'scoring_type', 'swiss_rounds',
                    'start_date', 'placement_point_config', 'best_of', 'round_best_of')

COMPETITOR_KEYS = (
    ('user_id', CompetitorRef.USER),
    ('team_id', CompetitorRef.TEAM),
    ('placeholder_id', CompetitorRef.PLACEHOLDER),
)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_dict(data) -> Dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _clean_text(data: Dict, key: str, max_length: int, errors: Dict,
                required: bool = False) -> Optional[str]:
    value = data.get(key)
    if value is None:
        if required:
            errors[key] = 'Required'
        return None
    if not isinstance(value, str):
        errors[key] = 'Must be a string'
        return None
    value = value.strip()
    if required and not value:
        errors[key] = 'Required'
    elif len(value) > max_length:
        errors[key] = f'Must be at most {max_length} characters'
    return value or None


def _clean_choice(data: Dict, key: str, choices, errors: Dict, default=None):
    value = data.get(key, default)
    if value not in choices:
        errors[key] = f"Must be one of: {', '.join(choices)}"
    return value


def parse_scope(data: Dict) -> ScopeContext:
    """Read scope_kind/scope_id (query args or body) into a ScopeContext."""
    kind = data.get('scope_kind')
    scope_id = data.get('scope_id')
    errors = {}
    if kind not in ScopeContext.KINDS:
        errors['scope_kind'] = f"Must be one of: {', '.join(ScopeContext.KINDS)}"
    if not scope_id:
        errors['scope_id'] = 'Required'
    if errors:
        raise ValidationError("Invalid scope", errors)
    return ScopeContext(kind, str(scope_id))


def _clean_placement_config(value, errors: Dict) -> Optional[List[Dict]]:
    if value is None:
        return None
    if not isinstance(value, list):
        errors['placement_point_config'] = 'Must be a list of {placement, points}'
        return None

    cleaned = []
    seen = set()
    for row in value:
        if not isinstance(row, dict) or not _is_int(row.get('placement')) \
                or not _is_number(row.get('points')):
            errors['placement_point_config'] = 'Each entry needs an integer placement and numeric points'
            return None
        if row['placement'] < 1:
            errors['placement_point_config'] = 'Placements start at 1'
            return None
        if row['placement'] in seen:
            errors['placement_point_config'] = 'Duplicate placement values are not allowed'
            return None
        seen.add(row['placement'])
        cleaned.append({'placement': row['placement'], 'points': row['points']})
    return sorted(cleaned, key=lambda r: r['placement']) or None


def _clean_swiss_rounds(value, errors: Dict) -> Optional[int]:
    if value is None:
        return None
    if not _is_int(value) or value < 1:
        errors['swiss_rounds'] = 'Must be a positive integer'
        return None
    return value


def _clean_start_date(value, errors: Dict) -> Optional[str]:
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        errors['start_date'] = 'Must be an ISO date (YYYY-MM-DD)'
        return None


def _clean_best_of(value, max_best_of: int, key: str, errors: Dict) -> Optional[int]:
    if not _is_int(value) or value < 1 or value > max_best_of or value % 2 == 0:
        errors[key] = f'Must be an odd number between 1 and {max_best_of}'
        return None
    return value


def _clean_round_best_of(value, max_best_of: int, errors: Dict) -> Optional[Dict[str, int]]:
    """Per-round series lengths keyed by round number; stored with string keys."""
    if value is None:
        return None
    if not isinstance(value, dict):
        errors['round_best_of'] = 'Must map round numbers to series lengths'
        return None
    cleaned = {}
    for round_key, best_of in value.items():
        if not str(round_key).isdigit() or int(round_key) < 1:
            errors['round_best_of'] = 'Round numbers must be positive integers'
            return None
        cleaned[str(int(round_key))] = _clean_best_of(best_of, max_best_of, 'round_best_of', errors)
    return cleaned or None


def _apply_series_format(fields: Dict, data: Dict, settings: Dict, errors: Dict):
    max_best_of = settings['max_best_of']
    if 'best_of' in data:
        fields['best_of'] = _clean_best_of(data['best_of'], max_best_of, 'best_of', errors)
    if 'round_best_of' in data:
        fields['round_best_of'] = _clean_round_best_of(data['round_best_of'], max_best_of, errors)


def validate_tournament_create(data, settings: Dict) -> Dict:
    """Return constructor fields for a new Tournament, including 'scope'."""
    data = _require_dict(data)
    errors = {}
    fields = {
        'name': _clean_text(data, 'name', settings['name_max_length'], errors, required=True),
        'description': _clean_text(data, 'description', settings['description_max_length'], errors),
        'game_type_id': data.get('game_type_id'),
        'tournament_type': _clean_choice(data, 'tournament_type', TournamentType.ALL, errors,
                                         TournamentType.SINGLE_ELIMINATION),
        'participant_type': _clean_choice(data, 'participant_type', ParticipantType.ALL, errors,
                                          ParticipantType.INDIVIDUAL),
        'seeding_type': _clean_choice(data, 'seeding_type', SeedingType.ALL, errors,
                                      SeedingType.RANDOM),
        'scoring_type': _clean_choice(data, 'scoring_type', ScoringType.ALL, errors,
                                      ScoringType.WIN_LOSS),
        'swiss_rounds': _clean_swiss_rounds(data.get('swiss_rounds'), errors),
        'start_date': _clean_start_date(data.get('start_date'), errors),
        'placement_point_config': _clean_placement_config(data.get('placement_point_config'), errors),
    }
    if not fields['game_type_id']:
        errors['game_type_id'] = 'Required'
    _apply_series_format(fields, data, settings, errors)
    if fields['tournament_type'] == TournamentType.SWISS:
        # Swiss rounds are always single games.
        fields['best_of'] = 1
        fields['round_best_of'] = None

    try:
        fields['scope'] = parse_scope(data)
    except ValidationError as e:
        errors.update(e.field_errors)

    if errors:
        raise ValidationError("Invalid tournament data", errors)
    return fields


def validate_tournament_update(data, settings: Dict) -> Dict:
    """Return only the fields present in ``data``, cleaned."""
    data = _require_dict(data)
    unknown = [key for key in data if key not in UPDATABLE_FIELDS]
    if unknown:
        raise ValidationError("Unknown fields", {key: 'Cannot be updated' for key in unknown})

    errors = {}
    fields = {}
    if 'name' in data:
        fields['name'] = _clean_text(data, 'name', settings['name_max_length'], errors, required=True)
    if 'description' in data:
        fields['description'] = _clean_text(data, 'description', settings['description_max_length'], errors)
    if 'game_type_id' in data:
        fields['game_type_id'] = data['game_type_id']
        if not data['game_type_id']:
            errors['game_type_id'] = 'Required'
    for key, choices in (('tournament_type', TournamentType.ALL),
                         ('participant_type', ParticipantType.ALL),
                         ('seeding_type', SeedingType.ALL),
                         ('scoring_type', ScoringType.ALL)):
        if key in data:
            fields[key] = _clean_choice(data, key, choices, errors)
    if 'swiss_rounds' in data:
        fields['swiss_rounds'] = _clean_swiss_rounds(data['swiss_rounds'], errors)
    if 'start_date' in data:
        fields['start_date'] = _clean_start_date(data['start_date'], errors)
    if 'placement_point_config' in data:
        fields['placement_point_config'] = _clean_placement_config(data['placement_point_config'], errors)
    _apply_series_format(fields, data, settings, errors)

    if errors:
        raise ValidationError("Invalid tournament data", errors)
    return fields


def validate_participant(data) -> Tuple[CompetitorRef, Optional[str]]:
    """Exactly one of user_id, team_id or placeholder_id must be given."""
    data = _require_dict(data)
    given = [(key, kind) for key, kind in COMPETITOR_KEYS if data.get(key)]
    if len(given) != 1:
        raise ValidationError("Exactly one of user_id, team_id or placeholder_id is required",
                              {key: 'Provide exactly one' for key, _ in COMPETITOR_KEYS})
    key, kind = given[0]
    display_name = data.get('display_name')
    if display_name is not None and not isinstance(display_name, str):
        raise ValidationError("Invalid participant data", {'display_name': 'Must be a string'})
    return CompetitorRef(kind, str(data[key])), (display_name.strip() if display_name else None)


def validate_seed_assignments(data) -> List[Dict]:
    data = _require_dict(data)
    seeds = data.get('seeds')
    if not isinstance(seeds, list) or not seeds:
        raise ValidationError("Seed assignments are required", {'seeds': 'Required'})

    assignments = []
    for index, row in enumerate(seeds):
        if not isinstance(row, dict) or not isinstance(row.get('participant_id'), str) \
                or not row['participant_id'].strip():
            raise ValidationError("Each seed assignment needs a participant_id",
                                  {f'seeds[{index}]': 'participant_id is required'})
        seed = row.get('seed')
        if not _is_int(seed) or seed < 1:
            raise ValidationError("Seeds must be positive integers",
                                  {f'seeds[{index}]': 'seed must be an integer >= 1'})
        assignments.append({'participant_id': row['participant_id'], 'seed': seed})
    return assignments


def _parse_played_at(value, now: datetime) -> str:
    if value in (None, ''):
        return now.isoformat()
    try:
        played_at = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid date", {'played_at': 'Must be an ISO date-time'})
    if played_at.tzinfo is not None:
        played_at = played_at.astimezone().replace(tzinfo=None)
    if played_at > now:
        raise ValidationError("Match date cannot be in the future",
                              {'played_at': 'Cannot be in the future'})
    return played_at.isoformat()


def validate_match_result(data, now: datetime = None) -> Dict:
    """
    Return dict with winning_side, side1_score, side2_score and played_at.

    Whether the winner comes from the side selection or the scores is decided
    later from the tournament's scoring type.
    """
    data = _require_dict(data)
    now = now or datetime.now()
    errors = {}

    winning_side = data.get('winning_side')
    if winning_side is not None and winning_side not in ('side1', 'side2', 'draw'):
        errors['winning_side'] = 'Must be side1, side2 or draw'

    scores = {}
    for key in ('side1_score', 'side2_score'):
        value = data.get(key)
        if value is not None and (not _is_number(value) or value < 0):
            errors[key] = 'Must be a non-negative number'
        scores[key] = value
    if (scores['side1_score'] is None) != (scores['side2_score'] is None):
        errors['side1_score' if scores['side1_score'] is None else 'side2_score'] = \
            'Both scores must be filled or both must be empty'

    if errors:
        raise ValidationError("Invalid match result", errors)

    return {
        'winning_side': winning_side,
        'side1_score': scores['side1_score'],
        'side2_score': scores['side2_score'],
        'played_at': _parse_played_at(data.get('played_at'), now),
    }


def validate_forfeit(data) -> str:
    data = _require_dict(data)
    participant_id = data.get('forfeiting_participant_id')
    if not participant_id:
        raise ValidationError("Forfeiting participant is required",
                              {'forfeiting_participant_id': 'Required'})
    return participant_id


def validate_pairings(data) -> List[Dict]:
    """
    Return pairing rows with participant1_id, participant2_id and is_bye.

    Only the shape is checked here; membership and bye rules need the
    tournament's participants.
    """
    data = _require_dict(data)
    pairings = data.get('pairings')
    if not isinstance(pairings, list) or not pairings:
        raise ValidationError("Pairings are required", {'pairings': 'Required'})

    rows = []
    for index, row in enumerate(pairings):
        if not isinstance(row, dict) or not isinstance(row.get('participant1_id'), str):
            raise ValidationError("Each pairing needs a participant1_id",
                                  {f'pairings[{index}]': 'participant1_id is required'})
        second = row.get('participant2_id')
        if second is not None and not isinstance(second, str):
            raise ValidationError("Invalid pairing",
                                  {f'pairings[{index}]': 'participant2_id must be a string or null'})
        is_bye = row.get('is_bye', False)
        if not isinstance(is_bye, bool):
            raise ValidationError("Invalid pairing",
                                  {f'pairings[{index}]': 'is_bye must be true or false'})
        rows.append({'participant1_id': row['participant1_id'], 'participant2_id': second,
                     'is_bye': is_bye})
    return rows
