"""
Engine settings: built-in defaults merged with an optional settings.yaml.
"""
import os
import yaml


def get_default_settings() -> dict:
    """Return the default engine settings."""
    return {
        'min_participants': 2,
        'max_participants': 64,
        'max_tournaments_per_scope': 20,
        'name_max_length': 100,
        'description_max_length': 500,
        'forfeit_creates_match': {
            'league': False,
            'event': True,
        },
        'swiss_auto_pair': True,
        'max_best_of': 9,
        'lock_timeout_seconds': 10,
        'elo': {
            'starting_rating': 1200,
            'k_factor': 32,
            'provisional_k_factor': 40,
            'provisional_match_threshold': 10,
        },
    }


def load_settings(path: str = None) -> dict:
    """Load settings from YAML, merging with defaults so every key exists."""
    defaults = get_default_settings()
    if not path or not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not data:
        return defaults
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
        elif isinstance(value, dict) and isinstance(data[key], dict):
            data[key] = {**value, **data[key]}
    return data


def forfeit_creates_match(settings: dict, scope_kind: str) -> bool:
    """Whether a forfeit in the given scope kind produces a real match record."""
    return bool(settings.get('forfeit_creates_match', {}).get(scope_kind, False))
