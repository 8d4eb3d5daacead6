# Command-line preview of a single elimination bracket

import argparse
import yaml
from brackets.advancement import BracketArena, resolve_byes
from brackets.elimination import build_round_matches, get_elimination_bracket_display
from brackets.models import CompetitorRef, Participant, Tournament, ScopeContext


def load_seeds(file_path):
    """Read a YAML list of names in seed order."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        names = yaml.safe_load(file) or []
    if not isinstance(names, list):
        raise ValueError(f"{file_path} must contain a list of names")
    return [str(name) for name in names]


def make_participants(names):
    participants = []
    for seed, name in enumerate(names, start=1):
        participants.append(Participant(id=f'p{seed}', tournament_id='preview',
                                        competitor=CompetitorRef(CompetitorRef.PLACEHOLDER, name),
                                        display_name=name, seed=seed))
    return participants


def preview_bracket(names):
    tournament = Tournament(id='preview', scope=ScopeContext(ScopeContext.EVENT, 'preview'),
                            name='Preview', game_type_id='preview')
    participants = make_participants(names)
    counter = iter(range(1, 10000))
    matches = build_round_matches(tournament.id, participants, lambda: f'm{next(counter)}')
    resolve_byes(BracketArena(tournament, participants, matches))
    return get_elimination_bracket_display(matches, participants)


def format_bracket(display):
    lines = [f"{display['total_participants']} participants, "
             f"{display['total_rounds']} rounds, {display['byes']} byes"]
    for round_name, matches in display['rounds'].items():
        lines.append(f"\n{round_name}")
        for match in matches:
            first, second = (name or 'TBD' for name in match['participants'])
            if match['is_bye']:
                lines.append(f"  {match['position']}. {match['winner'] or first} (bye)")
            else:
                lines.append(f"  {match['position']}. {first} vs {second}")
    return "\n".join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Print a single elimination bracket.')
    parser.add_argument('participants', type=int, nargs='?',
                        help='number of participants (ignored with --seeds)')
    parser.add_argument('--seeds', help='YAML file listing participant names in seed order')
    args = parser.parse_args(argv)

    if args.seeds:
        names = load_seeds(args.seeds)
    elif args.participants:
        names = [f"Seed {i}" for i in range(1, args.participants + 1)]
    else:
        parser.error('give a participant count or --seeds FILE')

    if len(names) < 2:
        parser.error('a bracket needs at least 2 participants')

    print(format_bracket(preview_bracket(names)))


if __name__ == "__main__":
    main()
