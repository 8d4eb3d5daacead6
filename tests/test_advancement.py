"""
Tests for recording results, forfeits and undo on a single elimination bracket.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets import advancement
from brackets.advancement import BracketArena, determine_winner, resolve_byes
from brackets.elimination import build_round_matches, calculate_total_rounds
from brackets.errors import NotFound, StateConflict, ValidationError
from brackets.models import (CompetitorRef, Participant, ScopeContext, ScoringType,
                             Tournament, TournamentStatus)


def make_arena(count):
    """Seeded bracket for ``count`` participants with byes already resolved."""
    tournament = Tournament(id='t1', scope=ScopeContext('league', 'L1'), name='Cup',
                            game_type_id='chess', status=TournamentStatus.IN_PROGRESS,
                            total_rounds=calculate_total_rounds(count))
    participants = [Participant(id=f'p{i}', tournament_id='t1',
                                competitor=CompetitorRef('user', f'u{i}'), seed=i)
                    for i in range(1, count + 1)]
    counter = iter(range(1, 1000))
    matches = build_round_matches('t1', participants, lambda: f'm{next(counter)}')
    arena = BracketArena(tournament, participants, matches)
    resolve_byes(arena)
    return arena


def snapshot(arena):
    return ({p.id: (p.is_eliminated, p.eliminated_in_round, p.final_placement)
             for p in arena.ordered_participants()},
            {m.id: (m.participant1_id, m.participant2_id, m.winner_id)
             for m in arena.ordered_matches()})


class TestResolveByes:
    """Tests for automatic bye resolution."""

    def test_bye_cascade_three_participants(self):
        """The round-1 bye advances seed 1 into round 2 with no manual result."""
        arena = make_arena(3)
        bye = arena.at(1, 1)
        final = arena.at(2, 1)

        assert bye.is_bye
        assert bye.winner_id == 'p1'
        assert final.participant1_id == 'p1'
        assert final.participant2_id is None
        assert not final.is_resolved

    def test_no_byes_for_power_of_two(self):
        arena = make_arena(4)
        assert all(m.winner_id is None for m in arena.ordered_matches())

    def test_byes_fill_second_round(self):
        """With 5 participants, seeds 1-3 wait in round 2."""
        arena = make_arena(5)
        round_two = arena.rounds(2)
        waiting = {pid for m in round_two for pid in m.participant_ids}
        assert waiting == {'p1', 'p2', 'p3'}

    def test_resolution_is_idempotent(self):
        arena = make_arena(6)
        before = snapshot(arena)
        assert resolve_byes(arena) == []
        assert snapshot(arena) == before


class TestDetermineWinner:
    """Tests for turning a submitted outcome into a winner."""

    def setup_method(self):
        self.match = make_arena(2).at(1, 1)

    def test_side_selection(self):
        assert determine_winner(self.match, {'winning_side': 'side2'},
                                ScoringType.WIN_LOSS) == ('p2', False)

    def test_side_selection_required(self):
        with pytest.raises(ValidationError):
            determine_winner(self.match, {}, ScoringType.WIN_LOSS)

    def test_scores_decide_winner(self):
        outcome = {'side1_score': 21, 'side2_score': 15}
        assert determine_winner(self.match, outcome, ScoringType.SCORE_BASED) == ('p1', False)

    def test_equal_scores_rejected(self):
        """Elimination matches never end in a draw."""
        with pytest.raises(StateConflict):
            determine_winner(self.match, {'side1_score': 3, 'side2_score': 3},
                             ScoringType.SCORE_BASED)

    def test_equal_scores_allowed_as_draw(self):
        outcome = {'side1_score': 3, 'side2_score': 3}
        assert determine_winner(self.match, outcome, ScoringType.SCORE_BASED,
                                allow_draw=True) == (None, True)

    def test_scores_required_for_score_based(self):
        with pytest.raises(ValidationError):
            determine_winner(self.match, {'winning_side': 'side1'}, ScoringType.SCORE_BASED)


class TestRecordResult:
    """Tests for recording a played result."""

    def test_winner_advances_and_loser_eliminated(self):
        arena = make_arena(4)
        m1 = arena.at(1, 1)
        result = advancement.record_result(arena, m1.id, 'p4', 1, 2, real_match_id='rm1')

        assert result == {'winner_id': 'p4', 'loser_id': 'p1', 'completed': False}
        assert arena.at(2, 1).participant1_id == 'p4'
        loser = arena.participant('p1')
        assert loser.is_eliminated and loser.eliminated_in_round == 1
        assert m1.real_match_id == 'rm1'
        assert (m1.participant1_score, m1.participant2_score) == (1, 2)

    def test_second_position_feeds_slot_two(self):
        arena = make_arena(4)
        advancement.record_result(arena, arena.at(1, 2).id, 'p2')
        assert arena.at(2, 1).participant2_id == 'p2'

    def test_bye_cannot_be_recorded(self):
        arena = make_arena(3)
        with pytest.raises(StateConflict):
            advancement.record_result(arena, arena.at(1, 1).id, 'p1')

    def test_match_with_one_slot_cannot_be_recorded(self):
        """The final of a 3-bracket waits for the other semifinal."""
        arena = make_arena(3)
        with pytest.raises(StateConflict, match="Both participants"):
            advancement.record_result(arena, arena.at(2, 1).id, 'p1')

    def test_resolved_match_cannot_be_recorded_again(self):
        arena = make_arena(4)
        m1 = arena.at(1, 1)
        advancement.record_result(arena, m1.id, 'p1')
        with pytest.raises(StateConflict, match="already has a result"):
            advancement.record_result(arena, m1.id, 'p4')

    def test_winner_must_be_in_match(self):
        arena = make_arena(4)
        with pytest.raises(ValidationError):
            advancement.record_result(arena, arena.at(1, 1).id, 'p2')

    def test_unknown_match(self):
        with pytest.raises(NotFound):
            advancement.record_result(make_arena(2), 'nope', 'p1')

    def test_terminal_placement(self):
        """Resolving the final places both finalists and completes the tournament."""
        arena = make_arena(2)
        result = advancement.record_result(arena, arena.at(1, 1).id, 'p2')

        assert result['completed']
        assert arena.participant('p2').final_placement == 1
        assert arena.participant('p1').final_placement == 2
        assert arena.tournament.status == TournamentStatus.COMPLETED
        assert arena.tournament.completed_at is not None


class TestUndo:
    """Tests for reversing a recorded result."""

    def test_round_trip_restores_state(self):
        arena = make_arena(4)
        before = snapshot(arena)
        m2 = arena.at(1, 2)
        advancement.record_result(arena, m2.id, 'p3', real_match_id='rm9')
        result = advancement.undo(arena, m2.id)

        assert snapshot(arena) == before
        assert result['real_match_id'] == 'rm9'
        assert not result['reopened']
        assert m2.real_match_id is None

    def test_undo_blocked_after_parent_played(self):
        arena = make_arena(4)
        advancement.record_result(arena, arena.at(1, 1).id, 'p1')
        advancement.record_result(arena, arena.at(1, 2).id, 'p2')
        advancement.record_result(arena, arena.at(2, 1).id, 'p1')

        with pytest.raises(StateConflict, match="subsequent round"):
            advancement.undo(arena, arena.at(1, 1).id)

    def test_undo_allowed_while_parent_pending(self):
        arena = make_arena(4)
        advancement.record_result(arena, arena.at(1, 1).id, 'p1')
        advancement.record_result(arena, arena.at(1, 2).id, 'p2')
        advancement.undo(arena, arena.at(1, 1).id)
        assert arena.at(2, 1).participant_ids == ['p2']

    def test_undo_final_reopens(self):
        """Undoing the final clears placements and reopens the tournament."""
        arena = make_arena(2)
        final = arena.at(1, 1)
        advancement.record_result(arena, final.id, 'p1')
        result = advancement.undo(arena, final.id)

        assert result['reopened']
        assert arena.tournament.status == TournamentStatus.IN_PROGRESS
        assert arena.tournament.completed_at is None
        assert all(p.final_placement is None for p in arena.ordered_participants())
        assert not arena.participant('p2').is_eliminated

    def test_undo_unresolved_match(self):
        arena = make_arena(4)
        with pytest.raises(StateConflict):
            advancement.undo(arena, arena.at(1, 1).id)

    def test_undo_bye(self):
        arena = make_arena(3)
        with pytest.raises(StateConflict, match="Bye"):
            advancement.undo(arena, arena.at(1, 1).id)


class TestForfeit:
    """Tests for forfeits."""

    def test_forfeit_equivalence(self):
        """A forfeit propagates exactly like the opponent winning."""
        played = make_arena(4)
        forfeited = make_arena(4)
        advancement.record_result(played, played.at(1, 1).id, 'p4')
        advancement.forfeit(forfeited, forfeited.at(1, 1).id, 'p1')

        assert snapshot(played) == snapshot(forfeited)
        assert forfeited.at(1, 1).is_forfeit
        assert not played.at(1, 1).is_forfeit

    def test_forfeit_participant_must_be_in_match(self):
        arena = make_arena(4)
        with pytest.raises(ValidationError):
            advancement.forfeit(arena, arena.at(1, 1).id, 'p2')

    def test_forfeit_needs_opponent(self):
        arena = make_arena(3)
        with pytest.raises(StateConflict, match="other participant slot is empty"):
            advancement.forfeit(arena, arena.at(2, 1).id, 'p1')

    def test_forfeit_bye(self):
        arena = make_arena(3)
        with pytest.raises(StateConflict):
            advancement.forfeit(arena, arena.at(1, 1).id, 'p1')


class TestSeries:
    """Tests for best-of series on a bracket node."""

    def test_series_resolves_at_wins_needed(self):
        arena = make_arena(4)
        match = arena.at(1, 1)
        first = advancement.record_game(arena, match.id, 'p1', real_match_id='g1', wins_needed=2)
        assert not first['series_complete']
        assert match.winner_id is None
        assert match.real_match_id == 'g1'

        advancement.record_game(arena, match.id, 'p4', real_match_id='g2', wins_needed=2)
        last = advancement.record_game(arena, match.id, 'p1', real_match_id='g3', wins_needed=2)

        assert last['series_complete']
        assert (last['participant1_wins'], last['participant2_wins']) == (2, 1)
        assert match.winner_id == 'p1'
        assert arena.at(2, 1).participant1_id == 'p1'
        assert arena.participant('p4').is_eliminated

    def test_single_game_series(self):
        arena = make_arena(2)
        result = advancement.record_game(arena, arena.at(1, 1).id, 'p2', real_match_id='g1')
        assert result['series_complete']
        assert result['completed']

    def test_undo_latest_game_only(self):
        arena = make_arena(4)
        match = arena.at(1, 1)
        advancement.record_game(arena, match.id, 'p1', real_match_id='g1', wins_needed=2)
        advancement.record_game(arena, match.id, 'p1', real_match_id='g2', wins_needed=2)

        result = advancement.undo(arena, match.id)

        assert result['real_match_id'] == 'g2'
        assert match.winner_id is None
        assert (match.participant1_wins, match.participant2_wins) == (1, 0)
        assert match.real_match_id == 'g1'
        assert arena.at(2, 1).participant1_id is None
        assert not arena.participant('p4').is_eliminated

        assert advancement.undo(arena, match.id)['real_match_id'] == 'g1'
        assert match.games == []
        with pytest.raises(StateConflict):
            advancement.undo(arena, match.id)

    def test_forfeit_credits_needed_wins(self):
        arena = make_arena(4)
        match = arena.at(1, 1)
        advancement.record_game(arena, match.id, 'p1', real_match_id='g1', wins_needed=3)
        advancement.forfeit(arena, match.id, 'p1', wins_needed=3)

        assert match.winner_id == 'p4'
        assert (match.participant1_wins, match.participant2_wins) == (1, 3)

        result = advancement.undo(arena, match.id)
        assert result['real_match_id'] is None
        assert (match.participant1_wins, match.participant2_wins) == (1, 0)
        assert match.real_match_id == 'g1'
