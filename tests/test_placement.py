"""
Tests for placement point entries.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.collaborators import YamlPointLedger
from brackets.models import CompetitorRef, Participant, ScopeContext, Tournament
from brackets.placement import (award_placement_points, build_placement_entries,
                                revoke_placement_points)


def tournament(config):
    return Tournament(id='t1', scope=ScopeContext('league', 'L1'), name='Cup',
                      game_type_id='chess', placement_point_config=config)


def placed(*placements):
    return [Participant(id=f'p{i}', tournament_id='t1', competitor=CompetitorRef('user', f'u{i}'),
                        final_placement=placement)
            for i, placement in enumerate(placements, start=1)]


class TestBuildPlacementEntries:
    """Tests for mapping placements to points."""

    def test_entries_for_configured_placements(self):
        config = [{'placement': 1, 'points': 10}, {'placement': 2, 'points': 5}]
        entries = build_placement_entries(tournament(config), placed(2, 1, None))

        assert [(e['participant_id'], e['placement'], e['points']) for e in entries] == \
            [('p2', 1, 10), ('p1', 2, 5)]
        assert entries[0]['competitor'] == {'kind': 'user', 'id': 'u2'}
        assert entries[0]['tournament_id'] == 't1'
        assert entries[0]['scope'] == {'kind': 'league', 'id': 'L1'}

    def test_unconfigured_placement_skipped(self):
        """A placement without a config row is not an error."""
        entries = build_placement_entries(tournament([{'placement': 1, 'points': 3}]), placed(1, 2))
        assert len(entries) == 1

    def test_unplaced_participants_between_placed_ones(self):
        config = [{'placement': p, 'points': 10 - p} for p in (1, 2, 3)]
        entries = build_placement_entries(tournament(config), placed(None, 3, None, 1, 2, None))
        assert [e['participant_id'] for e in entries] == ['p4', 'p5', 'p2']
        assert [e['placement'] for e in entries] == [1, 2, 3]

    def test_no_config_no_entries(self):
        assert build_placement_entries(tournament(None), placed(1, 2)) == []
        assert build_placement_entries(tournament([]), placed(1, 2)) == []


class TestAwardAndRevoke:
    """Tests for writing to and removing from the ledger."""

    def test_award_then_revoke(self, store):
        ledger = YamlPointLedger(store)
        t = tournament([{'placement': 1, 'points': 10}, {'placement': 2, 'points': 5}])

        with store.transaction() as uow:
            award_placement_points(ledger, uow, t, placed(1, 2))
        assert len(ledger.entries_for('t1')) == 2

        with store.transaction() as uow:
            assert revoke_placement_points(ledger, uow, t) == 2
        assert ledger.entries_for('t1') == []

    def test_revoke_leaves_other_tournaments(self, store):
        ledger = YamlPointLedger(store)
        with store.transaction() as uow:
            ledger.insert_many(uow, [{'tournament_id': 'other', 'points': 1}])
            revoke_placement_points(ledger, uow, tournament(None))
        assert len(ledger.entries_for('other')) == 1
