"""
Tests for the Flask JSON API.
"""
import pytest
import sys
import os
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))


def create(client, **overrides):
    data = {'name': 'Spring Cup', 'game_type_id': 'chess', 'scope_kind': 'league', 'scope_id': 'L1'}
    data.update(overrides)
    return client.post('/api/tournaments', json=data)


def create_with_players(client, names, **overrides):
    tournament = create(client, **overrides).get_json()['tournament']
    participants = [
        client.post(f"/api/tournaments/{tournament['id']}/participants",
                    json={'user_id': name}).get_json()
        for name in names
    ]
    return tournament, participants


def match_at(payload, round_num, position):
    return next(m for m in payload['matches']
                if m['round'] == round_num and m['position'] == position)


class TestAuthentication:
    """Tests for session handling."""

    def test_requires_login(self, temp_data_dir):
        from app import app
        app.config['TESTING'] = True
        with app.test_client() as anonymous:
            response = anonymous.get('/api/tournaments?scope_kind=league&scope_id=L1')
        assert response.status_code == 401

    def test_login(self, temp_data_dir):
        from werkzeug.security import generate_password_hash
        from app import app
        (temp_data_dir / 'users.yaml').write_text(yaml.dump({'users': [
            {'username': 'testuser', 'password_hash': generate_password_hash('secret')}]}))
        app.config['TESTING'] = True
        with app.test_client() as anonymous:
            bad = anonymous.post('/api/login', json={'username': 'testuser', 'password': 'wrong'})
            good = anonymous.post('/api/login', json={'username': 'TestUser', 'password': 'secret'})
            listed = anonymous.get('/api/tournaments?scope_kind=league&scope_id=L1')
        assert bad.status_code == 401
        assert good.get_json()['user'] == 'testuser'
        assert listed.status_code == 200


class TestTournamentRoutes:
    """Tests for tournament endpoints."""

    def test_create_and_list(self, client):
        response = create(client)
        assert response.status_code == 201

        listed = client.get('/api/tournaments?scope_kind=league&scope_id=L1').get_json()
        assert [t['name'] for t in listed['tournaments']] == ['Spring Cup']

        drafts = client.get('/api/tournaments?scope_kind=league&scope_id=L1&status=completed')
        assert drafts.get_json()['tournaments'] == []

    def test_list_needs_scope(self, client):
        response = client.get('/api/tournaments')
        assert response.status_code == 400
        assert 'scope_kind' in response.get_json()['field_errors']

    def test_validation_error_shape(self, client):
        response = create(client, name='')
        assert response.status_code == 400
        body = response.get_json()
        assert body['error'] == 'Invalid tournament data'
        assert 'name' in body['field_errors']

    def test_get_missing(self, client):
        response = client.get('/api/tournaments/nope')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Tournament not found'

    def test_patch_and_delete(self, client):
        tournament = create(client).get_json()['tournament']
        patched = client.patch(f"/api/tournaments/{tournament['id']}", json={'description': 'Fun'})
        assert patched.get_json()['tournament']['description'] == 'Fun'

        deleted = client.delete(f"/api/tournaments/{tournament['id']}")
        assert deleted.get_json() == {'success': True}
        assert client.get(f"/api/tournaments/{tournament['id']}").status_code == 404

    def test_forbidden_for_other_scope(self, client):
        response = create(client, scope_id='L2')
        assert response.status_code == 403

    def test_remove_participant(self, client):
        tournament, participants = create_with_players(client, ['alice', 'bob'])
        response = client.delete(
            f"/api/tournaments/{tournament['id']}/participants/{participants[0]['id']}")
        assert response.status_code == 200
        data = client.get(f"/api/tournaments/{tournament['id']}").get_json()
        assert [p['id'] for p in data['participants']] == [participants[1]['id']]


class TestBracketRoutes:
    """Tests for seeding, generation and match endpoints."""

    def test_manual_seed_then_play(self, client):
        tournament, participants = create_with_players(client, ['alice', 'bob', 'carol'],
                                                       seeding_type='manual')
        tid = tournament['id']

        partial = client.post(f'/api/tournaments/{tid}/seeds', json={'seeds': [
            {'participant_id': participants[0]['id'], 'seed': 1}]})
        assert partial.status_code in (400, 409)
        assert partial.get_json()['error'] == 'Must assign seeds to all 3 participants'

        seeds = client.post(f'/api/tournaments/{tid}/seeds', json={'seeds': [
            {'participant_id': p['id'], 'seed': i} for i, p in enumerate(participants, start=1)]})
        assert seeds.status_code == 200

        data = client.post(f'/api/tournaments/{tid}/generate').get_json()
        assert data['tournament']['status'] == 'in_progress'
        assert match_at(data, 2, 1)['participant1_id'] == participants[0]['id']

        semi = match_at(data, 1, 2)
        data = client.post(f"/api/matches/{semi['id']}/result",
                           json={'winning_side': 'side2'}).get_json()
        final = match_at(data, 2, 1)
        assert final['participant2_id'] == participants[2]['id']

        data = client.post(f"/api/matches/{final['id']}/forfeit",
                           json={'forfeiting_participant_id': participants[2]['id']}).get_json()
        assert data['tournament']['status'] == 'completed'
        assert data['bracket']['champion'] == 'alice'

        undone = client.post(f"/api/matches/{final['id']}/undo")
        assert undone.get_json()['tournament']['status'] == 'in_progress'

    def test_conflict_status(self, client):
        tournament, _ = create_with_players(client, ['alice', 'bob'])
        client.post(f"/api/tournaments/{tournament['id']}/generate")
        again = client.post(f"/api/tournaments/{tournament['id']}/generate")
        assert again.status_code == 409

    def test_result_on_unknown_match(self, client):
        response = client.post('/api/matches/nope/result', json={'winning_side': 'side1'})
        assert response.status_code == 404

    def test_swiss_routes(self, client, temp_data_dir):
        (temp_data_dir / 'settings.yaml').write_text(yaml.dump({'swiss_auto_pair': False}))
        tournament, _ = create_with_players(client, ['alice', 'bob', 'carol', 'dave'],
                                            tournament_type='swiss')
        tid = tournament['id']
        data = client.post(f'/api/tournaments/{tid}/generate').get_json()

        early = client.post(f'/api/tournaments/{tid}/swiss/next-round')
        assert early.status_code == 409

        for position in (1, 2):
            client.post(f"/api/matches/{match_at(data, 1, position)['id']}/result",
                        json={'winning_side': 'side1'})
        data = client.post(f'/api/tournaments/{tid}/swiss/next-round').get_json()
        assert {m['round'] for m in data['matches']} == {1, 2}

        standings = client.get(f'/api/tournaments/{tid}/standings').get_json()['standings']
        assert [s['points'] for s in standings] == [1.0, 1.0, 0.0, 0.0]

    def test_non_text_seed_id_is_bad_request(self, client):
        tournament, _ = create_with_players(client, ['alice', 'bob'], seeding_type='manual')
        response = client.post(f"/api/tournaments/{tournament['id']}/seeds", json={'seeds': [
            {'participant_id': ['x'], 'seed': 1}, {'participant_id': {'a': 1}, 'seed': 2}]})
        assert response.status_code == 400
        assert response.get_json()['field_errors'] == {'seeds[0]': 'participant_id is required'}

    def test_reseed_and_revert_routes(self, client):
        tournament, _ = create_with_players(client, ['alice', 'bob', 'carol'])
        tid = tournament['id']
        client.post(f'/api/tournaments/{tid}/generate')

        reseeded = client.post(f'/api/tournaments/{tid}/reseed')
        assert reseeded.status_code == 200
        assert reseeded.get_json()['tournament']['status'] == 'in_progress'

        reverted = client.post(f'/api/tournaments/{tid}/revert-to-draft').get_json()
        assert reverted['tournament']['status'] == 'draft'
        assert reverted['matches'] == []
        again = client.post(f'/api/tournaments/{tid}/revert-to-draft')
        assert again.status_code == 409

    def test_swiss_round_editing_routes(self, client):
        tournament, participants = create_with_players(client, ['alice', 'bob', 'carol'],
                                                       tournament_type='swiss')
        tid = tournament['id']
        a, b, c = (p['id'] for p in participants)

        bad = client.post(f'/api/tournaments/{tid}/swiss/round-one', json={'pairings': [
            {'participant1_id': a, 'participant2_id': b}]})
        assert bad.status_code == 400

        data = client.post(f'/api/tournaments/{tid}/swiss/round-one', json={'pairings': [
            {'participant1_id': a, 'participant2_id': b},
            {'participant1_id': c, 'participant2_id': None, 'is_bye': True}]}).get_json()
        assert data['tournament']['status'] == 'in_progress'

        data = client.put(f'/api/tournaments/{tid}/swiss/rounds/1', json={'pairings': [
            {'participant1_id': b, 'participant2_id': c},
            {'participant1_id': a, 'participant2_id': None, 'is_bye': True}]}).get_json()
        assert match_at(data, 1, 1)['participant1_id'] == b
        assert match_at(data, 1, 2)['winner_id'] == a

        first_round = client.delete(f'/api/tournaments/{tid}/swiss/current-round')
        assert first_round.status_code == 409
        assert first_round.get_json()['error'] == 'Cannot delete the first round'
