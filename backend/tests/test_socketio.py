from bingo_live.realtime import NAMESPACE
from conftest import WINNING_ROW_CARD, WINNING_ROW_TOKENS


def _events(sio):
    return sio.get_received(NAMESPACE)


def _names(events):
    return [e['name'] for e in events]


def _payloads(events, name):
    return [e['args'][0] for e in events if e['name'] == name]


def _join_player(client, session_id, name='Ana', card=WINNING_ROW_CARD):
    res = client.post(f'/api/game/{session_id}/join', json={'player_name': name, 'card': card})
    assert res.status_code == 201
    return res.get_json()


def _connect_host(sio_host, session_id):
    sio_host.emit('join_game', {'session_id': session_id, 'is_host': True}, namespace=NAMESPACE)
    events = _events(sio_host)
    assert _payloads(events, 'joined')[0]['role'] == 'host'
    return events


def _connect_player(sio_client, session_id, player_uuid):
    sio_client.emit('join_game', {'session_id': session_id, 'player_uuid': player_uuid}, namespace=NAMESPACE)
    events = _events(sio_client)
    assert _payloads(events, 'joined')[0]['role'] == 'player'
    return events


def test_connect_and_ping(sio_client):
    assert sio_client.is_connected(NAMESPACE)
    assert 'connected' in _names(_events(sio_client))
    sio_client.emit('ping', {'t': 1}, namespace=NAMESPACE)
    assert _payloads(_events(sio_client), 'pong') == [{'t': 1}]


def test_join_unknown_session(sio_client):
    _events(sio_client)
    sio_client.emit('join_game', {'session_id': 'BINGO-0-000'}, namespace=NAMESPACE)
    errors = _payloads(_events(sio_client), 'error')
    assert errors[0]['code'] == 'session_not_found'


def test_player_join_marks_connected(client, session_id, sio_client):
    player = _join_player(client, session_id)
    _events(sio_client)
    events = _connect_player(sio_client, session_id, player['uuid'])
    joined = _payloads(events, 'joined')[0]
    assert joined['room'] == f'game:{session_id}'
    assert joined['session']['session_id'] == session_id
    roster = _payloads(events, 'players_updated')[-1]['players']
    assert roster[0]['uuid'] == player['uuid'] and roster[0]['connected'] is True


def test_only_a_logged_in_host_can_join_as_host(session_id, sio_client):
    _events(sio_client)
    sio_client.emit('join_game', {'session_id': session_id, 'is_host': True}, namespace=NAMESPACE)
    events = _events(sio_client)
    assert 'joined' not in _names(events)
    assert _payloads(events, 'error')[0]['code'] == 'forbidden'


def test_draw_is_host_only_and_reaches_the_room(client, session_id, sio_client, sio_host, game):
    player = _join_player(client, session_id)
    _events(sio_client)
    _events(sio_host)
    _connect_player(sio_client, session_id, player['uuid'])
    _connect_host(sio_host, session_id)
    _events(sio_client)

    sio_client.emit('draw_number', {'session_id': session_id}, namespace=NAMESPACE)
    assert _payloads(_events(sio_client), 'error')[0]['code'] == 'forbidden'
    assert game.get_session(session_id).drawn_numbers == ()

    sio_host.emit('draw_number', {'session_id': session_id}, namespace=NAMESPACE)
    drawn = game.get_session(session_id).drawn_numbers
    assert len(drawn) == 1
    for sio in (sio_client, sio_host):
        payload = _payloads(_events(sio), 'number_drawn')[0]
        assert payload['number'] == drawn[0]
        assert payload['count'] == 1


def test_host_pause_and_resume(session_id, sio_host):
    _events(sio_host)
    _connect_host(sio_host, session_id)
    sio_host.emit('pause_game', {'session_id': session_id}, namespace=NAMESPACE)
    assert 'game_paused' in _names(_events(sio_host))
    sio_host.emit('draw_number', {'session_id': session_id}, namespace=NAMESPACE)
    assert _payloads(_events(sio_host), 'error')[0]['code'] == 'invalid_state'
    sio_host.emit('resume_game', {'session_id': session_id}, namespace=NAMESPACE)
    assert 'game_resumed' in _names(_events(sio_host))


def test_invalid_claim_only_reaches_the_claimer(client, session_id, sio_client, sio_host, game):
    player = _join_player(client, session_id)
    _events(sio_client)
    _events(sio_host)
    _connect_player(sio_client, session_id, player['uuid'])
    _connect_host(sio_host, session_id)
    _events(sio_client)
    game.repo.update_session(session_id, drawn_numbers=tuple(WINNING_ROW_TOKENS[:4]))

    sio_client.emit('claim_bingo', {
        'session_id': session_id,
        'player_uuid': player['uuid'],
        'marks': WINNING_ROW_TOKENS,
    }, namespace=NAMESPACE)

    claimer = _events(sio_client)
    assert _payloads(claimer, 'invalid_bingo')[0]['code'] == 'invalid_claim'
    host_names = _names(_events(sio_host))
    assert 'invalid_bingo' not in host_names
    assert 'bingo_winner' not in host_names
    assert game.get_session(session_id).status == 'active'


def test_valid_claim_is_broadcast(client, session_id, sio_client, sio_host, game):
    player = _join_player(client, session_id)
    _events(sio_client)
    _events(sio_host)
    _connect_player(sio_client, session_id, player['uuid'])
    _connect_host(sio_host, session_id)
    _events(sio_client)
    game.repo.update_session(session_id, drawn_numbers=tuple(WINNING_ROW_TOKENS))

    # a forged card in the message is ignored; the stored card is checked
    sio_client.emit('claim_bingo', {
        'session_id': session_id,
        'player_uuid': player['uuid'],
        'marks': WINNING_ROW_TOKENS,
        'card': [[1] * 5] * 5,
    }, namespace=NAMESPACE)

    for sio in (sio_client, sio_host):
        events = _events(sio)
        names = [n for n in _names(events) if n in ('bingo_winner', 'game_finished')]
        assert names == ['bingo_winner', 'game_finished']
        winner = _payloads(events, 'bingo_winner')[0]
        assert winner['player_uuid'] == player['uuid']
        assert winner['winning_tokens'] == WINNING_ROW_TOKENS
        assert _payloads(events, 'game_finished')[0]['reason'] == 'winner'
    assert game.get_session(session_id).winner == 'Ana'


def test_mark_number_over_socket(client, session_id, sio_client):
    player = _join_player(client, session_id)
    _events(sio_client)
    _connect_player(sio_client, session_id, player['uuid'])
    sio_client.emit('mark_number', {'player_uuid': player['uuid'], 'number': 'B-3'}, namespace=NAMESPACE)
    assert _payloads(_events(sio_client), 'marks_updated')[0]['marked'] == ['B-3']


def test_card_selection_over_socket(session_id, sio_client):
    _events(sio_client)
    sio_client.emit('player_card_selected', {
        'session_id': session_id,
        'player_uuid': 'player-abc-1',
        'player_name': 'Luis',
        'card': WINNING_ROW_CARD,
    }, namespace=NAMESPACE)
    confirmed = _payloads(_events(sio_client), 'card_confirmed')[0]
    assert confirmed['uuid'] == 'player-abc-1'
    assert confirmed['card'] == WINNING_ROW_CARD


def test_player_disconnect_updates_roster(flask_app, client, session_id, sio_host, game):
    from bingo_live import socketio

    player = _join_player(client, session_id)
    _events(sio_host)
    _connect_host(sio_host, session_id)

    player_sio = socketio.test_client(flask_app, namespace=NAMESPACE)
    _connect_player(player_sio, session_id, player['uuid'])
    _events(sio_host)
    player_sio.disconnect(namespace=NAMESPACE)

    roster = _payloads(_events(sio_host), 'players_updated')[-1]['players']
    assert roster[0]['connected'] is False
    assert game.get_player(player['uuid']).connected is False


def test_host_disconnect_does_not_end_session(flask_app, host_client, session_id, sio_client, game):
    from bingo_live import socketio

    host_sio = socketio.test_client(flask_app, flask_test_client=host_client, namespace=NAMESPACE)
    _connect_host(host_sio, session_id)
    _events(sio_client)
    sio_client.emit('join_game', {'session_id': session_id}, namespace=NAMESPACE)
    _events(sio_client)

    host_sio.disconnect(namespace=NAMESPACE)
    assert 'session_ended' not in _names(_events(sio_client))
    assert game.get_session(session_id).status == 'active'


def test_delete_ends_the_room(host_client, session_id, sio_client):
    _events(sio_client)
    sio_client.emit('join_game', {'session_id': session_id}, namespace=NAMESPACE)
    _events(sio_client)

    host_client.post(f'/api/game/{session_id}/finish')
    assert host_client.delete(f'/api/sessions/{session_id}').status_code == 200
    events = _events(sio_client)
    assert 'game_finished' in _names(events)
    assert _payloads(events, 'session_ended') == [{'session_id': session_id}]


def test_malformed_mark_is_a_validation_error(client, session_id, sio_client):
    player = _join_player(client, session_id)
    _events(sio_client)
    _connect_player(sio_client, session_id, player['uuid'])
    sio_client.emit('mark_number', {'player_uuid': player['uuid'], 'number': ['B-3']}, namespace=NAMESPACE)
    events = _events(sio_client)
    assert _payloads(events, 'error')[0]['code'] == 'validation_error'
    assert 'marks_updated' not in _names(events)
