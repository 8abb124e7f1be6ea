from latefine import socketio


def _signed_in_socket(flask_app, email):
    http = flask_app.test_client()
    res = http.post('/api/auth/signup', json={'email': email, 'password': 'password'})
    assert res.status_code == 201
    sio = socketio.test_client(flask_app, flask_test_client=http, namespace='/ws')
    sio.get_received('/ws')  # flush connect ack
    return http, sio


def test_socket_connect_and_ping(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    sio_client.get_received('/ws')

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_anonymous_subscribe_is_rejected(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('subscribe_game', {'game_id': 'whatever'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)
    assert not any(pkt['name'] == 'subscribed' for pkt in received)


def test_subscriber_receives_changes_for_its_game(flask_app):
    http, sio = _signed_in_socket(flask_app, 'a@example.com')
    try:
        gid = http.post('/api/games', json={'name': 'Friday Futsal'}).get_json()['id']

        sio.emit('subscribe_game', {'game_id': gid}, namespace='/ws')
        assert any(pkt['name'] == 'subscribed' for pkt in sio.get_received('/ws'))

        http.post(f'/api/games/{gid}/players', json={'name': 'Alice'})
        changes = [pkt['args'][0] for pkt in sio.get_received('/ws') if pkt['name'] == 'change']
        assert changes
        assert changes[0]['entity'] == 'players'
        assert changes[0]['type'] == 'insert'
        assert changes[0]['game_id'] == gid

        # Unsubscribing twice is harmless and stops delivery
        sio.emit('unsubscribe_game', {'game_id': gid}, namespace='/ws')
        sio.emit('unsubscribe_game', {'game_id': gid}, namespace='/ws')
        sio.get_received('/ws')
        http.post(f'/api/games/{gid}/players', json={'name': 'Bob'})
        assert not any(pkt['name'] == 'change' for pkt in sio.get_received('/ws'))
    finally:
        sio.disconnect(namespace='/ws')


def test_stranger_cannot_subscribe(flask_app):
    owner_http, owner_sio = _signed_in_socket(flask_app, 'a@example.com')
    _, stranger_sio = _signed_in_socket(flask_app, 'c@example.com')
    try:
        gid = owner_http.post('/api/games', json={'name': 'Secret'}).get_json()['id']
        stranger_sio.emit('subscribe_game', {'game_id': gid}, namespace='/ws')
        received = stranger_sio.get_received('/ws')
        assert [pkt['args'][0]['message'] for pkt in received if pkt['name'] == 'error'] == ['Access denied']

        owner_http.post(f'/api/games/{gid}/players', json={'name': 'Alice'})
        assert not any(pkt['name'] == 'change' for pkt in stranger_sio.get_received('/ws'))
    finally:
        owner_sio.disconnect(namespace='/ws')
        stranger_sio.disconnect(namespace='/ws')


def _join_as_member(owner_http, member_http, member_sio):
    gid = owner_http.post('/api/games', json={'name': 'Friday Futsal'}).get_json()['id']
    code = owner_http.post(f'/api/games/{gid}/invites', json={'email': 'b@example.com'}).get_json()['invite_code']
    assert member_http.post('/api/invites/accept', json={'invite_code': code}).get_json()['success']
    member_sio.emit('subscribe_game', {'game_id': gid}, namespace='/ws')
    assert any(pkt['name'] == 'subscribed' for pkt in member_sio.get_received('/ws'))
    return gid


def test_removed_member_is_dropped_from_the_room(flask_app):
    owner_http, owner_sio = _signed_in_socket(flask_app, 'a@example.com')
    friend_http, friend_sio = _signed_in_socket(flask_app, 'b@example.com')
    try:
        gid = _join_as_member(owner_http, friend_http, friend_sio)
        friend_id = friend_http.get('/api/auth/me').get_json()['user']['id']

        assert owner_http.delete(f'/api/games/{gid}/members/{friend_id}').status_code == 200
        assert any(pkt['name'] == 'unsubscribed' for pkt in friend_sio.get_received('/ws'))

        owner_http.post(f'/api/games/{gid}/players', json={'name': 'SecretPlayer'})
        assert not any(pkt['name'] == 'change' for pkt in friend_sio.get_received('/ws'))
        assert friend_http.get(f'/api/games/{gid}/players').status_code == 403
    finally:
        owner_sio.disconnect(namespace='/ws')
        friend_sio.disconnect(namespace='/ws')


def test_leaving_a_game_drops_the_socket_from_the_room(flask_app):
    owner_http, owner_sio = _signed_in_socket(flask_app, 'a@example.com')
    friend_http, friend_sio = _signed_in_socket(flask_app, 'b@example.com')
    try:
        gid = _join_as_member(owner_http, friend_http, friend_sio)

        assert friend_http.post(f'/api/games/{gid}/leave').status_code == 200
        friend_sio.get_received('/ws')

        owner_http.post(f'/api/games/{gid}/players', json={'name': 'SecretPlayer'})
        assert not any(pkt['name'] == 'change' for pkt in friend_sio.get_received('/ws'))
    finally:
        owner_sio.disconnect(namespace='/ws')
        friend_sio.disconnect(namespace='/ws')
